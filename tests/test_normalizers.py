from __future__ import annotations

from datetime import date, time
from decimal import Decimal

import pytest

from bill_ledger.accounts import UNKNOWN_ACCOUNT
from bill_ledger.models import UnknownPlatformError
from bill_ledger.normalizers import EXPENSE, BillNormalizer, get_platform


def _alipay(**overrides: str) -> dict[str, str]:
    row = {
        "交易时间": "2024-03-05 12:30:00",
        "交易分类": "餐饮美食",
        "交易对方": "美团",
        "对方账号": "mt***@163.com",
        "商品说明": "美团外卖订单",
        "收/支": "支出",
        "金额": "25.50",
        "收/付款方式": "花呗",
        "交易状态": "交易成功",
        "备注": "",
    }
    row.update(overrides)
    return row


def _wechat(**overrides: str) -> dict[str, str]:
    row = {
        "交易时间": "2024-03-07 08:00:00",
        "交易类型": "商户消费",
        "交易对方": "全家便利店",
        "商品": "/",
        "收/支": "支出",
        "金额(元)": "¥12.00",
        "支付方式": "零钱",
        "当前状态": "支付成功",
    }
    row.update(overrides)
    return row


def _jd(**overrides: str) -> dict[str, str]:
    row = {
        "交易时间": "2024-03-08 10:00:00",
        "商户名称": "京东自营",
        "交易说明": "牛奶 250ml*24",
        "金额": "59.90(已全额退款)",
        "收/付款方式": "招商银行信用卡",
        "交易状态": "交易成功",
        "收/支": "支出",
        "交易分类": "食品酒饮",
        "备注": "年货",
    }
    row.update(overrides)
    return row


def _icost(**overrides: str) -> dict[str, str]:
    row = {
        "日期": "2024-03-09 18:30",
        "类型": "支出",
        "金额": "35",
        "一级分类": "餐饮",
        "二级分类": "晚餐",
        "账户1": "零钱",
        "账户2": "",
        "备注": "",
        "货币": "CNY",
        "标签": "聚餐",
    }
    row.update(overrides)
    return row


def test_unknown_platform_rejected():
    with pytest.raises(UnknownPlatformError, match="paypal"):
        get_platform("paypal")
    assert get_platform(" WeChat ").name == "wechat"


def test_alipay_expense_income_and_transfer(mapping_config):
    n = BillNormalizer.from_config("alipay", mapping_config)
    expense, income, transfer = n.normalize(
        [
            _alipay(),
            _alipay(**{"收/支": "收入", "交易分类": "", "商品说明": "转账收款", "交易对方": "张三", "金额": "100.00", "收/付款方式": "余额宝"}),
            _alipay(**{"收/支": "不计收支", "交易分类": "信用借还", "商品说明": "信用卡还款", "交易对方": "招商银行信用卡", "金额": "500.00", "收/付款方式": "余额宝"}),
        ]
    )
    assert expense.date == date(2024, 3, 5)
    assert expense.amount == Decimal("-25.50")
    assert expense.account == "花呗"
    assert expense.category == "餐饮"
    assert expense.transfer_account == ""

    assert income.amount == Decimal("100.00")
    assert income.category == "其他"

    assert transfer.is_transfer
    assert transfer.category == ""
    assert transfer.account == "余额宝"
    assert transfer.transfer_account == "招行信用卡"
    assert transfer.amount == Decimal("-500.00")


def test_alipay_account_defaults_and_sentinel(mapping_config):
    n = BillNormalizer.from_config("alipay", mapping_config)
    blank, unknown = n.normalize([_alipay(**{"收/付款方式": ""}), _alipay(**{"收/付款方式": "某某银行"})])
    assert blank.account == "支付宝余额"
    assert unknown.account == UNKNOWN_ACCOUNT


def test_family_card_rows_are_dropped(mapping_config):
    alipay = BillNormalizer.from_config("alipay", mapping_config)
    assert alipay.normalize([_alipay(**{"商品说明": "亲情卡消费"}), _alipay()]) == alipay.normalize([_alipay()])
    wechat = BillNormalizer.from_config("wechat", mapping_config)
    assert wechat.normalize([_wechat(**{"商品": "亲情卡-超市"})]) == []


def test_wechat_placeholder_product_and_passthrough_accounts(mapping_config):
    n = BillNormalizer.from_config("wechat", mapping_config)
    shop, bank, blank = n.normalize(
        [_wechat(), _wechat(**{"支付方式": "工商银行(1234)"}), _wechat(**{"支付方式": "/"})]
    )
    assert shop.description == "商户消费"
    assert shop.category == "日用"  # keyword on the counterparty
    assert shop.amount == Decimal("-12.00")
    assert shop.account == "微信零钱"
    assert bank.account == "工商银行(1234)"
    assert blank.account == "微信零钱"


def test_wechat_transfer_keeps_sign_unless_repayment(mapping_config):
    n = BillNormalizer.from_config("wechat", mapping_config)
    withdraw, repay = n.normalize(
        [
            _wechat(**{"收/支": "/", "交易类型": "零钱提现", "交易对方": "招商银行(尾号1234)", "金额(元)": "¥200.00"}),
            _wechat(**{"收/支": "/", "交易类型": "信用卡还款", "交易对方": "招商银行信用卡", "金额(元)": "¥300.00"}),
        ]
    )
    assert withdraw.description == "零钱提现"
    assert withdraw.transfer_account == "招行储蓄卡"
    assert withdraw.amount == Decimal("200.00")
    assert repay.transfer_account == "招行信用卡"
    assert repay.amount == Decimal("-300.00")


def test_jd_amount_suffix_platform_category_and_not_counted(mapping_config):
    n = BillNormalizer.from_config("jd", mapping_config)
    rows = n.normalize([_jd(), _jd(**{"收/支": "不计收支"}), _jd(**{"收/支": "", "金额": "5"}), _jd(**{"收/支": "收入", "金额": "8"})])
    assert len(rows) == 3
    milk, unlabeled, income = rows
    assert milk.amount == Decimal("-59.90")
    assert milk.category == "餐饮"
    assert milk.counterparty == "京东自营"
    assert milk.note == "年货"
    assert milk.account == "招行信用卡"
    assert unlabeled.amount == Decimal("-5")
    assert income.amount == Decimal("8")


def test_icost_expense_keeps_time_and_tags(mapping_config):
    n = BillNormalizer.from_config("icost", mapping_config)
    (tx,) = n.normalize([_icost()])
    assert tx.description == "餐饮晚餐"
    assert tx.category == "餐饮"
    assert tx.amount == Decimal("-35")
    assert tx.date == date(2024, 3, 9)
    assert tx.time == time(18, 30)
    assert tx.tags == "聚餐"
    assert tx.account == "微信零钱"


def test_icost_refund_transfer_repayment_and_red_packet(mapping_config):
    n = BillNormalizer.from_config("icost", mapping_config)
    refund, transfer, repay, red_packet, date_only = n.normalize(
        [
            _icost(**{"类型": "退款入账", "一级分类": "购物", "二级分类": ""}),
            _icost(**{"类型": "转账", "一级分类": "", "二级分类": "", "账户1": "招商银行", "账户2": "余额宝"}),
            _icost(**{"类型": "还款", "一级分类": "", "二级分类": "", "账户1": "招商银行", "账户2": "招商银行信用卡"}),
            _icost(**{"类型": "收入", "一级分类": "红包", "二级分类": ""}),
            _icost(**{"日期": "2024-03-10"}),
        ]
    )
    assert refund.description == "购物 的退款"
    assert refund.amount == Decimal("35")
    assert refund.category == "购物"

    assert transfer.account == "余额宝"
    assert transfer.transfer_account == "招行储蓄卡"
    assert transfer.category == ""
    assert transfer.amount == Decimal("35")

    assert repay.amount == Decimal("-35")
    assert repay.account == "招行信用卡"

    assert red_packet.category == "其他"
    assert date_only.time is None


def test_lenient_fields(mapping_config):
    n = BillNormalizer.from_config("alipay", mapping_config)
    (tx,) = n.normalize([_alipay(**{"交易时间": "not a date", "金额": "abc"})])
    assert tx.date is None
    assert tx.amount == Decimal(0)
    # Blank rows are skipped entirely.
    assert n.normalize([{k: "" for k in _alipay()}]) == []


def test_sign_invariant_for_rule_classified_rows(mapping_config):
    cases = [
        ("alipay", _alipay(), EXPENSE),
        ("alipay", _alipay(**{"收/支": "收入", "交易分类": ""}), "收入"),
        ("wechat", _wechat(), EXPENSE),
        ("wechat", _wechat(**{"收/支": "收入", "交易类型": "二维码收款"}), "收入"),
        ("jd", _jd(), EXPENSE),
        ("jd", _jd(**{"收/支": "收入"}), "收入"),
    ]
    for platform, record, direction in cases:
        (tx,) = BillNormalizer.from_config(platform, mapping_config).normalize([record])
        assert not tx.is_transfer
        assert tx.category != ""
        assert (tx.amount < 0) == (direction == EXPENSE)
