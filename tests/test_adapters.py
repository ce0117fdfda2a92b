from __future__ import annotations

import io
from datetime import datetime

import pytest
from openpyxl import Workbook

from bill_ledger.ingest.adapters import alipay, icost, jd, wechat
from bill_ledger.models import ParseError

ALIPAY_HEADER = "交易时间,交易分类,交易对方,对方账号,商品说明,收/支,金额,收/付款方式,交易状态,交易订单号,商家订单号,备注,"
ALIPAY_FIELDS = [
    "交易时间",
    "交易分类",
    "交易对方",
    "对方账号",
    "商品说明",
    "收/支",
    "金额",
    "收/付款方式",
    "交易状态",
    "交易订单号",
    "商家订单号",
    "备注",
]


def _alipay_export(*rows: str) -> bytes:
    lines = [
        "支付宝交易记录明细查询",
        "账号:[someone@example.com]",
        "--------------------------支付宝交易明细--------------------------",
        ALIPAY_HEADER,
        *rows,
        "------------------------------------------------------------------",
        "导出时间:[2024-04-01 10:00:00]",
    ]
    return "\r\n".join(lines).encode("gbk")


ROW_DINING = "2024-03-05 12:30:00,餐饮美食,美团,mt***@163.com,美团外卖订单,支出,25.50,花呗,交易成功,2024030512,T001,,"
ROW_TAXI = "2024-03-06 09:00:00,交通出行,滴滴出行,dd***@163.com,滴滴快车,支出,18.00,招商银行信用卡(1234),交易成功,2024030609,T002,,"
ROW_CLOSED = "2024-03-07 10:00:00,日用百货,超市,cs***@163.com,购物,支出,9.90,花呗,交易关闭,2024030710,T003,,"


def test_alipay_two_data_lines_with_trailing_delimiter():
    records = alipay.extract(_alipay_export(ROW_DINING, ROW_TAXI))
    assert len(records) == 2
    assert list(records[0]) == ALIPAY_FIELDS
    assert "" not in records[0]
    assert records[0]["商品说明"] == "美团外卖订单"
    assert records[0]["备注"] == ""
    assert records[1]["收/付款方式"] == "招商银行信用卡(1234)"


def test_alipay_closed_transaction_drops_it_and_everything_after():
    records = alipay.extract(_alipay_export(ROW_DINING, ROW_CLOSED, ROW_TAXI))
    assert [r["交易订单号"] for r in records] == ["2024030512"]


def test_alipay_without_signature_marker_is_a_parse_error():
    data = "\r\n".join(["------------", ALIPAY_HEADER, ROW_DINING]).encode("gbk")
    with pytest.raises(ParseError, match="alipay"):
        alipay.extract(data)


def test_alipay_decode_failure_is_chained_parse_error():
    data = _alipay_export(ROW_DINING) + b"\xff\xff"
    with pytest.raises(ParseError) as excinfo:
        alipay.extract(data)
    assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)


def test_alipay_strict_mode_rejects_field_count_mismatch():
    extra = ROW_TAXI[:-1] + ",unexpected,"
    lenient = alipay.extract(_alipay_export(ROW_DINING, extra))
    assert len(lenient) == 2
    assert list(lenient[1]) == ALIPAY_FIELDS
    with pytest.raises(ParseError) as excinfo:
        alipay.extract(_alipay_export(ROW_DINING, extra), strict=True)
    assert excinfo.value.line_number == 3
    assert "line 3" in str(excinfo.value)


def test_alipay_rejects_spreadsheet_format():
    with pytest.raises(ParseError):
        alipay.extract(b"", fmt="xlsx")


WECHAT_HEADER = ["交易时间", "交易类型", "交易对方", "商品", "收/支", "金额(元)", "支付方式", "当前状态", "交易单号", "商户单号", "备注"]


def _wechat_workbook() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(["微信支付账单明细"])
    ws.append(["微信昵称：[小明]"])
    ws.append(["起始时间：[2024-03-01 00:00:00] 终止时间：[2024-03-31 23:59:59]"])
    ws.append(["导出类型：[全部]"])
    ws.append(["----------------------微信支付账单明细列表--------------------"])
    ws.append(WECHAT_HEADER)
    ws.append(
        [datetime(2024, 3, 7, 8, 0, 0), "商户消费", "全家便利店", "/", "支出", "¥12.00", "零钱", "支付成功", "4200001", "10001", "/"]
    )
    ws.append([])
    ws.append([datetime(2024, 3, 8, 20, 15, 0), "微信红包", "小红", "/", "收入", 8.8, "/", "已存入零钱", "4200002"])
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_wechat_spreadsheet_header_found_at_row_five():
    records = wechat.extract(_wechat_workbook(), fmt="xlsx")
    assert len(records) == 2
    assert list(records[0]) == WECHAT_HEADER
    assert records[0]["交易时间"] == "2024-03-07 08:00:00"
    assert records[0]["金额(元)"] == "¥12.00"
    # Short rows are padded with empty strings.
    assert records[1]["金额(元)"] == "8.8"
    assert records[1]["商户单号"] == ""


def test_wechat_spreadsheet_without_header_token():
    wb = Workbook()
    wb.active.append(["nothing", "here"])
    buf = io.BytesIO()
    wb.save(buf)
    with pytest.raises(ParseError, match="交易时间"):
        wechat.extract(buf.getvalue(), fmt="xlsx")


def test_wechat_csv_drops_every_separator_line():
    text = "\n".join(
        [
            "微信支付账单明细",
            "----------------------微信支付账单明细列表--------------------",
            ",".join(WECHAT_HEADER),
            "2024-03-07 08:00:00,商户消费,全家便利店,/,支出,¥12.00,零钱,支付成功,4200001,10001,/",
            "--------",
            "2024-03-08 20:15:00,微信红包,小红,/,收入,¥8.80,/,已存入零钱,4200002,/,/",
        ]
    )
    records = wechat.extract(text.encode("utf-8-sig"))
    assert [r["交易对方"] for r in records] == ["全家便利店", "小红"]


def test_wechat_csv_without_separator_is_a_parse_error():
    with pytest.raises(ParseError):
        wechat.extract(",".join(WECHAT_HEADER).encode("utf-8"))


def test_jd_preamble_skipped_until_header_line():
    text = "\n".join(
        [
            "导出信息：",
            "京东账号名：jd_user",
            "",
            "交易时间,商户名称,交易说明,金额,收/付款方式,交易状态,收/支,交易分类,交易订单号,商家订单号,备注",
            "2024-03-08 10:00:00,京东自营,牛奶 250ml*24,59.90(已全额退款),招商银行信用卡,交易成功,支出,食品酒饮,J001,M001,年货",
            "2024-03-09 11:00:00,京东金融,小金库转入,100.00,京东小金库,交易成功,不计收支,理财,J002,M002,",
        ]
    )
    records = jd.extract(text.encode("utf-8"))
    assert len(records) == 2
    assert records[0]["金额"] == "59.90(已全额退款)"
    assert records[1]["收/支"] == "不计收支"


def test_jd_missing_header_is_a_parse_error():
    with pytest.raises(ParseError, match="交易时间"):
        jd.extract("a,b\n1,2\n".encode("utf-8"))


def test_icost_csv_and_spreadsheet():
    header = ["日期", "类型", "金额", "一级分类", "二级分类", "账户1", "账户2", "备注", "货币", "标签"]
    row = ["2024-03-09 18:30", "支出", "35", "餐饮", "晚餐", "零钱", "", "", "CNY", "聚餐"]
    text = "\n".join(["icost 导出", "--------", ",".join(header), ",".join(row)])
    from_csv = icost.extract(text.encode("utf-8"))
    assert from_csv == [dict(zip(header, row, strict=True))]

    wb = Workbook()
    wb.active.append(header)
    wb.active.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    from_xlsx = icost.extract(buf.getvalue(), fmt="xlsx")
    assert from_xlsx[0]["一级分类"] == "餐饮"
    assert from_xlsx[0]["标签"] == "聚餐"


def test_wechat_csv_keeps_unicode_line_separators_inside_fields():
    text = "\r\n".join(
        [
            "微信支付账单明细",
            "----------------------微信支付账单明细列表--------------------",
            ",".join(WECHAT_HEADER),
            '2024-03-07 08:00:00,商户消费,全家便利店,"饭团\u2028豆浆\x1e面包",支出,¥12.00,零钱,支付成功,4200001,10001,/',
        ]
    )
    records = wechat.extract(text.encode("utf-8"), strict=True)
    assert len(records) == 1
    assert records[0]["商品"] == "饭团\u2028豆浆\x1e面包"
    assert records[0]["备注"] == "/"


def test_wechat_spreadsheet_that_is_not_a_workbook():
    with pytest.raises(ParseError, match="cannot open spreadsheet"):
        wechat.extract(b"definitely not a zip archive", fmt="xlsx")
