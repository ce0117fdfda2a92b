from __future__ import annotations

import pytest

from bill_ledger.accounts import UNKNOWN_ACCOUNT, AccountMapper

ORDERED = {
    "招商银行信用卡": "招行信用卡",
    "招商银行": "招行储蓄卡",
    "花呗": "花呗",
}


def test_first_configured_key_wins():
    m = AccountMapper(ORDERED)
    assert m.map("招商银行信用卡(1234)") == "招行信用卡"
    assert m.map("招商银行储蓄卡(5678)") == "招行储蓄卡"


def test_order_is_significant_not_specificity():
    # The broader key listed first shadows the more specific one.
    m = AccountMapper({"招商银行": "招行储蓄卡", "招商银行信用卡": "招行信用卡"})
    assert m.map("招商银行信用卡(1234)") == "招行储蓄卡"


def test_placeholders_resolve_to_default_account():
    m = AccountMapper(ORDERED, default_account="支付宝余额")
    assert m.map("") == "支付宝余额"
    assert m.map("/") == "支付宝余额"
    assert m.map(None) == "支付宝余额"
    assert m.map("  ") == "支付宝余额"


def test_no_match_sentinel_vs_passthrough():
    sentinel = AccountMapper(ORDERED, on_no_match="sentinel")
    passthrough = AccountMapper(ORDERED, on_no_match="passthrough")
    assert sentinel.map("工商银行(9999)") == UNKNOWN_ACCOUNT
    assert passthrough.map("工商银行(9999)") == "工商银行(9999)"


def test_mapping_is_deterministic_and_canonical_names_pass_through():
    m = AccountMapper(ORDERED, default_account="微信零钱", on_no_match="passthrough")
    inputs = ["招商银行信用卡(1234)", "花呗", "工商银行", "", "/"]
    first = [m.map(x) for x in inputs]
    assert first == [m.map(x) for x in inputs]
    # Canonical names that do not collide with a key map to themselves.
    for canonical in ("招行信用卡", "招行储蓄卡", "微信零钱"):
        assert m.map(canonical) == canonical


def test_invalid_policy_rejected():
    with pytest.raises(ValueError):
        AccountMapper(ORDERED, on_no_match="ignore")  # type: ignore[arg-type]
