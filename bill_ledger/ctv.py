"""Canonical Transaction View (CTV) model and ledger row helpers.

This module defines the canonical ledger record as a frozen ``dataclass`` and
the exact column layout of the ledger CSV files.

Column order (exact)::

    账户, 转账, 描述, 交易对方, 分类, 日期[, 时间], 备注, 标签, 金额

which correspond to ``account, transfer_account, description, counterparty,
category, date[, time], note, tags, amount``. The ``时间`` column is optional
and only present in files whose schema carries a time of day.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# Canonical column headers, in file order. ``TIME_COLUMN`` is inserted right
# after ``日期`` when a file carries times.
COL_ACCOUNT = "账户"
COL_TRANSFER = "转账"
COL_DESCRIPTION = "描述"
COL_COUNTERPARTY = "交易对方"
COL_CATEGORY = "分类"
COL_DATE = "日期"
TIME_COLUMN = "时间"
COL_NOTE = "备注"
COL_TAGS = "标签"
COL_AMOUNT = "金额"

LEDGER_COLUMNS: tuple[str, ...] = (
    COL_ACCOUNT,
    COL_TRANSFER,
    COL_DESCRIPTION,
    COL_COUNTERPARTY,
    COL_CATEGORY,
    COL_DATE,
    COL_NOTE,
    COL_TAGS,
    COL_AMOUNT,
)

LEDGER_COLUMNS_WITH_TIME: tuple[str, ...] = (
    *LEDGER_COLUMNS[: LEDGER_COLUMNS.index(COL_DATE) + 1],
    TIME_COLUMN,
    *LEDGER_COLUMNS[LEDGER_COLUMNS.index(COL_DATE) + 1 :],
)

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"

# Older batch outputs used slashes; both are accepted when reading back.
_READ_DATE_FORMATS: tuple[str, ...] = (DATE_FORMAT, "%Y/%m/%d")


@dataclass(frozen=True, slots=True)
class CanonicalTransaction:
    """A single normalized ledger row.

    Exactly one of ``category`` (income/expense) or ``transfer_account``
    (transfers and repayments) is meaningful for a given row. ``amount`` is
    negative for outflows.
    """

    date: date | None
    description: str
    account: str
    amount: Decimal
    counterparty: str = ""
    category: str = ""
    transfer_account: str = ""
    tags: str = ""
    note: str = ""
    time: time | None = None

    @property
    def is_transfer(self) -> bool:
        return bool(self.transfer_account)


def format_amount(d: Decimal) -> str:
    # Exactly two decimals; ASCII dot; leading minus for negatives.
    q = d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{q:.2f}"


def columns_for(transactions: Sequence[CanonicalTransaction]) -> tuple[str, ...]:
    """Return the column layout a fresh file for ``transactions`` should use."""

    if any(tx.time is not None for tx in transactions):
        return LEDGER_COLUMNS_WITH_TIME
    return LEDGER_COLUMNS


def to_row(tx: CanonicalTransaction, columns: Sequence[str] = LEDGER_COLUMNS) -> list[str]:
    values = {
        COL_ACCOUNT: tx.account,
        COL_TRANSFER: tx.transfer_account,
        COL_DESCRIPTION: tx.description,
        COL_COUNTERPARTY: tx.counterparty,
        COL_CATEGORY: tx.category,
        COL_DATE: tx.date.strftime(DATE_FORMAT) if tx.date else "",
        TIME_COLUMN: tx.time.strftime(TIME_FORMAT) if tx.time else "",
        COL_NOTE: tx.note,
        COL_TAGS: tx.tags,
        COL_AMOUNT: format_amount(tx.amount),
    }
    return [values[c] for c in columns]


def _parse_date(value: str) -> date | None:
    s = value.strip()
    if not s:
        return None
    for fmt in _READ_DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"unparseable {COL_DATE} value {s!r}")


def _parse_time(value: str) -> time | None:
    s = value.strip()
    if not s:
        return None
    for fmt in (TIME_FORMAT, "%H:%M"):
        try:
            return datetime.strptime(s, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"unparseable {TIME_COLUMN} value {s!r}")


def _parse_amount(value: str) -> Decimal:
    s = value.strip().replace(",", "")
    if not s:
        return Decimal(0)
    try:
        amount = Decimal(s)
    except InvalidOperation:
        amount = None
    if amount is None or not amount.is_finite():
        raise ValueError(f"unparseable {COL_AMOUNT} value {value.strip()!r}")
    return amount


def from_row(row: Mapping[str, str | None]) -> CanonicalTransaction:
    """Rebuild a transaction from a ledger row keyed by column header.

    Empty date/time cells read back as ``None`` and an empty amount as zero.
    A non-empty cell that does not parse raises ``ValueError`` instead, so a
    rewrite never replaces it with a blank or ``0.00``.
    """

    def get(col: str) -> str:
        return (row.get(col) or "").strip()

    return CanonicalTransaction(
        date=_parse_date(get(COL_DATE)),
        time=_parse_time(get(TIME_COLUMN)),
        description=get(COL_DESCRIPTION),
        account=get(COL_ACCOUNT),
        amount=_parse_amount(get(COL_AMOUNT)),
        counterparty=get(COL_COUNTERPARTY),
        category=get(COL_CATEGORY),
        transfer_account=get(COL_TRANSFER),
        tags=get(COL_TAGS),
        note=get(COL_NOTE),
    )


__all__ = [
    "CanonicalTransaction",
    "DATE_FORMAT",
    "LEDGER_COLUMNS",
    "LEDGER_COLUMNS_WITH_TIME",
    "TIME_COLUMN",
    "TIME_FORMAT",
    "columns_for",
    "format_amount",
    "from_row",
    "to_row",
]
