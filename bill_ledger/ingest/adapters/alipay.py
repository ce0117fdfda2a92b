"""Adapter for Alipay (支付宝) CSV bill exports.

The export is GBK-encoded text with a metadata preamble. Data begins after a
dashed separator line that mentions ``支付宝``; any later dashed line that
does not mention it switches collection off again (the export's footer).
Every data line carries one trailing comma, which is removed before parsing.

Rows are returned in file order up to, but excluding, the first row whose
``交易状态`` is ``交易关闭``; that row and everything after it are dropped.
"""

from __future__ import annotations

from collections.abc import Iterable

from ...logging_setup import get_logger
from ...models import ParseError, RawRecord
from ..utils import DASH_MARKER, decode_text, iter_lines, read_delimited

PLATFORM = "alipay"
DEFAULT_ENCODING = "gbk"
BILL_SIGNATURE = "支付宝"
STATUS_FIELD = "交易状态"
CLOSED_STATUS = "交易关闭"

_logger = get_logger("bill_ledger.ingest.alipay")


def _data_lines(lines: Iterable[str]) -> tuple[list[str], bool]:
    kept: list[str] = []
    below_real_content = False
    marker_seen = False
    for line in lines:
        if line.startswith(DASH_MARKER):
            below_real_content = BILL_SIGNATURE in line
            marker_seen = marker_seen or below_real_content
        elif below_real_content:
            kept.append(line[:-1] if line.endswith(",") else line)
    return kept, marker_seen


def truncate_at_closed(records: list[RawRecord]) -> list[RawRecord]:
    """Drop the first ``交易关闭`` record and everything after it."""

    for idx, record in enumerate(records):
        if record.get(STATUS_FIELD, "") == CLOSED_STATUS:
            _logger.info(
                "Closed transaction at row %d; discarding %d remaining rows",
                idx,
                len(records) - idx,
            )
            return records[:idx]
    return records


def extract(
    data: bytes | str,
    *,
    fmt: str = "csv",
    encoding: str = DEFAULT_ENCODING,
    strict: bool = False,
) -> list[RawRecord]:
    """Extract raw Alipay records from ``data``."""

    if fmt != "csv":
        raise ParseError(f"unsupported export format {fmt!r}; Alipay exports are CSV", platform=PLATFORM)
    text = decode_text(data, encoding=encoding, platform=PLATFORM)
    lines, marker_seen = _data_lines(iter_lines(text))
    if not marker_seen:
        raise ParseError(
            f"no '{DASH_MARKER}' separator line mentioning {BILL_SIGNATURE!r} found",
            platform=PLATFORM,
        )
    records = read_delimited(lines, platform=PLATFORM, strict=strict)
    return truncate_at_closed(records)
