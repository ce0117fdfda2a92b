"""Adapter for WeChat Pay (微信支付) bill exports, CSV or xlsx.

CSV: every line starting with ``--`` is a separator and is dropped; all other
lines seen after the first separator form the table (header first).

xlsx: the header row is the first row containing ``交易时间``; title rows
above it are discarded.
"""

from __future__ import annotations

from ...models import ParseError, RawRecord
from ..utils import (
    decode_text,
    iter_lines,
    lines_after_dash_markers,
    read_delimited,
    read_spreadsheet,
)

PLATFORM = "wechat"
HEADER_TOKEN = "交易时间"
DEFAULT_ENCODING = "utf-8-sig"


def extract(
    data: bytes | str,
    *,
    fmt: str = "csv",
    encoding: str = DEFAULT_ENCODING,
    strict: bool = False,
) -> list[RawRecord]:
    """Extract raw WeChat records from a CSV or xlsx export."""

    if fmt == "xlsx":
        if isinstance(data, str):
            raise ParseError("xlsx input must be bytes", platform=PLATFORM)
        return read_spreadsheet(data, header_token=HEADER_TOKEN, platform=PLATFORM)
    if fmt != "csv":
        raise ParseError(f"unsupported export format {fmt!r}", platform=PLATFORM)

    text = decode_text(data, encoding=encoding, platform=PLATFORM)
    lines = lines_after_dash_markers(iter_lines(text))
    if not lines:
        raise ParseError("no '--' separator line found before the table", platform=PLATFORM)
    return read_delimited(lines, platform=PLATFORM, strict=strict)
