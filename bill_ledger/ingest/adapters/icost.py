"""Adapter for icost bookkeeping-app exports, CSV or xlsx.

CSV uses the same ``--`` separator convention as WeChat. In xlsx exports the
header row is the first row containing the ``日期`` column.
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

PLATFORM = "icost"
HEADER_TOKEN = "日期"
DEFAULT_ENCODING = "utf-8-sig"


def extract(
    data: bytes | str,
    *,
    fmt: str = "csv",
    encoding: str = DEFAULT_ENCODING,
    strict: bool = False,
) -> list[RawRecord]:
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
