"""Adapter for JD (京东) CSV bill exports.

Everything before the first line containing ``交易时间`` is preamble. There
is no separator-line handling. Rows flagged ``不计收支`` are kept here and
dropped by the normalizer.
"""

from __future__ import annotations

from ...models import ParseError, RawRecord
from ..utils import decode_text, iter_lines, lines_from_header, read_delimited

PLATFORM = "jd"
HEADER_TOKEN = "交易时间"
DEFAULT_ENCODING = "utf-8-sig"


def extract(
    data: bytes | str,
    *,
    fmt: str = "csv",
    encoding: str = DEFAULT_ENCODING,
    strict: bool = False,
) -> list[RawRecord]:
    """Extract raw JD records from a CSV export."""

    if fmt != "csv":
        raise ParseError(f"unsupported export format {fmt!r}; JD exports are CSV", platform=PLATFORM)
    text = decode_text(data, encoding=encoding, platform=PLATFORM)
    lines = lines_from_header(iter_lines(text), HEADER_TOKEN)
    if lines is None:
        raise ParseError(f"header line containing {HEADER_TOKEN!r} not found", platform=PLATFORM)
    return read_delimited(lines, platform=PLATFORM, strict=strict)
