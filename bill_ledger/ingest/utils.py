"""Text and spreadsheet helpers shared by the platform adapters.

Delimited text follows RFC 4180 via the stdlib :mod:`csv` module. Spreadsheet
exports are read with ``openpyxl`` (first worksheet, values only).
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Iterator, Sequence
from datetime import date, datetime, time
from typing import Any
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..models import ParseError, RawRecord

DASH_MARKER = "--"


def decode_text(data: bytes | str, *, encoding: str, platform: str) -> str:
    """Decode ``data`` strictly; already-decoded text is returned unchanged.

    A decode failure raises :class:`ParseError` rather than producing
    replacement characters.
    """

    if isinstance(data, str):
        return data
    try:
        return data.decode(encoding)
    except UnicodeDecodeError as exc:
        raise ParseError(
            f"cannot decode export as {encoding}: {exc.reason} at byte {exc.start}",
            platform=platform,
        ) from exc
    except LookupError as exc:
        raise ParseError(f"unknown text encoding {encoding!r}", platform=platform) from exc


def iter_lines(text: str) -> Iterator[str]:
    # Only \n and \r\n end a line; other Unicode separators stay in the field.
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    for line in lines:
        yield line.removesuffix("\r")


def lines_after_dash_markers(lines: Iterable[str]) -> list[str]:
    """Keep every non-marker line seen after at least one ``--`` marker line."""

    kept: list[str] = []
    markers_seen = 0
    for line in lines:
        if line.startswith(DASH_MARKER):
            markers_seen += 1
            continue
        if markers_seen > 0:
            kept.append(line)
    return kept


def lines_from_header(lines: Iterable[str], header_token: str) -> list[str] | None:
    """Return lines starting at the first one containing ``header_token``."""

    kept: list[str] = []
    found = False
    for line in lines:
        if not found and header_token in line:
            found = True
        if found:
            kept.append(line)
    return kept if found else None


def read_delimited(
    lines: Sequence[str],
    *,
    platform: str,
    strict: bool = False,
) -> list[RawRecord]:
    """Parse header + rows into records with trimmed keys and values.

    Blank lines are skipped. Rows whose field count differs from the header
    are padded/truncated unless ``strict`` is set, in which case they raise
    :class:`ParseError`.
    """

    reader = csv.reader(io.StringIO("\n".join(lines) + "\n"))
    header: list[str] | None = None
    records: list[RawRecord] = []
    for row in reader:
        if not row or all(not cell.strip() for cell in row):
            continue
        cells = [cell.strip() for cell in row]
        if header is None:
            header = cells
            continue
        if len(cells) != len(header):
            if strict:
                raise ParseError(
                    f"expected {len(header)} fields, got {len(cells)}",
                    platform=platform,
                    line_number=reader.line_num,
                )
            cells = (cells + [""] * len(header))[: len(header)]
        records.append(dict(zip(header, cells, strict=True)))
    if header is None:
        raise ParseError("no header row found", platform=platform)
    return records


def cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def read_spreadsheet(data: bytes, *, header_token: str, platform: str) -> list[RawRecord]:
    """Read the first worksheet, locating the header row by ``header_token``.

    Rows above the header row are discarded. Every later row with at least one
    non-empty cell becomes a record; cells missing from a short row become
    ``""``.
    """

    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError) as exc:
        raise ParseError(f"cannot open spreadsheet: {exc}", platform=platform) from exc
    try:
        sheet = workbook.worksheets[0]
        header: list[str] | None = None
        records: list[RawRecord] = []
        for values in sheet.iter_rows(values_only=True):
            cells = [cell_to_text(v) for v in values]
            if header is None:
                if header_token in cells:
                    header = cells
                continue
            if not any(cells):
                continue
            padded = (cells + [""] * len(header))[: len(header)]
            records.append({name: value for name, value in zip(header, padded, strict=True) if name})
    finally:
        workbook.close()
    if header is None:
        raise ParseError(f"header row containing {header_token!r} not found", platform=platform)
    return records


__all__ = [
    "DASH_MARKER",
    "cell_to_text",
    "decode_text",
    "iter_lines",
    "lines_after_dash_markers",
    "lines_from_header",
    "read_delimited",
    "read_spreadsheet",
]
