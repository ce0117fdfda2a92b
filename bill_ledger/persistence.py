"""Ledger file persistence: per-month aggregates and per-platform batches.

Layout (relative to the data root)::

    <YYYY>/<MM>.csv             month aggregate across all platforms
    <YYYY>/<MM>_<platform>.csv  the latest import batch for that platform

Merging into a month aggregate is an explicit read-modify-write:
:meth:`LedgerWriter.begin_merge` snapshots the current file and
:meth:`MonthMerge.commit` rewrites it with the snapshot plus the new batch.
Nothing here locks the file. Two merges into the same month that overlap
(both snapshots taken before either commit) silently lose the rows of the
first commit, so callers must serialize merges per month file.

Atomicity: writes target ``.tmp`` first and then ``os.replace`` into place,
so readers never observe a half-written file.
"""

from __future__ import annotations

import csv
import os
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path

from .ctv import (
    LEDGER_COLUMNS,
    LEDGER_COLUMNS_WITH_TIME,
    CanonicalTransaction,
    columns_for,
    from_row,
    to_row,
)
from .logging_setup import get_logger
from .models import ParseError

_YEAR_DIR_RE = re.compile(r"^\d{4}$")
_KNOWN_LAYOUTS: tuple[tuple[str, ...], ...] = (LEDGER_COLUMNS, LEDGER_COLUMNS_WITH_TIME)

_logger = get_logger("bill_ledger.persistence")


# ----------------------------------------------------------------------------
# File I/O
# ----------------------------------------------------------------------------


def read_ledger(path: str | PathLike[str]) -> tuple[tuple[str, ...], list[CanonicalTransaction]]:
    """Read a ledger CSV and return ``(header, transactions)``.

    Raises :class:`ParseError` when a non-empty date, time or amount cell
    cannot be parsed. Merges rewrite whole files, so such a row is refused
    rather than read back lossily.
    """

    p = Path(path)
    with p.open(encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        header = tuple((name or "").strip() for name in (reader.fieldnames or ()))
        rows: list[CanonicalTransaction] = []
        for row in reader:
            cleaned = {(k or "").strip(): v for k, v in row.items() if k is not None}
            if all(not (v or "").strip() for v in cleaned.values()):
                continue
            try:
                rows.append(from_row(cleaned))
            except ValueError as exc:
                raise ParseError(f"ledger {p} line {reader.line_num}: {exc}") from exc
    return header, rows


def write_ledger(
    path: str | PathLike[str],
    transactions: Iterable[CanonicalTransaction],
    columns: Sequence[str] = LEDGER_COLUMNS,
) -> None:
    """Write header + rows to ``path`` atomically (``.tmp`` then ``os.replace``)."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(p.name + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f, quoting=csv.QUOTE_MINIMAL)
            writer.writerow(columns)
            for tx in transactions:
                writer.writerow(to_row(tx, columns))
        os.replace(tmp, p)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


# ----------------------------------------------------------------------------
# Month merge
# ----------------------------------------------------------------------------


def group_by_month(
    transactions: Iterable[CanonicalTransaction],
) -> dict[tuple[int, int], list[CanonicalTransaction]]:
    """Group transactions by ``(year, month)`` in first-seen order.

    Raises ``ValueError`` for a transaction without a date.
    """

    groups: dict[tuple[int, int], list[CanonicalTransaction]] = {}
    for tx in transactions:
        if tx.date is None:
            raise ValueError(f"transaction has no date: {tx.description!r}")
        groups.setdefault((tx.date.year, tx.date.month), []).append(tx)
    return groups


@dataclass(frozen=True, slots=True)
class MergeResult:
    platform_path: Path | None
    month_path: Path
    added: int
    total: int


@dataclass(slots=True)
class MonthMerge:
    """Snapshot of one month aggregate taken by :meth:`LedgerWriter.begin_merge`."""

    writer: LedgerWriter
    year: int
    month: int
    header: tuple[str, ...] | None
    existing: list[CanonicalTransaction] = field(default_factory=list)

    @property
    def path(self) -> Path:
        return self.writer.month_path(self.year, self.month)

    def columns(self, batch: Sequence[CanonicalTransaction]) -> tuple[str, ...]:
        if self.header is None:
            return columns_for(batch)
        if self.header in _KNOWN_LAYOUTS:
            return self.header
        _logger.warning("Unexpected header in %s; rewriting with canonical columns", self.path)
        return columns_for([*self.existing, *batch])

    def commit(
        self,
        batch: Sequence[CanonicalTransaction],
        platform: str | None = None,
    ) -> MergeResult:
        """Rewrite the month aggregate as snapshot + ``batch``.

        When ``platform`` is given, ``<MM>_<platform>.csv`` is (re)written
        from ``batch`` first.
        """

        platform_path: Path | None = None
        if platform:
            platform_path = self.writer.platform_path(self.year, self.month, platform)
            write_ledger(platform_path, batch, columns_for(batch))

        rows = [*self.existing, *batch]
        write_ledger(self.path, rows, self.columns(batch))
        _logger.info("Merged %d rows into %s (%d total)", len(batch), self.path, len(rows))
        return MergeResult(
            platform_path=platform_path,
            month_path=self.path,
            added=len(batch),
            total=len(rows),
        )


class LedgerWriter:
    """Merge canonical transaction batches into the ledger tree under ``data_dir``.

    Not safe for concurrent merges into the same month; see module docs.
    """

    def __init__(self, data_dir: str | PathLike[str]) -> None:
        self.data_dir = Path(data_dir)

    def year_dir(self, year: int) -> Path:
        return self.data_dir / f"{year:04d}"

    def month_path(self, year: int, month: int) -> Path:
        return self.year_dir(year) / f"{month:02d}.csv"

    def platform_path(self, year: int, month: int, platform: str) -> Path:
        return self.year_dir(year) / f"{month:02d}_{platform}.csv"

    def begin_merge(self, year: int, month: int) -> MonthMerge:
        if not 1 <= month <= 12:
            raise ValueError(f"month must be 1..12, got {month}")
        path = self.month_path(year, month)
        if not path.exists():
            return MonthMerge(self, year, month, header=None)
        header, existing = read_ledger(path)
        return MonthMerge(self, year, month, header=header, existing=existing)

    def merge(
        self,
        batch: Sequence[CanonicalTransaction],
        year: int,
        month: int,
        platform: str,
    ) -> MergeResult:
        return self.begin_merge(year, month).commit(batch, platform)


# ----------------------------------------------------------------------------
# History
# ----------------------------------------------------------------------------


def iter_month_ledger_paths(data_dir: str | PathLike[str]) -> list[Path]:
    """Return month-aggregate files under ``data_dir`` in chronological order.

    Per-platform batch files (names containing ``_``) are excluded so that no
    transaction is counted twice.
    """

    root = Path(data_dir)
    if not root.is_dir():
        return []
    paths: list[Path] = []
    for year_dir in sorted(p for p in root.iterdir() if p.is_dir() and _YEAR_DIR_RE.match(p.name)):
        paths.extend(
            sorted(p for p in year_dir.iterdir() if p.suffix == ".csv" and "_" not in p.name)
        )
    return paths


def load_ledger_history(data_dir: str | PathLike[str]) -> list[CanonicalTransaction]:
    """Read every month aggregate under ``data_dir``.

    Files that cannot be read, decoded or parsed are logged and skipped so
    one bad month does not prevent learning from the rest.
    """

    history: list[CanonicalTransaction] = []
    for path in iter_month_ledger_paths(data_dir):
        try:
            _header, rows = read_ledger(path)
        except (OSError, UnicodeDecodeError, csv.Error, ParseError) as exc:
            _logger.error("Error reading ledger %s: %s", path, exc)
            continue
        history.extend(rows)
    _logger.debug("Loaded %d historical transactions from %s", len(history), data_dir)
    return history


__all__ = [
    "LedgerWriter",
    "MergeResult",
    "MonthMerge",
    "group_by_month",
    "iter_month_ledger_paths",
    "load_ledger_history",
    "read_ledger",
    "write_ledger",
]
