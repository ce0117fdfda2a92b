"""Public API and orchestration for the ``bill_ledger`` package.

The pipeline is: raw export → platform extractor → raw records → normalizer
(account mapper + classifier) → canonical transactions → category resolver →
ledger writer. Everything here is synchronous and single-threaded; a parse
failure aborts the call before any ledger file is touched.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import TypeAlias

from .ctv import CanonicalTransaction
from .config import MappingConfig
from .ingest.adapters import EXTRACTORS
from .logging_setup import get_logger
from .models import ParseError, PatternStat, RawRecord
from .normalizers import BillNormalizer, get_platform
from .persistence import LedgerWriter, MergeResult, group_by_month, load_ledger_history
from .resolvers import AutomaticResolver, CategoryResolver, resolve_all
from .smart_category import SmartCategoryMatcher, SmartCategoryModel

TRANSFER_LABEL = "转账"
_SPREADSHEET_SUFFIXES = {".xlsx", ".xlsm"}

BillSource: TypeAlias = str | PathLike[str] | bytes

_logger = get_logger("bill_ledger.api")


@dataclass(frozen=True, slots=True)
class ImportResult:
    """Outcome of :func:`import_bill`."""

    platform: str
    transactions: list[CanonicalTransaction]
    merges: list[MergeResult] = field(default_factory=list)

    @property
    def written_files(self) -> list[Path]:
        paths: list[Path] = []
        for m in self.merges:
            if m.platform_path is not None:
                paths.append(m.platform_path)
            paths.append(m.month_path)
        return paths

    @property
    def category_counts(self) -> dict[str, int]:
        return summarize_categories(self.transactions)


def detect_format(path: str | PathLike[str]) -> str:
    """Infer ``"csv"`` or ``"xlsx"`` from a file name."""

    return "xlsx" if Path(path).suffix.lower() in _SPREADSHEET_SUFFIXES else "csv"


def _read_source(source: BillSource, fmt: str | None) -> tuple[bytes, str]:
    if isinstance(source, bytes):
        return source, fmt or "csv"
    path = Path(source)
    # FileNotFoundError/PermissionError propagate to the caller unchanged.
    return path.read_bytes(), fmt or detect_format(path)


def extract_records(
    data: bytes | str,
    platform: str,
    *,
    fmt: str = "csv",
    strict: bool = False,
) -> list[RawRecord]:
    """Run the platform's extractor over ``data``.

    Raises
    ------
    UnknownPlatformError
        ``platform`` has no registered profile.
    ParseError
        The export is malformed or ``fmt`` is not supported by the platform.
    """

    profile = get_platform(platform)
    if fmt not in profile.formats:
        supported = ", ".join(profile.formats)
        raise ParseError(f"unsupported format {fmt!r} (supported: {supported})", platform=profile.name)
    records = EXTRACTORS[profile.name](data, fmt=fmt, strict=strict)
    _logger.info("%s: extracted %d raw records", profile.name, len(records))
    return records


def build_smart_model(data_dir: str | PathLike[str]) -> SmartCategoryModel:
    """Learn category patterns from every month ledger under ``data_dir``."""

    return SmartCategoryMatcher().build(load_ledger_history(data_dir))


def pattern_stats(data_dir: str | PathLike[str]) -> list[PatternStat]:
    return build_smart_model(data_dir).pattern_stats()


def summarize_categories(transactions: Iterable[CanonicalTransaction]) -> dict[str, int]:
    """Count transactions per category, most common first; transfers as ``转账``."""

    counts = Counter(TRANSFER_LABEL if tx.is_transfer else tx.category for tx in transactions)
    return dict(counts.most_common())


def normalize_bill(
    source: BillSource,
    platform: str,
    *,
    config: MappingConfig,
    fmt: str | None = None,
    smart_model: SmartCategoryModel | None = None,
    strict: bool = False,
) -> list[CanonicalTransaction]:
    """Extract and normalize ``source`` without writing anything."""

    profile = get_platform(platform)
    data, resolved_fmt = _read_source(source, fmt)
    records = extract_records(data, profile.name, fmt=resolved_fmt, strict=strict)
    normalizer = BillNormalizer.from_config(profile, config, smart_model=smart_model)
    return normalizer.normalize(records)


def preview_bill(
    source: BillSource,
    platform: str,
    *,
    config: MappingConfig,
    fmt: str | None = None,
    smart: bool = False,
    data_dir: str | PathLike[str] | None = None,
) -> list[CanonicalTransaction]:
    """Return what :func:`import_bill` would merge, without touching the ledgers."""

    get_platform(platform)
    smart_model = build_smart_model(data_dir) if smart and data_dir is not None else None
    return normalize_bill(source, platform, config=config, fmt=fmt, smart_model=smart_model)


def _require_dates(transactions: Sequence[CanonicalTransaction], platform: str) -> None:
    undated = [tx for tx in transactions if tx.date is None]
    if undated:
        raise ParseError(
            f"{len(undated)} transaction(s) have no parseable date "
            f"(first: {undated[0].description!r})",
            platform=platform,
        )


def import_bill(
    source: BillSource,
    platform: str,
    *,
    config: MappingConfig,
    data_dir: str | PathLike[str],
    fmt: str | None = None,
    smart: bool = False,
    resolver: CategoryResolver | None = None,
    strict: bool = False,
) -> ImportResult:
    """Import one bill export into the ledger tree under ``data_dir``.

    Parameters
    ----------
    source:
        Path to the export, or its raw bytes (``fmt`` then defaults to csv).
    platform:
        One of ``alipay``, ``wechat``, ``jd``, ``icost``. Validated before
        the file is read.
    smart:
        Classify with the model learned from existing ledgers first.
    resolver:
        Final category resolution; defaults to :class:`AutomaticResolver`.
        Interactive resolvers cannot be combined with ``smart``.

    Notes
    -----
    Every month the export spans is merged. Months are merged one after the
    other with no locking; concurrent imports touching the same month must be
    serialized by the caller.
    """

    profile = get_platform(platform)
    resolver = resolver if resolver is not None else AutomaticResolver()
    if smart and resolver.interactive:
        raise ValueError("interactive correction is only available with rule-based matching")

    smart_model = build_smart_model(data_dir) if smart else None
    transactions = normalize_bill(
        source, profile.name, config=config, fmt=fmt, smart_model=smart_model, strict=strict
    )
    _require_dates(transactions, profile.name)
    transactions = resolve_all(transactions, resolver, config.categories)

    # Every month aggregate is read before the first write, so an unreadable
    # existing ledger aborts the whole import with nothing written.
    writer = LedgerWriter(data_dir)
    pending = [
        (writer.begin_merge(year, month), batch)
        for (year, month), batch in group_by_month(transactions).items()
    ]
    merges = [snapshot.commit(batch, profile.name) for snapshot, batch in pending]
    _logger.info(
        "%s: imported %d transactions across %d month(s)",
        profile.name,
        len(transactions),
        len(merges),
    )
    return ImportResult(platform=profile.name, transactions=transactions, merges=merges)


__all__ = [
    "ImportResult",
    "build_smart_model",
    "detect_format",
    "extract_records",
    "import_bill",
    "normalize_bill",
    "pattern_stats",
    "preview_bill",
    "summarize_categories",
]
