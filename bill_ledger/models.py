"""Data models, type aliases and error types for ``bill_ledger``.

The canonical ledger row lives in :mod:`bill_ledger.ctv`; this module holds
the pieces shared by extraction, classification and the learned matcher.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, TypeAlias

# ---------------------------------------------------------------------------
# Raw extraction output
# ---------------------------------------------------------------------------

RawRecord: TypeAlias = dict[str, str]
"""A single source row keyed by the platform's own column names.

Values are always strings (spreadsheet cells are rendered to text during
extraction). Missing columns are represented by ``""`` rather than absent
keys once a record reaches the normalizer.
"""


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ParseError(ValueError):
    """Raised when a bill export cannot be turned into records.

    Covers a missing header row or data marker, strict-mode field count
    mismatches, and text that cannot be decoded with the requested encoding.
    """

    def __init__(self, message: str, *, platform: str | None = None, line_number: int = 0):
        self.platform = platform
        self.line_number = line_number
        prefix = f"{platform}: " if platform else ""
        if line_number:
            message = f"line {line_number}: {message}"
        super().__init__(prefix + message)


class UnknownPlatformError(ValueError):
    """Raised for a platform selector that has no registered profile."""


class ConfigError(ValueError):
    """Raised when a mapping configuration file is unreadable or invalid."""


# ---------------------------------------------------------------------------
# Learned category patterns
# ---------------------------------------------------------------------------


class AmountRange(NamedTuple):
    """Closed inlier band ``[min, max]`` of absolute amounts."""

    min: float
    max: float

    def contains(self, amount: float) -> bool:
        return self.min <= amount <= self.max


@dataclass(frozen=True, slots=True)
class CategoryPattern:
    """Statistical signature of one category learned from historical ledgers.

    Instances are produced by :class:`bill_ledger.smart_category.SmartCategoryMatcher`
    and never updated in place; a rebuild produces new patterns.
    """

    category: str
    keywords: frozenset[str]
    counterparties: frozenset[str]
    amount_ranges: tuple[AmountRange, ...]
    confidence: float
    sample_count: int


class PatternStat(NamedTuple):
    category: str
    sample_count: int
    confidence: float


__all__ = [
    "AmountRange",
    "CategoryPattern",
    "ConfigError",
    "ParseError",
    "PatternStat",
    "RawRecord",
    "UnknownPlatformError",
]
