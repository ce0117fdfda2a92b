"""Adaptive category matching learned from historical ledgers.

The matcher is a two-phase object:

1. :meth:`SmartCategoryMatcher.build` scans historical transactions once and
   derives one :class:`~bill_ledger.models.CategoryPattern` per category
   (description keywords, counterparty strings, an IQR-based amount band and
   a sample-size confidence).
2. :meth:`SmartCategoryModel.match` scores a new transaction against every
   pattern and returns a category only when the winner is unambiguous.

Models are immutable. Any change to the historical ledgers is reflected only
after a new ``build``; there is no incremental update path. A model may be
shared by concurrent readers.

Scoring (per category, before confidence weighting)::

    2 * (keywords contained in "<type> <product>")
  + 5 * (1 if "<type> <product>" equals a keyword)
  + 3 * (counterparty patterns containing / contained in the counterparty)
  + 1 * (amount bands containing the amount)

Nothing is scored unless some learned keyword hits. Once one does, every
category with a nonzero score is a candidate, including ones that only match
on counterparty or amount. The best candidate is accepted when it is the only
one or beats the runner-up by more than 50%.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from .categories import UNCATEGORIZED, CategoryClassifier
from .ctv import CanonicalTransaction
from .logging_setup import get_logger
from .models import AmountRange, CategoryPattern, PatternStat

# Categories never learned from: the catch-all bucket and a legacy mixed bucket.
DEFAULT_EXCLUDED_CATEGORIES: frozenset[str] = frozenset({UNCATEGORIZED, "百货"})

STOPWORDS: frozenset[str] = frozenset(
    {"的", "了", "是", "在", "有", "和", "与", "及", "或", "但", "而", "也", "都", "很", "非常", "比较"}
)

KEYWORD_WEIGHT = 2.0
EXACT_MATCH_WEIGHT = 5.0
COUNTERPARTY_WEIGHT = 3.0
AMOUNT_WEIGHT = 1.0
# Winner must exceed runner-up * MARGIN to be accepted.
MARGIN = 1.5
# Samples needed for full confidence.
FULL_CONFIDENCE_SAMPLES = 10

_NON_WORD_RE = re.compile(r"[^\u4e00-\u9fa5a-zA-Z0-9\s]")

_logger = get_logger("bill_ledger.smart_category")


def extract_keywords(text: str | None) -> list[str]:
    """Split ``text`` into lowercase CJK/alphanumeric runs of length >= 2."""

    if not text:
        return []
    words = _NON_WORD_RE.sub(" ", text.lower()).split()
    return [w for w in words if len(w) >= 2 and w not in STOPWORDS]


def amount_band(amounts: Sequence[float]) -> AmountRange | None:
    """Return the Tukey inlier band ``[Q1 - 1.5 IQR, Q3 + 1.5 IQR]`` (floored at 0)."""

    values = sorted(a for a in amounts if a > 0)
    if not values:
        return None
    n = len(values)
    q1 = values[math.floor(n * 0.25)]
    q3 = values[math.floor(n * 0.75)]
    iqr = q3 - q1
    return AmountRange(max(0.0, q1 - 1.5 * iqr), q3 + 1.5 * iqr)


@dataclass(slots=True)
class _Samples:
    keywords: set[str] = field(default_factory=set)
    counterparties: set[str] = field(default_factory=set)
    amounts: list[float] = field(default_factory=list)
    count: int = 0


class SmartCategoryMatcher:
    """Builder for :class:`SmartCategoryModel` instances."""

    def __init__(self, *, excluded_categories: Iterable[str] = DEFAULT_EXCLUDED_CATEGORIES) -> None:
        self.excluded_categories = frozenset(excluded_categories)

    def build(self, history: Iterable[CanonicalTransaction]) -> SmartCategoryModel:
        """Derive category patterns from ``history``. Has no side effects."""

        samples: dict[str, _Samples] = {}
        for tx in history:
            category = tx.category.strip()
            if not category or category in self.excluded_categories:
                continue
            s = samples.setdefault(category, _Samples())
            s.count += 1
            s.keywords.update(extract_keywords(tx.description))
            if tx.counterparty:
                s.counterparties.add(tx.counterparty.lower())
            s.amounts.append(abs(float(tx.amount)))

        patterns: dict[str, CategoryPattern] = {}
        for category, s in samples.items():
            band = amount_band(s.amounts)
            patterns[category] = CategoryPattern(
                category=category,
                keywords=frozenset(s.keywords),
                counterparties=frozenset(s.counterparties),
                amount_ranges=(band,) if band is not None else (),
                confidence=min(1.0, s.count / FULL_CONFIDENCE_SAMPLES),
                sample_count=s.count,
            )

        _logger.info("Smart category model built with %d patterns", len(patterns))
        return SmartCategoryModel(patterns)


class SmartCategoryModel:
    """Immutable set of learned category patterns."""

    __slots__ = ("_patterns",)

    def __init__(self, patterns: Mapping[str, CategoryPattern]) -> None:
        self._patterns: dict[str, CategoryPattern] = dict(patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    @property
    def patterns(self) -> Mapping[str, CategoryPattern]:
        return dict(self._patterns)

    def score(
        self,
        transaction_type: str,
        product: str,
        counterparty: str,
        amount: float | None,
    ) -> list[tuple[str, float]]:
        """Return ``(category, weighted score)`` for every candidate, best first.

        Empty when no learned keyword occurs in ``"<type> <product>"``.
        """

        search_text = f"{transaction_type or ''} {product or ''}".lower()
        cp = (counterparty or "").lower()
        amt = abs(float(amount)) if amount is not None else 0.0

        hits = {
            category: sum(1 for k in pattern.keywords if k in search_text)
            for category, pattern in self._patterns.items()
        }
        if not any(hits.values()):
            return []

        scores: list[tuple[str, float]] = []
        for category, pattern in self._patterns.items():
            raw = KEYWORD_WEIGHT * hits[category]
            if search_text in pattern.keywords:
                raw += EXACT_MATCH_WEIGHT
            if cp:
                raw += COUNTERPARTY_WEIGHT * sum(
                    1 for p in pattern.counterparties if p in cp or cp in p
                )
            if amt > 0:
                raw += AMOUNT_WEIGHT * sum(1 for r in pattern.amount_ranges if r.contains(amt))
            weighted = raw * pattern.confidence
            if weighted > 0:
                scores.append((pattern.category, weighted))

        scores.sort(key=lambda item: item[1], reverse=True)
        return scores

    def match(
        self,
        transaction_type: str,
        product: str,
        counterparty: str,
        amount: float | None = None,
    ) -> str | None:
        """Return the unambiguous best category, or ``None`` when inconclusive."""

        scores = self.score(transaction_type, product, counterparty, amount)
        if not scores:
            return None
        best_category, best = scores[0]
        if len(scores) == 1 or best > scores[1][1] * MARGIN:
            _logger.debug("Smart matched %r with score %.2f", best_category, best)
            return best_category
        return None

    def pattern_stats(self) -> list[PatternStat]:
        stats = [
            PatternStat(p.category, p.sample_count, p.confidence) for p in self._patterns.values()
        ]
        stats.sort(key=lambda s: s.sample_count, reverse=True)
        return stats


class SmartClassifier:
    """:class:`CategoryClassifier` that consults a model before the rules.

    When the model is inconclusive the whole smart result is discarded and
    ``fallback`` classifies the same inputs.
    """

    def __init__(self, model: SmartCategoryModel, fallback: CategoryClassifier) -> None:
        self.model = model
        self.fallback = fallback

    def classify(
        self,
        transaction_type: str,
        product: str,
        counterparty: str,
        amount: float | None = None,
    ) -> str:
        matched = self.model.match(transaction_type, product, counterparty, amount)
        if matched is not None:
            return matched
        _logger.debug("Falling back to rule-based matching for %r", product)
        return self.fallback.classify(transaction_type, product, counterparty, amount)


__all__ = [
    "DEFAULT_EXCLUDED_CATEGORIES",
    "STOPWORDS",
    "SmartCategoryMatcher",
    "SmartCategoryModel",
    "SmartClassifier",
    "amount_band",
    "extract_keywords",
]
