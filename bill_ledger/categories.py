"""Rule-based category classification.

The classifier walks the configured category map in order and returns the
first category that owns a keyword found in the transaction's search text.
When nothing matches, the platform's own type label is used as the category
(after an optional platform lookup table), and ``其他`` is the last resort.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Protocol

UNCATEGORIZED = "其他"

# JD's own category labels mapped onto the canonical category names. Consulted
# only after the keyword map misses.
JD_CATEGORY_MAP: dict[str, str] = {
    "医疗保健": "医疗",
    "数码电器": "数码",
    "电脑办公": "数码",
    "食品酒饮": "餐饮",
    "母婴用品": "母婴",
    "美妆个护": "美妆",
    "日用百货": "日用",
    "运动户外": "运动",
    "文体玩具": "娱乐",
    "汽车用品": "交通",
    "宠物生活": "宠物",
    "手机通讯": "数码",
    "其他网购": "购物",
}


class CategoryClassifier(Protocol):
    """Anything that maps a transaction's descriptive fields to a category."""

    def classify(
        self,
        transaction_type: str,
        product: str,
        counterparty: str,
        amount: float | None = None,
    ) -> str: ...


def build_search_text(*parts: str | None) -> str:
    return " ".join(p or "" for p in parts).lower()


class RuleBasedClassifier:
    """Keyword-substring classifier over an ordered ``category -> keywords`` map.

    Parameters
    ----------
    category_map:
        Ordered mapping of category name to keyword list. Category order and
        keyword order are both significant.
    platform_categories:
        Optional lookup from the platform's type label to a canonical
        category, consulted after the keyword map misses.
    ignored_types:
        Type labels that must never become a category on their own; such rows
        fall through to :data:`UNCATEGORIZED`.
    """

    def __init__(
        self,
        category_map: Mapping[str, Sequence[str]],
        *,
        platform_categories: Mapping[str, str] | None = None,
        ignored_types: Iterable[str] = (),
    ) -> None:
        # Keywords are lowered once here; the search text is lowered per call.
        self._rules: tuple[tuple[str, tuple[str, ...]], ...] = tuple(
            (category, tuple(k.lower() for k in keywords if k))
            for category, keywords in category_map.items()
        )
        self._platform_categories = dict(platform_categories or {})
        self._ignored_types = frozenset(ignored_types)

    @property
    def categories(self) -> list[str]:
        return [category for category, _ in self._rules]

    def match_keywords(self, transaction_type: str, product: str, counterparty: str) -> str | None:
        """Return the first category whose keyword occurs in the search text."""

        search_text = build_search_text(transaction_type, product, counterparty)
        for category, keywords in self._rules:
            for keyword in keywords:
                if keyword in search_text:
                    return category
        return None

    def classify(
        self,
        transaction_type: str,
        product: str,
        counterparty: str,
        amount: float | None = None,
    ) -> str:
        matched = self.match_keywords(transaction_type, product, counterparty)
        if matched is not None:
            return matched
        label = (transaction_type or "").strip()
        if label in self._platform_categories:
            return self._platform_categories[label]
        if label and label not in self._ignored_types:
            return label
        return UNCATEGORIZED


__all__ = [
    "CategoryClassifier",
    "JD_CATEGORY_MAP",
    "RuleBasedClassifier",
    "UNCATEGORIZED",
    "build_search_text",
]
