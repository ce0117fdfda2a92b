"""Final category resolution before a batch is persisted.

Two variants of the :class:`CategoryResolver` capability exist:

- :class:`AutomaticResolver` accepts the classifier's output as final. The
  automated ingestion path always uses it.
- :class:`InteractiveResolver` asks a human to pick a category for rows the
  rule-based classifier left as ``其他``. It blocks on terminal input and is
  meant for batch tools only.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterable, Sequence
from typing import Protocol

from prompt_toolkit import PromptSession

from .categories import UNCATEGORIZED
from .ctv import CanonicalTransaction
from .logging_setup import get_logger
from .term_ui import choose_category

_logger = get_logger("bill_ledger.resolvers")


class CategoryResolver(Protocol):
    interactive: bool

    def resolve(self, tx: CanonicalTransaction, categories: Sequence[str]) -> CanonicalTransaction: ...


class AutomaticResolver:
    """Return every transaction unchanged."""

    interactive = False

    def resolve(self, tx: CanonicalTransaction, categories: Sequence[str]) -> CanonicalTransaction:
        return tx


class InteractiveResolver:
    """Prompt for a category when a non-transfer row is uncategorized.

    Valid input replaces ``category``; blank or out-of-range input leaves the
    row as ``其他``.
    """

    interactive = True

    def __init__(
        self,
        *,
        session: PromptSession | None = None,
        print_fn: Callable[..., None] = print,
    ) -> None:
        self._session = session
        self._print = print_fn

    def needs_review(self, tx: CanonicalTransaction) -> bool:
        return not tx.is_transfer and tx.category == UNCATEGORIZED

    def resolve(self, tx: CanonicalTransaction, categories: Sequence[str]) -> CanonicalTransaction:
        if not self.needs_review(tx) or not categories:
            return tx
        chosen = choose_category(tx, categories, session=self._session, print_fn=self._print)
        if chosen is None:
            self._print(f"保持为“{UNCATEGORIZED}”")
            return tx
        self._print(f"已更新为：{chosen}")
        _logger.debug("Manual category %r for %r", chosen, tx.description)
        return dataclasses.replace(tx, category=chosen)


def resolve_all(
    transactions: Iterable[CanonicalTransaction],
    resolver: CategoryResolver,
    categories: Sequence[str],
) -> list[CanonicalTransaction]:
    return [resolver.resolve(tx, categories) for tx in transactions]


__all__ = ["AutomaticResolver", "CategoryResolver", "InteractiveResolver", "resolve_all"]
