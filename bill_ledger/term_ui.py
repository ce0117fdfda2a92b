"""Tiny terminal UI helpers (prompt_toolkit-based).

Kept separate from the correction flow in :mod:`bill_ledger.resolvers` so the
prompts are easy to drive in tests with a pipe input.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style

from .ctv import CanonicalTransaction

_STYLE = Style.from_dict({"prompt": "bold"})


def _session_from(session: PromptSession | None) -> PromptSession:
    if session is None:
        return PromptSession()
    # Reuse the caller's input/output (tests pass a pipe + DummyOutput).
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
    )


def describe_transaction(tx: CanonicalTransaction) -> str:
    when = tx.date.isoformat() if tx.date else "?"
    return f'未分类: "{tx.description}" - ¥{abs(tx.amount):.2f} ({when}, {tx.account})'


def render_category_menu(categories: Sequence[str]) -> list[str]:
    return [f"{idx}. {name}" for idx, name in enumerate(categories, start=1)]


def parse_category_index(answer: str, n_categories: int) -> int | None:
    """Return the 0-based index for a 1-based answer, or ``None`` if invalid."""

    text = answer.strip()
    if not text.isdigit():
        return None
    idx = int(text) - 1
    if 0 <= idx < n_categories:
        return idx
    return None


def prompt_category_index(
    categories: Sequence[str],
    *,
    session: PromptSession | None = None,
    message: str = "请选择正确分类（输入序号）: ",
) -> int | None:
    """Ask for a 1-based category number; blank/invalid answers return ``None``."""

    sess = _session_from(session)
    completer = WordCompleter([str(i) for i in range(1, len(categories) + 1)], sentence=True)
    answer = sess.prompt(message, completer=completer, style=_STYLE)
    return parse_category_index(answer, len(categories))


def choose_category(
    tx: CanonicalTransaction,
    categories: Sequence[str],
    *,
    session: PromptSession | None = None,
    print_fn: Callable[..., None] = print,
) -> str | None:
    """Show ``tx`` and the numbered category list; return the chosen name or ``None``."""

    print_fn("")
    print_fn(describe_transaction(tx))
    for line in render_category_menu(categories):
        print_fn(line)
    idx = prompt_category_index(categories, session=session)
    return categories[idx] if idx is not None else None


__all__ = [
    "choose_category",
    "describe_transaction",
    "parse_category_index",
    "prompt_category_index",
    "render_category_menu",
]
