"""Account mapping: free-text payment method → canonical account name."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal, TypeAlias

UNKNOWN_ACCOUNT = "未知账户"

# Inputs treated as "no payment method given".
_PLACEHOLDERS = frozenset({"", "/"})

NoMatchPolicy: TypeAlias = Literal["sentinel", "passthrough"]


class AccountMapper:
    """First-match substring lookup over an ordered account map.

    Entries are tried in configuration order and the first key contained in
    the input wins; neither the longest nor the most specific key is
    preferred. Empty and placeholder inputs resolve to ``default_account``.

    ``on_no_match`` selects what an unmatched, non-empty input maps to:
    ``"sentinel"`` returns :data:`UNKNOWN_ACCOUNT`, ``"passthrough"`` returns
    the input unchanged.
    """

    __slots__ = ("_entries", "default_account", "on_no_match")

    def __init__(
        self,
        account_map: Mapping[str, str],
        *,
        default_account: str | None = None,
        on_no_match: NoMatchPolicy = "sentinel",
    ) -> None:
        if on_no_match not in ("sentinel", "passthrough"):
            raise ValueError(f"on_no_match must be 'sentinel' or 'passthrough', got {on_no_match!r}")
        self._entries: tuple[tuple[str, str], ...] = tuple(account_map.items())
        self.default_account = default_account
        self.on_no_match: NoMatchPolicy = on_no_match

    def map(self, raw: str | None) -> str:
        text = (raw or "").strip()
        if text in _PLACEHOLDERS:
            if self.default_account is not None:
                return self.default_account
            return UNKNOWN_ACCOUNT if self.on_no_match == "sentinel" else text
        for key, account in self._entries:
            if key in text:
                return account
        if self.on_no_match == "passthrough":
            return text
        return UNKNOWN_ACCOUNT


__all__ = ["AccountMapper", "NoMatchPolicy", "UNKNOWN_ACCOUNT"]
