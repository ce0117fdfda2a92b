"""Logging for the ``bill_ledger`` package.

Library modules call ``get_logger("bill_ledger.<module>")`` and never attach
handlers. Only the CLI calls :func:`configure_logging`, which routes package
records to stderr at the level given by ``--log-level`` or
``BILL_LEDGER_LOG_LEVEL``.
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "BILL_LEDGER_LOG_LEVEL"

_ROOT_LOGGER = "bill_ledger"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Handler installed by the last configure_logging() call.
_handler: logging.Handler | None = None


def resolve_level(level: int | str | None = None) -> int:
    """Return a numeric level from ``level``, else the env var, else INFO.

    Raises ``ValueError`` for a name that is not a standard level.
    """

    if level is None:
        level = os.getenv(LOG_LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    try:
        return logging.getLevelNamesMapping()[name]
    except KeyError:
        raise ValueError(f"unknown log level {level!r}") from None


def configure_logging(level: int | str | None = None) -> None:
    """Send ``bill_ledger`` records to the current ``sys.stderr``.

    Calling again replaces the previous handler instead of adding a second
    one, so each CLI invocation in a process gets exactly one handler.
    """

    global _handler
    resolved = resolve_level(level)
    root = logging.getLogger(_ROOT_LOGGER)
    for h in list(root.handlers):
        if h is _handler or isinstance(h, logging.NullHandler):
            root.removeHandler(h)

    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(_handler)
    root.setLevel(resolved)
    root.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger; silent until :func:`configure_logging` runs."""

    root = logging.getLogger(_ROOT_LOGGER)
    if not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["LOG_LEVEL_ENV", "configure_logging", "get_logger", "resolve_level"]
