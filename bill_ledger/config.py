"""Runtime settings and mapping-table configuration.

Two externally owned JSON files drive the rule-based stages:

- ``account_map.json``: ``{"substring": "Canonical account", ...}``
- ``category_map.json``: ``{"Category": ["keyword", ...], ...}``

Both are validated with pydantic and loaded into plain, ordered ``dict``
objects. Insertion order is preserved from the JSON document and is
semantically significant (first match wins in both mappers).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from os import PathLike
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .logging_setup import get_logger
from .models import ConfigError

ACCOUNT_MAP_FILENAME = "account_map.json"
CATEGORY_MAP_FILENAME = "category_map.json"

_TRUTHY = {"1", "true", "yes", "on"}

_logger = get_logger("bill_ledger.config")


class MappingConfig(BaseModel):
    """Validated account and category lookup tables."""

    model_config = ConfigDict(strict=True, extra="forbid", str_strip_whitespace=True, frozen=True)

    account_map: dict[str, str]
    category_map: dict[str, list[str]]

    @field_validator("account_map")
    @classmethod
    def _no_empty_account_keys(cls, v: dict[str, str]) -> dict[str, str]:
        # An empty key would match every input and shadow all later entries.
        for key, value in v.items():
            if not key.strip():
                raise ValueError("account_map keys must be non-empty")
            if not value.strip():
                raise ValueError(f"account_map[{key!r}] must name an account")
        return v

    @field_validator("category_map")
    @classmethod
    def _clean_keywords(cls, v: dict[str, list[str]]) -> dict[str, list[str]]:
        cleaned: dict[str, list[str]] = {}
        for category, keywords in v.items():
            if not category.strip():
                raise ValueError("category_map keys must be non-empty")
            cleaned[category.strip()] = [k.strip() for k in keywords if k.strip()]
        return cleaned

    @property
    def categories(self) -> list[str]:
        return list(self.category_map)


def _read_json(path: Path) -> object:
    try:
        with path.open(encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"mapping file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"mapping file is not valid JSON: {path}: {exc}") from exc


def load_mapping_config(config_dir: str | PathLike[str]) -> MappingConfig:
    """Load and validate ``account_map.json`` and ``category_map.json``."""

    root = Path(config_dir)
    raw_accounts = _read_json(root / ACCOUNT_MAP_FILENAME)
    raw_categories = _read_json(root / CATEGORY_MAP_FILENAME)
    try:
        config = MappingConfig(account_map=raw_accounts, category_map=raw_categories)
    except ValidationError as exc:
        raise ConfigError(f"invalid mapping configuration in {root}: {exc}") from exc
    _logger.debug(
        "Loaded %d account keys and %d categories from %s",
        len(config.account_map),
        len(config.category_map),
        root,
    )
    return config


@dataclass(frozen=True, slots=True)
class Settings:
    """Process settings resolved from the environment.

    ``BILL_LEDGER_DATA_DIR``
        Root of the ``<YYYY>/<MM>.csv`` ledger tree (default ``./data``).
    ``BILL_LEDGER_CONFIG_DIR``
        Directory holding the two mapping JSON files (default CWD).
    ``BILL_LEDGER_SMART_CATEGORY``
        Enable the learned matcher by default (``1``/``true``).
    """

    data_dir: Path
    config_dir: Path
    smart_category: bool = False

    @classmethod
    def from_env(cls) -> Settings:
        data_dir = os.getenv("BILL_LEDGER_DATA_DIR")
        config_dir = os.getenv("BILL_LEDGER_CONFIG_DIR")
        smart = (os.getenv("BILL_LEDGER_SMART_CATEGORY") or "").strip().lower() in _TRUTHY
        return cls(
            data_dir=Path(data_dir).expanduser() if data_dir and data_dir.strip() else Path.cwd() / "data",
            config_dir=(
                Path(config_dir).expanduser() if config_dir and config_dir.strip() else Path.cwd()
            ),
            smart_category=smart,
        )


__all__ = ["MappingConfig", "Settings", "load_mapping_config"]
