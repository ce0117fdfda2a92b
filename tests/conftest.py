"""Pytest configuration for test isolation.

The CLI and :class:`bill_ledger.config.Settings` read ``BILL_LEDGER_*``
variables, and the CLI root callback loads a ``.env`` from the working
directory. A developer's shell or ``.env`` could otherwise leak a real ledger
directory into tests, so every test runs from its own temporary directory
with those variables cleared.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

_ENV_VARS = (
    "BILL_LEDGER_DATA_DIR",
    "BILL_LEDGER_CONFIG_DIR",
    "BILL_LEDGER_SMART_CATEGORY",
    "BILL_LEDGER_LOG_LEVEL",
)

ACCOUNT_MAP = {
    "招商银行信用卡": "招行信用卡",
    "招商银行": "招行储蓄卡",
    "花呗": "花呗",
    "余额宝": "余额宝",
    "零钱": "微信零钱",
}

CATEGORY_MAP = {
    "餐饮": ["美团", "饿了么", "外卖", "咖啡"],
    "交通": ["滴滴", "地铁", "打车"],
    "日用": ["超市", "便利店"],
    "其他": [],
}


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear ``BILL_LEDGER_*`` variables and run from a per-test directory."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir(parents=True, exist_ok=True)
    monkeypatch.chdir(os.fspath(workdir))


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    root = tmp_path / "config"
    root.mkdir()
    (root / "account_map.json").write_text(json.dumps(ACCOUNT_MAP, ensure_ascii=False), encoding="utf-8")
    (root / "category_map.json").write_text(json.dumps(CATEGORY_MAP, ensure_ascii=False), encoding="utf-8")
    return root


@pytest.fixture
def mapping_config(config_dir: Path):
    from bill_ledger.config import load_mapping_config

    return load_mapping_config(config_dir)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    root = tmp_path / "data"
    root.mkdir()
    return root
