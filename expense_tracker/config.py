# expense_tracker/config.py
from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Dict

import yaml

from expense_tracker.database import DEFAULT_CATEGORIES, DEFAULT_DB_NAME

DEFAULT_CONFIG: Dict[str, object] = {
    "db_path": DEFAULT_DB_NAME,
    "log_level": "WARNING",
    "recent_limit": 10,
    "default_categories": DEFAULT_CATEGORIES,
}

CONFIG_PATH = Path("moneysaver.yaml")

ENV_DB_PATH = "MONEYSAVER_DB"
ENV_LOG_LEVEL = "MONEYSAVER_LOG_LEVEL"


def _merge_defaults(current: Dict[str, object], defaults: Dict[str, object]) -> Dict[str, object]:
    """Merge missing default keys into the current config recursively."""
    merged = dict(current)
    for key, value in defaults.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
    return merged


def load_config(path: str | Path | None = None) -> Dict[str, object]:
    """Read the YAML config at *path*, filling gaps from :data:`DEFAULT_CONFIG`.

    Environment variables override the file for the database path and the
    log level. A missing file yields the defaults.
    """
    target = Path(path) if path else CONFIG_PATH
    data: Dict[str, object] = {}
    if target.exists():
        with target.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {target} must contain a mapping")

    config = _merge_defaults(data, DEFAULT_CONFIG)
    if os.environ.get(ENV_DB_PATH):
        config["db_path"] = os.environ[ENV_DB_PATH]
    if os.environ.get(ENV_LOG_LEVEL):
        config["log_level"] = os.environ[ENV_LOG_LEVEL]
    return config


def save_config(config: Dict[str, object], path: str | Path | None = None) -> None:
    target = Path(path) if path else CONFIG_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as fp:
        yaml.safe_dump(config, fp, sort_keys=False)
