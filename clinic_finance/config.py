from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Dict

import yaml

from clinic_finance.remote import DEFAULT_API_URL

DEFAULT_CONFIG: Dict[str, object] = {
    "api_url": DEFAULT_API_URL,
    "cache_dir": "~/.clinic_finance",
    "store": {
        "host": "0.0.0.0",
        "port": 3000,
    },
    "dashboard": {
        "host": "127.0.0.1",
        "port": 8000,
    },
}

CONFIG_PATH = Path("config.yaml")


def _merge_defaults(current: Dict[str, object], defaults: Dict[str, object]) -> Dict[str, object]:
    """Merge missing default keys into the current config recursively."""
    merged = dict(current)
    for key, value in defaults.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
    return merged


def _apply_env(config: Dict[str, object]) -> Dict[str, object]:
    if os.environ.get("CLINIC_FINANCE_API_URL"):
        config["api_url"] = os.environ["CLINIC_FINANCE_API_URL"]
    if os.environ.get("CLINIC_FINANCE_CACHE_DIR"):
        config["cache_dir"] = os.environ["CLINIC_FINANCE_CACHE_DIR"]
    if os.environ.get("PORT"):
        config["store"]["port"] = int(os.environ["PORT"])  # type: ignore[index]
    return config


def load_config(path: Path | str | None = None) -> Dict[str, object]:
    """Load YAML settings over the defaults, then apply environment overrides.

    Credentials are never read from here; providers take them from the
    environment.
    """
    target = Path(path) if path else CONFIG_PATH
    data: Dict[str, object] = {}
    if target.exists():
        with target.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{target} must contain a mapping at the top level")
    return _apply_env(_merge_defaults(data, DEFAULT_CONFIG))
