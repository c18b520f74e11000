"""Configuration loaded from ~/.grove/groveui.yaml.

Read once at import into CONFIG. Missing keys fall back to DEFAULTS;
call save() after mutating CONFIG to persist it.
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml

CONFIG_PATH = Path(
    os.environ.get("GROVEUI_CONFIG", str(Path.home() / ".grove" / "groveui.yaml"))
).expanduser()

DEFAULTS: dict[str, Any] = {
    "server": {
        "url": "http://localhost:3001",
        "timeout": 10.0,
    },
    "notifications": {
        "poll-interval": 5.0,
    },
    "logging": {
        "file": str(Path.home() / "groveui.log"),
        "notify-level": "warning",
    },
    "toast-timeout": 3.0,
    "layouts": [],
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load(path: Path = CONFIG_PATH) -> dict[str, Any]:
    """Load config from disk merged over DEFAULTS.

    A missing or unreadable file yields the defaults.
    """
    if not path.exists():
        return copy.deepcopy(DEFAULTS)
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError):
        return copy.deepcopy(DEFAULTS)
    if not isinstance(data, dict):
        return copy.deepcopy(DEFAULTS)
    return _merge(DEFAULTS, data)


CONFIG: dict[str, Any] = load()


def save(path: Path = CONFIG_PATH) -> None:
    """Write CONFIG back to disk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(CONFIG, sort_keys=False))


def get_server_url() -> str:
    """Server base URL. GROVE_SERVER_URL wins over the config file."""
    return os.environ.get("GROVE_SERVER_URL") or CONFIG["server"]["url"]


def get_server_timeout() -> float:
    return float(CONFIG["server"].get("timeout", 10.0))


def get_poll_interval() -> float:
    return float(CONFIG["notifications"].get("poll-interval", 5.0))


def get_toast_timeout() -> float:
    return float(CONFIG.get("toast-timeout", 3.0))
