"""User configuration loaded from ~/.config/fab/fabtui.yaml."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

CONFIG_PATH = Path(
    os.environ.get("FABTUI_CONFIG", Path.home() / ".config" / "fab" / "fabtui.yaml")
).expanduser()

DEFAULT_SOCKET = Path.home() / ".fab" / "fab.sock"


def load(path: Path = CONFIG_PATH) -> dict:
    """Read the YAML config. Missing or empty files yield an empty dict."""
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


CONFIG: dict = load()


def socket_path() -> Path:
    """Daemon socket path: FAB_SOCKET, then the config, then ~/.fab/fab.sock."""
    value = os.environ.get("FAB_SOCKET") or CONFIG.get("socket")
    return Path(value).expanduser() if value else DEFAULT_SOCKET


def max_reconnects() -> int:
    return int(CONFIG.get("reconnect", {}).get("max-attempts", 10))


def error_timeout() -> float:
    return float(CONFIG.get("error-timeout", 5))
