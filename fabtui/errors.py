"""Logging for fabtui.

Records under the "fabtui" logger go to a log file. Warnings and worse are
also raised as toasts once the app routes them with `route_toasts`.

Config keys (under `logging:`):
- file: log file path, or null for none (default: ~/.fab/fabtui.log)
- notify-level: lowest level shown as a toast, or null for none (default: warning)
"""

from __future__ import annotations

import logging
import traceback
from pathlib import Path
from typing import Callable, Literal

from fabtui.config import CONFIG

log = logging.getLogger("fabtui")

# Textual's SeverityLevel
Severity = Literal["information", "warning", "error"]
ToastCallback = Callable[[str, Severity], None]

DEFAULT_LOG_FILE = Path.home() / ".fab" / "fabtui.log"
TOAST_LIMIT = 200


def severity_for(levelno: int) -> Severity:
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warning"
    return "information"


class ToastHandler(logging.Handler):
    """Shows the first line of each record as an app notification."""

    def __init__(self, level: int = logging.WARNING) -> None:
        super().__init__(level)
        self.callback: ToastCallback | None = None
        self.setFormatter(logging.Formatter("%(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        callback = self.callback
        if callback is None:
            return
        try:
            lines = self.format(record).splitlines() or [""]
            text = lines[0]
            if len(text) > TOAST_LIMIT:
                text = text[: TOAST_LIMIT - 3] + "..."
            callback(text, severity_for(record.levelno))
        except Exception:
            self.handleError(record)


_toasts = ToastHandler()


def route_toasts(callback: ToastCallback | None) -> None:
    """Send toasts to `callback`, e.g. ``lambda m, s: app.notify(m, severity=s)``.

    None stops them, which the app does before it exits.
    """
    _toasts.callback = callback


def _level(name: object, default: int) -> int:
    value = logging.getLevelName(str(name).upper())
    return value if isinstance(value, int) else default


def _file_handler(path: Path, level: int) -> logging.Handler | None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError:
        # Unwritable location; run without a log file
        return None
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    return handler


def setup_logging(level: int = logging.DEBUG) -> None:
    """Attach the file and toast handlers to the "fabtui" logger once."""
    if log.handlers:
        return
    settings = CONFIG.get("logging")
    if not isinstance(settings, dict):
        settings = {}

    log.setLevel(level)
    log.propagate = False

    target = settings.get("file", str(DEFAULT_LOG_FILE))
    handler = _file_handler(Path(target).expanduser(), level) if target else None
    if handler is not None:
        log.addHandler(handler)

    toast_level = settings.get("notify-level", "warning")
    if toast_level:
        _toasts.setLevel(_level(toast_level, logging.WARNING))
        log.addHandler(_toasts)

    if handler is not None:
        log.debug(f"Logging to {handler.baseFilename}")


def log_exception(e: BaseException, context: str = "") -> str:
    """Log `e` with its traceback and return a one-line summary for the UI."""
    summary = f"{context}: {e}" if context else str(e)
    tb = "".join(traceback.format_exception(type(e), e, e.__traceback__))
    log.error(f"{summary}\n{tb}")
    return summary
