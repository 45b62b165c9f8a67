"""Optional file logging for reconciliation decisions.

Each line is prefixed with a local timestamp so several patch updates
appended to the same file can be told apart.
"""
from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path

__all__ = [
    "enable_remap_logging",
    "remap_logging_enabled",
    "log_remap_event",
    "remap_log_path",
    "set_remap_log_path",
]


_LOG_REMAP_EVENTS = False
_LOG_PATH = Path("logs/patch_remap.log")
_LOG_LOCK = threading.Lock()


def enable_remap_logging(enabled: bool) -> None:
    """Enable or disable appending reconciliation messages to the log file."""

    global _LOG_REMAP_EVENTS
    _LOG_REMAP_EVENTS = bool(enabled)


def remap_logging_enabled() -> bool:
    """Return ``True`` when reconciliation logging is enabled."""

    return _LOG_REMAP_EVENTS


def set_remap_log_path(path: str | Path) -> None:
    """Redirect subsequent log lines to ``path``; logging stays as enabled or disabled."""

    global _LOG_PATH
    _LOG_PATH = Path(path)


def remap_log_path() -> Path:
    """Return the file reconciliation messages are appended to."""

    return _LOG_PATH


def _stamp(message: str) -> str:
    return f"{datetime.now().isoformat(timespec='milliseconds')} {message}\n"


def log_remap_event(message: str) -> None:
    """Append ``message`` to the remap log when logging is enabled.

    Usable directly as a ``debug_sink``.  Failures to write are ignored so a
    read-only working directory never breaks a patch update.
    """

    if not _LOG_REMAP_EVENTS:
        return
    line = _stamp(message)
    try:
        _LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        return
    try:
        with _LOG_LOCK:
            with _LOG_PATH.open("a", encoding="utf-8") as handle:
                handle.write(line)
    except OSError:
        return
