"""Process-wide logger with a configurable verbosity level."""

from __future__ import annotations

import enum
import sys
import threading
from datetime import datetime


class Level(enum.IntEnum):
    """Logging verbosity, from silent to most detailed."""

    NONE = 0
    ERROR = 1
    WARNING = 2
    INFO = 3
    DEBUG = 4


_LABELS = {
    Level.DEBUG: "[debug]",
    Level.INFO: "[info ]",
    Level.WARNING: "[warn ]",
    Level.ERROR: "[error]",
}

_lock = threading.Lock()
_level = Level.NONE


def set_level(level: Level | int) -> None:
    """Set the global logging level."""
    global _level
    with _lock:
        _level = Level(level)


def get_level() -> Level:
    """Return the global logging level."""
    with _lock:
        return _level


def _timestamp() -> str:
    stamp = datetime.now().astimezone().isoformat(timespec="seconds")
    if stamp.endswith("+00:00"):
        return stamp[:-6] + "Z"
    return stamp


def _log(level: Level, message: str, args: tuple) -> None:
    if level > get_level():
        return
    text = message % args if args else message
    print(f"{_timestamp()} {_LABELS[level]} {text}", file=sys.stderr)


def debug(message: str, *args) -> None:
    """Log detailed I/O."""
    _log(Level.DEBUG, message, args)


def info(message: str, *args) -> None:
    """Log a major event."""
    _log(Level.INFO, message, args)


def warning(message: str, *args) -> None:
    """Log an anomaly expected to occur occasionally."""
    _log(Level.WARNING, message, args)


def error(message: str, *args) -> None:
    """Log an anomaly not expected during normal use."""
    _log(Level.ERROR, message, args)