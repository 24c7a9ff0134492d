"""Leveled terminal logging for project-agent commands.

Messages at ``warning`` and above go to stderr so they stay visible while a
run's stdout is piped. The threshold comes from ``--log-level`` or
``PROJECT_AGENT_LOG_LEVEL``; color is dropped under ``NO_COLOR``,
``PROJECT_AGENT_NO_COLOR`` or ``--no-color``.
"""

from __future__ import annotations

import os
import sys
from enum import IntEnum

from rich.console import Console
from rich.text import Text

LOG_LEVEL_ENV = "PROJECT_AGENT_LOG_LEVEL"
NO_COLOR_ENV = "PROJECT_AGENT_NO_COLOR"


class LogLevel(IntEnum):
    TRACE = 10
    DEBUG = 20
    INFO = 30
    SUCCESS = 35
    WARNING = 40
    ERROR = 50


LEVEL_NAMES = tuple(level.name.lower() for level in LogLevel)
_ALIASES = {"warn": LogLevel.WARNING}
_STYLES = {
    LogLevel.TRACE: "dim",
    LogLevel.DEBUG: "cyan",
    LogLevel.SUCCESS: "green",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "bold red",
}
_DEFAULT_LEVEL = LogLevel.INFO

_configured_level: LogLevel | None = None
_no_color_override: bool | None = None


def parse_level(value: str | None) -> LogLevel:
    """Map a level name to a ``LogLevel``; blank or unknown names mean info.

    Example:
        >>> parse_level(" Debug ").name, parse_level("warn").name, parse_level("loud").name
        ('DEBUG', 'WARNING', 'INFO')
    """
    normalized = (value or "").strip().lower()
    if normalized in _ALIASES:
        return _ALIASES[normalized]
    try:
        return LogLevel[normalized.upper()]
    except KeyError:
        return _DEFAULT_LEVEL


def configured_level() -> LogLevel:
    global _configured_level
    if _configured_level is None:
        _configured_level = parse_level(os.environ.get(LOG_LEVEL_ENV))
    return _configured_level


def set_level(value: str | None) -> None:
    """Set the active threshold, overriding the environment."""
    global _configured_level
    _configured_level = parse_level(value)


def set_no_color(value: bool) -> None:
    global _no_color_override
    _no_color_override = value


def is_enabled(level: LogLevel) -> bool:
    return level >= configured_level()


def _color_disabled() -> bool:
    if _no_color_override:
        return True
    return any(os.environ.get(name) for name in ("NO_COLOR", NO_COLOR_ENV))


def emit(
    level: LogLevel,
    message: str,
    *,
    style: str | None = None,
    stderr: bool | None = None,
) -> None:
    """Print ``message`` when ``level`` passes the active threshold.

    The console is built per call so redirected ``sys.stdout`` and
    ``sys.stderr`` streams are honored.
    """
    if not is_enabled(level):
        return
    to_stderr = level >= LogLevel.WARNING if stderr is None else stderr
    console = Console(
        file=sys.stderr if to_stderr else sys.stdout,
        soft_wrap=True,
        highlight=False,
        no_color=_color_disabled(),
    )
    console.print(Text(message, style=style or _STYLES.get(level, "")))


def trace(message: str) -> None:
    emit(LogLevel.TRACE, message)


def debug(message: str) -> None:
    emit(LogLevel.DEBUG, message)


def info(message: str) -> None:
    emit(LogLevel.INFO, message)


def success(message: str) -> None:
    emit(LogLevel.SUCCESS, message)


def warning(message: str) -> None:
    emit(LogLevel.WARNING, message)


def error(message: str) -> None:
    emit(LogLevel.ERROR, message)
