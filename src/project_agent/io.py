"""Console I/O helpers for user-facing messages."""

from __future__ import annotations

import sys
from typing import NoReturn


def say(message: str) -> None:
    """Print a normal message to stdout.

    Args:
        message: Text to print.

    Returns:
        None.

    Example:
        >>> say("Hello")
        Hello
    """
    print(message)


def die(message: str, code: int = 1) -> NoReturn:
    """Print an error message and exit.

    Args:
        message: Error message to display.
        code: Exit code to use.

    Returns:
        None. Exits the process via ``sys.exit``.
    """
    print(f"error: {message}", file=sys.stderr)
    sys.exit(code)
