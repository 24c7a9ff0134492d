"""Helpers for filesystem- and branch-safe naming."""

from __future__ import annotations

import re

_INVALID_RUN_RE = re.compile(r"[^a-z0-9._-]+")


def sanitize_slug(value: str, *, fallback: str) -> str:
    """Return a lowercase slug safe for directory and branch names.

    Every run of characters outside ``[a-z0-9._-]`` collapses to a single
    hyphen and edge hyphens are dropped. Empty results become ``fallback``.

    Example:
        >>> sanitize_slug("  BRI 32 / Hot Fix  ", fallback="run")
        'bri-32-hot-fix'
        >>> sanitize_slug("///", fallback="run")
        'run'
    """
    cleaned = _INVALID_RUN_RE.sub("-", value.strip().lower())
    cleaned = cleaned.strip("-")
    # "." and ".." would name the parent directory itself.
    if not cleaned.strip("."):
        return fallback
    return cleaned
