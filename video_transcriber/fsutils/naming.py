"""Filename helpers for generated artifacts."""

from __future__ import annotations

import re

_UNSAFE_CHARS = re.compile(r"[^\w\-.]+", re.ASCII)
_REPEATED_UNDERSCORES = re.compile(r"_+")
_SAFE_FILENAME = re.compile(r"^[\w\-.]+$", re.ASCII)
MAX_FILENAME_STEM = 100


def sanitize_filename(value: str | None, *, default: str = "untitled") -> str:
    """Return ``value`` reduced to a filesystem-safe stem."""

    if not value:
        return default
    cleaned = _UNSAFE_CHARS.sub("_", value)
    cleaned = _REPEATED_UNDERSCORES.sub("_", cleaned).strip("_")
    cleaned = cleaned[:MAX_FILENAME_STEM]
    return cleaned or default


def is_safe_filename(value: str) -> bool:
    """Return whether ``value`` is a bare file name with no traversal."""

    return bool(_SAFE_FILENAME.match(value)) and ".." not in value


__all__ = ["MAX_FILENAME_STEM", "is_safe_filename", "sanitize_filename"]
