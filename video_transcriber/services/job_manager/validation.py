"""Input checks applied before a job is claimed."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from .job import InvalidJobRequestError

MAX_SOURCE_KEY_LENGTH = 2048
_ALLOWED_SCHEMES = ("http", "https")
_LANGUAGE_PATTERN = re.compile(r"^[A-Za-z]{2,3}([-_][A-Za-z0-9]{2,8})*$")


def validate_source_key(value: object) -> str:
    """Return the trimmed video URL or raise :class:`InvalidJobRequestError`."""

    if not isinstance(value, str):
        raise InvalidJobRequestError("Video URL must be a string")
    candidate = value.strip()
    if not candidate:
        raise InvalidJobRequestError("Video URL is required")
    if len(candidate) > MAX_SOURCE_KEY_LENGTH:
        raise InvalidJobRequestError(
            f"Video URL exceeds {MAX_SOURCE_KEY_LENGTH} characters"
        )
    if any(char.isspace() for char in candidate):
        raise InvalidJobRequestError("Video URL must not contain whitespace")
    try:
        parsed = urlsplit(candidate)
    except ValueError as exc:
        raise InvalidJobRequestError(f"Invalid video URL: {exc}") from exc
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES or not parsed.netloc:
        raise InvalidJobRequestError("Video URL must be an http(s) address")
    return candidate


def validate_target_language(value: object) -> str:
    """Return the trimmed language tag or raise :class:`InvalidJobRequestError`."""

    if not isinstance(value, str) or not value.strip():
        raise InvalidJobRequestError("Summary language is required")
    candidate = value.strip()
    if not _LANGUAGE_PATTERN.match(candidate):
        raise InvalidJobRequestError(f"Unsupported summary language: {candidate!r}")
    return candidate


__all__ = ["MAX_SOURCE_KEY_LENGTH", "validate_source_key", "validate_target_language"]
