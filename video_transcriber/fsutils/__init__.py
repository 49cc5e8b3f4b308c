"""Filesystem utility helpers for the transcription service."""

from __future__ import annotations

from .atomic_write import AtomicWriteError, atomic_write_text
from .naming import is_safe_filename, sanitize_filename

__all__ = [
    "AtomicWriteError",
    "atomic_write_text",
    "is_safe_filename",
    "sanitize_filename",
]
