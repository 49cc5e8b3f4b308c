"""Background video transcription service."""

from __future__ import annotations

from .environment import load_environment

load_environment()

__all__ = ["load_environment"]
