"""Adapters for the external tools that feed the transcription pipeline."""

from __future__ import annotations

from .errors import (
    CollaboratorError,
    OutputMissingError,
    ToolExecutionError,
    ToolNotFoundError,
)

__all__ = [
    "CollaboratorError",
    "OutputMissingError",
    "ToolExecutionError",
    "ToolNotFoundError",
]
