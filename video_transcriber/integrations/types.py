"""Value objects returned by the external collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class VideoMetadata:
    title: str
    duration: Optional[float] = None


@dataclass(frozen=True)
class AudioArtifact:
    path: Path


@dataclass(frozen=True)
class Transcription:
    text: str
    detected_language: str


__all__ = ["AudioArtifact", "Transcription", "VideoMetadata"]
