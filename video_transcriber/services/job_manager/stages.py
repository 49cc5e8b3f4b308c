"""Fixed stage checkpoints of the transcription pipeline."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StageCheckpoint:
    """Progress and status message published before a stage runs."""

    name: str
    progress: int
    message: str


QUEUED_MESSAGE = "Task created, waiting to start..."
RESOLVE_METADATA = StageCheckpoint("resolve_metadata", 10, "Resolving video information...")
ACQUIRE_AUDIO = StageCheckpoint(
    "acquire_audio", 15, "Downloading video and converting to audio..."
)
TRANSCRIBE = StageCheckpoint("transcribe", 35, "Audio ready, transcribing...")
OPTIMIZE = StageCheckpoint("optimize", 55, "Transcription finished, optimizing text...")
TRANSLATE = StageCheckpoint("translate", 70, "Translating text...")
SUMMARIZE = StageCheckpoint("summarize", 80, "Generating summary...")
COMPLETE_MESSAGE = "Processing complete!"
CANCELLED_MESSAGE = "Task cancelled"
FAILURE_PREFIX = "Processing failed: "

PIPELINE_STAGES = (
    RESOLVE_METADATA,
    ACQUIRE_AUDIO,
    TRANSCRIBE,
    OPTIMIZE,
    TRANSLATE,
    SUMMARIZE,
)


def failure_message(error: str, limit: int) -> str:
    """Return the short user-facing message for ``error``."""

    return f"{FAILURE_PREFIX}{error[:limit]}..."


__all__ = [
    "ACQUIRE_AUDIO",
    "CANCELLED_MESSAGE",
    "COMPLETE_MESSAGE",
    "FAILURE_PREFIX",
    "OPTIMIZE",
    "PIPELINE_STAGES",
    "QUEUED_MESSAGE",
    "RESOLVE_METADATA",
    "SUMMARIZE",
    "StageCheckpoint",
    "TRANSCRIBE",
    "TRANSLATE",
    "failure_message",
]
