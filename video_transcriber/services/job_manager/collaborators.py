"""Interfaces of the external collaborators driven by the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from ... import config_manager as cfg
from ...cancellation import CancellationToken
from ...integrations.types import AudioArtifact, Transcription, VideoMetadata
from ...integrations.whisper_client import WhisperClient
from ...integrations.ytdlp_client import YtDlpClient
from ..text_services import build_text_services


class MetadataResolver(Protocol):
    def resolve_metadata(
        self, url: str, token: Optional[CancellationToken] = None
    ) -> VideoMetadata:
        ...


class AudioAcquirer(Protocol):
    def acquire_audio(
        self, url: str, output_dir: Path, token: Optional[CancellationToken] = None
    ) -> AudioArtifact:
        ...


class SpeechTranscriber(Protocol):
    def transcribe(
        self,
        audio_path: Path,
        language_hint: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> Transcription:
        ...


class TextOptimizerService(Protocol):
    available: bool

    def optimize(self, text: str, token: Optional[CancellationToken] = None) -> str:
        ...


class TranslatorService(Protocol):
    available: bool

    def translate(
        self,
        text: str,
        target_language: str,
        source_language: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> str:
        ...


class SummarizerService(Protocol):
    available: bool

    def summarize(
        self,
        text: str,
        target_language: str,
        title: str,
        token: Optional[CancellationToken] = None,
    ) -> str:
        ...


@dataclass(frozen=True)
class PipelineCollaborators:
    """Bundle of the services a pipeline run calls, in stage order."""

    metadata: MetadataResolver
    audio: AudioAcquirer
    transcriber: SpeechTranscriber
    optimizer: TextOptimizerService
    translator: TranslatorService
    summarizer: SummarizerService


def build_default_collaborators(
    settings: Optional[cfg.TranscriberSettings] = None,
) -> PipelineCollaborators:
    """Wire the yt-dlp, whisper.cpp and LLM adapters from ``settings``."""

    settings = settings or cfg.get_settings()
    ytdlp = YtDlpClient(
        ffmpeg_location=settings.ffmpeg_path,
        download_timeout=settings.ytdlp_timeout_seconds,
        metadata_timeout=settings.metadata_timeout_seconds,
    )
    whisper = WhisperClient(
        settings.whisper_executable,
        settings.whisper_model,
        timeout=settings.whisper_timeout_seconds,
    )
    optimizer, translator, summarizer = build_text_services(settings)
    return PipelineCollaborators(
        metadata=ytdlp,
        audio=ytdlp,
        transcriber=whisper,
        optimizer=optimizer,
        translator=translator,
        summarizer=summarizer,
    )


__all__ = [
    "AudioAcquirer",
    "MetadataResolver",
    "PipelineCollaborators",
    "SpeechTranscriber",
    "SummarizerService",
    "TextOptimizerService",
    "TranslatorService",
    "build_default_collaborators",
]
