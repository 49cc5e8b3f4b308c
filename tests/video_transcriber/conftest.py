"""Shared fixtures for transcription service tests."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from video_transcriber.cancellation import CancellationToken
from video_transcriber.config_manager import TranscriberSettings
from video_transcriber.integrations.types import AudioArtifact, Transcription, VideoMetadata
from video_transcriber.services.job_manager import (
    PipelineCollaborators,
    TranscriptionJobManager,
)


# ---------------------------------------------------------------------------
# Test doubles for the external collaborators
# ---------------------------------------------------------------------------


class StubMetadata:
    def __init__(self, title: str = "Sample Video") -> None:
        self.title = title
        self.calls: List[str] = []

    def resolve_metadata(self, url: str, token: Optional[CancellationToken] = None) -> VideoMetadata:
        self.calls.append(url)
        return VideoMetadata(title=self.title, duration=12.0)


class StubAudio:
    """Writes a placeholder audio file, optionally blocking until released."""

    def __init__(self, *, gate: Optional[threading.Event] = None) -> None:
        self.gate = gate
        self.started = threading.Event()
        self.paths: List[Path] = []

    def acquire_audio(
        self, url: str, output_dir: Path, token: Optional[CancellationToken] = None
    ) -> AudioArtifact:
        self.started.set()
        if self.gate is not None:
            while not self.gate.wait(0.01):
                if token is not None:
                    token.raise_if_cancelled()
        path = Path(output_dir) / f"audio_{len(self.paths)}.m4a"
        path.write_bytes(b"audio")
        self.paths.append(path)
        return AudioArtifact(path=path)


class StubTranscriber:
    def __init__(self, text: str = "hello world", language: str = "en") -> None:
        self.text = text
        self.language = language

    def transcribe(
        self,
        audio_path: Path,
        language_hint: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> Transcription:
        return Transcription(text=self.text, detected_language=self.language)


class StubOptimizer:
    available = True

    def optimize(self, text: str, token: Optional[CancellationToken] = None) -> str:
        return text.capitalize() + "."


class StubTranslator:
    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.calls: List[tuple[str, str, Optional[str]]] = []

    def translate(
        self,
        text: str,
        target_language: str,
        source_language: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> str:
        self.calls.append((text, target_language, source_language))
        return f"[{target_language}] {text}"


class StubSummarizer:
    available = True

    def summarize(
        self,
        text: str,
        target_language: str,
        title: str,
        token: Optional[CancellationToken] = None,
    ) -> str:
        return f"Summary of {title} in {target_language}"


@pytest.fixture
def settings(tmp_path: Path) -> TranscriberSettings:
    return TranscriberSettings(
        output_dir=str(tmp_path / "output"),
        tasks_file=str(tmp_path / "state" / "tasks.json"),
        job_max_workers=2,
        heartbeat_interval_seconds=0.05,
        stream_timeout_seconds=5,
        llm_enabled=False,
    )


@pytest.fixture
def make_collaborators() -> Callable[..., PipelineCollaborators]:
    def _factory(**overrides: object) -> PipelineCollaborators:
        values = {
            "metadata": StubMetadata(),
            "audio": StubAudio(),
            "transcriber": StubTranscriber(),
            "optimizer": StubOptimizer(),
            "translator": StubTranslator(),
            "summarizer": StubSummarizer(),
        }
        values.update(overrides)
        return PipelineCollaborators(**values)  # type: ignore[arg-type]

    return _factory


@pytest.fixture
def stub_audio_factory() -> Callable[..., StubAudio]:
    return StubAudio


@pytest.fixture
def stub_transcriber_factory() -> Callable[..., StubTranscriber]:
    return StubTranscriber


@pytest.fixture
def stub_translator_factory() -> Callable[..., StubTranslator]:
    return StubTranslator


@pytest.fixture
def manager_factory(settings: TranscriberSettings, make_collaborators):
    managers: List[TranscriptionJobManager] = []

    def _factory(**kwargs: object) -> TranscriptionJobManager:
        kwargs.setdefault("settings", settings)
        if "collaborators" not in kwargs:
            kwargs["collaborators"] = make_collaborators()
        manager = TranscriptionJobManager(**kwargs)  # type: ignore[arg-type]
        managers.append(manager)
        return manager

    yield _factory
    for manager in managers:
        manager.shutdown(wait=True)
