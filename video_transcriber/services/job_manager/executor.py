"""Execution of the transcription pipeline for a single job."""

from __future__ import annotations

import contextlib
import time
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Mapping, Optional, Tuple

from ... import logging_manager as log_mgr
from ...cancellation import CANCELLED_BY_USER, CancellationToken, JobCancelledError
from ...language_policies import should_translate
from ...notifications.hub import NotificationHub
from .artifacts import ArtifactWriter
from .collaborators import PipelineCollaborators
from .dedup import DedupIndex
from .job import JobNotFoundError, JobRecord, JobSnapshot
from .registry import JobRegistry
from .stages import (
    ACQUIRE_AUDIO,
    CANCELLED_MESSAGE,
    COMPLETE_MESSAGE,
    OPTIMIZE,
    RESOLVE_METADATA,
    SUMMARIZE,
    TRANSCRIBE,
    TRANSLATE,
    StageCheckpoint,
    failure_message,
)

logger = log_mgr.get_logger().getChild("services.job_manager.executor")


@dataclass(frozen=True)
class TranscriptionJobExecutorHooks:
    """Optional callbacks invoked during job execution lifecycle."""

    on_start: Optional[Callable[[JobSnapshot], None]] = None
    on_progress: Optional[Callable[[JobSnapshot], None]] = None
    on_finish: Optional[Callable[[JobSnapshot], None]] = None
    on_failure: Optional[Callable[[JobSnapshot, Exception], None]] = None
    on_interrupted: Optional[Callable[[JobSnapshot], None]] = None
    pipeline_context_factory: Optional[
        Callable[[JobSnapshot], AbstractContextManager[object]]
    ] = None
    stage_context_factory: Optional[
        Callable[[str, JobSnapshot], AbstractContextManager[object]]
    ] = None
    record_metric: Optional[Callable[[str, float, Mapping[str, str]], None]] = None


@dataclass
class _RunState:
    job_id: str
    source_key: str
    target_language: str
    token: CancellationToken
    audio_path: Optional[Path] = None


class TranscriptionJobExecutor:
    """Drive one job through its stages and route the outcome.

    The executor is the only writer of a record while it is processing.
    Every change is pushed to the hub and followed by a snapshot save; a
    terminal state releases the dedup claim and closes the job's channels.
    """

    def __init__(
        self,
        *,
        registry: JobRegistry,
        dedup: DedupIndex,
        hub: NotificationHub,
        collaborators: PipelineCollaborators,
        artifacts: ArtifactWriter,
        persist: Callable[[], object],
        work_dir: Path,
        hooks: Optional[TranscriptionJobExecutorHooks] = None,
        error_message_limit: int = 100,
    ) -> None:
        self._registry = registry
        self._dedup = dedup
        self._hub = hub
        self._collaborators = collaborators
        self._artifacts = artifacts
        self._persist = persist
        self._work_dir = Path(work_dir)
        self._hooks = hooks or TranscriptionJobExecutorHooks()
        self._error_message_limit = error_message_limit

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def execute(self, job_id: str) -> None:
        """Run the pipeline for ``job_id`` until it completes or fails."""

        try:
            (state, already_terminal), snapshot = self._registry.update(job_id, self._begin_run)
        except JobNotFoundError:
            return
        if already_terminal:
            return

        with log_mgr.log_context(job_id=job_id, correlation_id=job_id):
            self._execute(state, snapshot)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _begin_run(record: JobRecord) -> Tuple[_RunState, bool]:
        if record.cancel_token is None:
            record.cancel_token = CancellationToken()
        state = _RunState(
            job_id=record.job_id,
            source_key=record.source_key,
            target_language=record.target_language,
            token=record.cancel_token,
        )
        return state, record.is_terminal

    def _execute(self, state: _RunState, snapshot: JobSnapshot) -> None:
        job_id = state.job_id
        started = time.perf_counter()
        final: Optional[JobSnapshot] = None
        self._dispatch_hook("on_start", snapshot)
        try:
            with self._pipeline_context(snapshot):
                self._run_stages(state)
            final = self._transition(job_id, lambda record: record.complete(COMPLETE_MESSAGE))
        except JobCancelledError as exc:
            reason = str(exc) or CANCELLED_BY_USER
            final = self._transition(
                job_id, lambda record: record.fail(reason, CANCELLED_MESSAGE)
            )
            self._dispatch_hook("on_interrupted", final or snapshot)
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            final = self._transition(
                job_id,
                lambda record: record.fail(
                    error, failure_message(error, self._error_message_limit)
                ),
            )
            self._dispatch_hook("on_failure", final or snapshot, exc)
        finally:
            self._cleanup_audio(state)
            self._dedup.release(state.source_key, job_id=job_id)
            self._hub.close_all(job_id)
            if final is not None:
                duration_ms = (time.perf_counter() - started) * 1000.0
                self._record_metric(
                    "transcriber.job.duration",
                    duration_ms,
                    {"job_id": job_id, "status": final.status.value},
                )
                self._dispatch_hook("on_finish", final)

    def _run_stages(self, state: _RunState) -> None:
        job_id = state.job_id
        url = state.source_key
        token = state.token
        services = self._collaborators

        with self._stage(state, RESOLVE_METADATA):
            metadata = services.metadata.resolve_metadata(url, token)
        title = metadata.title
        self._transition(job_id, lambda record: record.set_details(video_title=title))

        with self._stage(state, ACQUIRE_AUDIO):
            audio = services.audio.acquire_audio(url, self._work_dir, token)
        state.audio_path = Path(audio.path)
        self._mutate_quietly(job_id, lambda record: setattr(record, "audio_file_path", str(audio.path)))

        with self._stage(state, TRANSCRIBE):
            transcription = services.transcriber.transcribe(state.audio_path, None, token)
            token.raise_if_cancelled()
            raw_path = self._artifacts.write_raw_transcript(job_id, title, url, transcription.text)
        detected = transcription.detected_language

        def _record_transcript(record: JobRecord) -> bool:
            details = record.set_details(detected_language=detected)
            return record.set_artifact("raw_script_path", str(raw_path)) or details

        self._transition(job_id, _record_transcript)

        with self._stage(state, OPTIMIZE):
            optimized = services.optimizer.optimize(transcription.text, token)
            token.raise_if_cancelled()
            script_path = self._artifacts.write_transcript(job_id, title, url, optimized)
        self._transition(
            job_id, lambda record: record.set_artifact("script_path", str(script_path))
        )

        if should_translate(detected, state.target_language):
            if services.translator.available:
                with self._stage(state, TRANSLATE):
                    translated = services.translator.translate(
                        optimized, state.target_language, detected, token
                    )
                    token.raise_if_cancelled()
                    translation_path = self._artifacts.write_translation(
                        job_id, title, url, translated
                    )
                self._transition(
                    job_id,
                    lambda record: record.set_artifact("translation_path", str(translation_path)),
                )
            else:
                logger.info(
                    "Translator unavailable; skipping translation",
                    extra={"event": "transcriber.job.translation_skipped", "console_suppress": True},
                )

        with self._stage(state, SUMMARIZE):
            summary = services.summarizer.summarize(optimized, state.target_language, title, token)
            token.raise_if_cancelled()
            summary_path = self._artifacts.write_summary(job_id, title, url, summary)
        self._transition(
            job_id, lambda record: record.set_artifact("summary_path", str(summary_path))
        )
        token.raise_if_cancelled()

    @contextlib.contextmanager
    def _stage(self, state: _RunState, stage: StageCheckpoint) -> Iterator[None]:
        state.token.raise_if_cancelled()
        snapshot = self._transition(
            state.job_id, lambda record: record.advance(stage.progress, stage.message)
        )
        if snapshot is None:
            # Record removed or already terminal: the job was cancelled underneath us.
            raise JobCancelledError(state.token.reason or CANCELLED_BY_USER)
        factory = self._hooks.stage_context_factory
        context = factory(stage.name, snapshot) if factory is not None else nullcontext()
        with context:
            yield

    def _transition(
        self, job_id: str, mutator: Callable[[JobRecord], bool]
    ) -> Optional[JobSnapshot]:
        """Apply ``mutator``; on change publish and persist the new snapshot."""

        try:
            changed, snapshot = self._registry.update(job_id, mutator)
        except JobNotFoundError:
            return None
        if not changed:
            return None
        self._hub.publish(job_id, snapshot)
        self._persist()
        if not snapshot.is_terminal:
            self._dispatch_hook("on_progress", snapshot)
        return snapshot

    def _mutate_quietly(self, job_id: str, mutator: Callable[[JobRecord], object]) -> None:
        try:
            self._registry.update(job_id, mutator)
        except JobNotFoundError:
            pass

    def _cleanup_audio(self, state: _RunState) -> None:
        path = state.audio_path
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning(
                "Unable to remove scratch audio %s",
                path,
                exc_info=True,
                extra={"event": "transcriber.job.cleanup_failed"},
            )
        self._mutate_quietly(state.job_id, lambda record: setattr(record, "audio_file_path", None))

    def _dispatch_hook(self, name: str, *args) -> None:
        hook = getattr(self._hooks, name, None)
        if hook is not None:
            hook(*args)

    def _pipeline_context(self, snapshot: JobSnapshot) -> AbstractContextManager[object]:
        factory = self._hooks.pipeline_context_factory
        if factory is None:
            return nullcontext()
        return factory(snapshot)

    def _record_metric(self, name: str, value: float, attributes: Mapping[str, str]) -> None:
        recorder = self._hooks.record_metric
        if recorder is None:
            return
        recorder(name, value, attributes)


__all__ = ["TranscriptionJobExecutor", "TranscriptionJobExecutorHooks"]
