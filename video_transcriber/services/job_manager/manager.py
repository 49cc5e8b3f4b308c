"""High-level orchestration of transcription jobs."""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import CancelledError, ThreadPoolExecutor
from dataclasses import dataclass
from typing import ContextManager, Dict, Mapping, Optional, Tuple

from ... import config_manager as cfg
from ... import logging_manager as log_mgr
from ... import observability
from ...cancellation import CANCELLED_BY_USER, CancellationToken
from ...jobs.persistence import INTERRUPTED_ERROR, INTERRUPTED_MESSAGE, JobSnapshotStore
from ...notifications.hub import JobChannel, NotificationHub
from .artifacts import ArtifactWriter
from .collaborators import PipelineCollaborators, build_default_collaborators
from .dedup import DedupIndex
from .executor import TranscriptionJobExecutor, TranscriptionJobExecutorHooks
from .job import JobNotFoundError, JobRecord, JobSnapshot, JobStatus
from .registry import JobRegistry
from .stages import CANCELLED_MESSAGE, QUEUED_MESSAGE
from .validation import validate_source_key, validate_target_language

logger = log_mgr.logger

CREATED_MESSAGE = "Task created, processing..."
JOINED_MESSAGE = "This video is already being processed, please wait..."


@dataclass(frozen=True)
class JobSubmission:
    """Outcome of :meth:`TranscriptionJobManager.create_or_join`."""

    job_id: str
    created: bool

    @property
    def message(self) -> str:
        return CREATED_MESSAGE if self.created else JOINED_MESSAGE


class TranscriptionJobManager:
    """Accept transcription requests, run them in the background and track them."""

    def __init__(
        self,
        *,
        settings: Optional[cfg.TranscriberSettings] = None,
        collaborators: Optional[PipelineCollaborators] = None,
        registry: Optional[JobRegistry] = None,
        dedup: Optional[DedupIndex] = None,
        hub: Optional[NotificationHub] = None,
        snapshot_store: Optional[JobSnapshotStore] = None,
        max_workers: Optional[int] = None,
        restore: bool = True,
    ) -> None:
        self._settings = settings or cfg.get_settings()
        self._registry = registry or JobRegistry()
        self._dedup = dedup or DedupIndex()
        self._hub = hub or NotificationHub(
            heartbeat_interval=self._settings.heartbeat_interval_seconds
        )
        self._store = snapshot_store or JobSnapshotStore(self._settings.tasks_path)
        self._collaborators = collaborators or build_default_collaborators(self._settings)

        output_dir = self._settings.output_path
        output_dir.mkdir(parents=True, exist_ok=True)

        configured_workers = (
            max_workers if max_workers is not None else self._settings.job_max_workers
        )
        self._max_workers = max(1, int(configured_workers))
        self._executor = ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="transcriber-job"
        )
        observability.worker_pool_event("created", max_workers=self._max_workers)
        self._shutdown_lock = threading.Lock()
        self._closed = False

        hooks = TranscriptionJobExecutorHooks(
            on_start=self._log_job_started,
            on_progress=self._log_job_progress,
            on_finish=self._log_job_finished,
            on_failure=self._log_job_error,
            on_interrupted=self._log_job_interrupted,
            pipeline_context_factory=self._pipeline_operation_context,
            stage_context_factory=self._stage_context,
            record_metric=self._record_job_metric,
        )
        self._job_executor = TranscriptionJobExecutor(
            registry=self._registry,
            dedup=self._dedup,
            hub=self._hub,
            collaborators=self._collaborators,
            artifacts=ArtifactWriter(output_dir),
            persist=self.persist,
            work_dir=output_dir,
            hooks=hooks,
            error_message_limit=self._settings.error_message_limit,
        )
        if restore:
            self._restore_persisted_jobs()

    # ------------------------------------------------------------------
    # properties
    # ------------------------------------------------------------------
    @property
    def settings(self) -> cfg.TranscriberSettings:
        return self._settings

    @property
    def hub(self) -> NotificationHub:
        return self._hub

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def _restore_persisted_jobs(self) -> None:
        """Load persisted jobs; interrupted runs come back as failed."""

        stored = self._store.load()
        if not stored:
            return
        for job_id, snapshot in stored.items():
            self._registry.put(job_id, JobRecord.from_snapshot(snapshot))
        self.persist()
        logger.info(
            "Restored persisted jobs",
            extra={
                "event": "transcriber.job.restored",
                "attributes": {"count": len(stored), "path": str(self._store.path)},
                "console_suppress": True,
            },
        )

    def persist(self) -> bool:
        """Write the whole registry to the durable snapshot."""

        return self._store.save_from(self._registry.snapshot_all)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work, stop the worker pool and save a final snapshot.

        With ``wait`` false, queued jobs never start and running jobs are
        cancelled; both are recorded as interrupted before the snapshot.
        """

        with self._shutdown_lock:
            if self._closed:
                return
            self._closed = True
        if wait:
            self._executor.shutdown(wait=True)
        else:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._interrupt_unfinished()
        observability.worker_pool_event("shutdown", max_workers=self._max_workers)
        self.persist()

    def _interrupt_unfinished(self) -> None:
        for job_id, snapshot in self._registry.snapshot_all().items():
            if snapshot.is_terminal:
                continue
            try:
                changed, updated = self._registry.update(job_id, self._interrupt_record)
            except JobNotFoundError:
                continue
            if not changed:
                continue
            self._hub.publish(job_id, updated)
            self._dedup.release(updated.source_key, job_id=job_id)
            self._hub.close_all(job_id)
            with log_mgr.log_context(job_id=job_id, correlation_id=job_id):
                logger.info(
                    "Transcription job interrupted by shutdown",
                    extra={
                        "event": "transcriber.job.interrupted",
                        "status": updated.status.value,
                        "attributes": {"progress": updated.progress},
                        "console_suppress": True,
                    },
                )

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def create_or_join(self, source_key: str, target_language: str) -> JobSubmission:
        """Return the job processing ``source_key``, starting one when none is active."""

        source_key = validate_source_key(source_key)
        target_language = validate_target_language(target_language)

        def _register(job_id: str) -> None:
            record = JobRecord(
                job_id=job_id,
                source_key=source_key,
                target_language=target_language,
                message=QUEUED_MESSAGE,
                cancel_token=CancellationToken(),
            )
            self._registry.put(job_id, record)

        job_id, created = self._dedup.claim(source_key, on_claim=_register)
        if not created:
            with log_mgr.log_context(job_id=job_id, correlation_id=job_id):
                logger.info(
                    "Joined active transcription job",
                    extra={
                        "event": "transcriber.job.joined",
                        "status": JobStatus.PROCESSING.value,
                        "attributes": {"source_key": source_key},
                        "console_suppress": True,
                    },
                )
            return JobSubmission(job_id=job_id, created=False)

        self.persist()
        try:
            future = self._executor.submit(self._job_executor.execute, job_id)
        except RuntimeError:
            # Pool already shut down.
            self._registry.remove(job_id)
            self._dedup.release(source_key, job_id=job_id)
            self.persist()
            raise
        self._attach_future(job_id, future)

        with log_mgr.log_context(job_id=job_id, correlation_id=job_id):
            logger.info(
                "Transcription job submitted",
                extra={
                    "event": "transcriber.job.submitted",
                    "status": JobStatus.PROCESSING.value,
                    "attributes": {
                        "source_key": source_key,
                        "target_language": target_language,
                    },
                    "console_suppress": True,
                },
            )
        return JobSubmission(job_id=job_id, created=True)

    def get(self, job_id: str) -> JobSnapshot:
        """Return the current snapshot of ``job_id``."""

        return self._registry.get(job_id)

    def list_jobs(self) -> Dict[str, JobSnapshot]:
        return self._registry.snapshot_all()

    def is_processing(self, source_key: str) -> bool:
        return self._dedup.active_job(source_key.strip()) is not None

    def cancel_and_delete(self, job_id: str) -> JobSnapshot:
        """Cancel ``job_id`` if it is still running, then forget it.

        Raises :class:`JobNotFoundError` when the id is unknown.
        """

        changed, snapshot = self._registry.update(job_id, self._cancel_record)
        if changed:
            self._hub.publish(job_id, snapshot)
        try:
            self._registry.remove(job_id)
        except JobNotFoundError:
            # Deleted concurrently; the rest of the teardown is idempotent.
            pass
        self._dedup.release(snapshot.source_key, job_id=job_id)
        self._hub.close_all(job_id)
        self.persist()

        with log_mgr.log_context(job_id=job_id, correlation_id=job_id):
            if changed:
                logger.info(
                    "Transcription job cancelled",
                    extra={
                        "event": "transcriber.job.cancelled",
                        "status": snapshot.status.value,
                        "console_suppress": True,
                    },
                )
            logger.info(
                "Transcription job deleted",
                extra={
                    "event": "transcriber.job.deleted",
                    "status": snapshot.status.value,
                    "console_suppress": True,
                },
            )
        return snapshot

    def subscribe(
        self,
        job_id: str,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> JobChannel:
        """Open a live channel for a known job."""

        channel, _ = self.open_stream(job_id, loop=loop)
        return channel

    def open_stream(
        self,
        job_id: str,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> Tuple[JobChannel, JobSnapshot]:
        """Subscribe to ``job_id`` and return the channel with the current snapshot.

        The snapshot is taken after subscribing so no update falls between
        the two. A job that is already terminal gets a channel that ends
        right away.
        """

        channel = self._hub.subscribe(job_id, loop=loop)
        try:
            snapshot = self._registry.get(job_id)
        except JobNotFoundError:
            channel.close()
            raise
        channel.note_delivered(snapshot)
        if snapshot.is_terminal:
            channel.close()
        return channel, snapshot

    def wait(self, job_id: str, timeout: Optional[float] = None) -> JobSnapshot:
        """Block until the run of ``job_id`` finishes and return its snapshot."""

        future, _ = self._registry.update(job_id, lambda record: record.future)
        if future is not None:
            try:
                future.result(timeout)
            except CancelledError:
                pass
        return self._registry.get(job_id)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _attach_future(self, job_id: str, future) -> None:
        try:
            self._registry.update(job_id, lambda record: setattr(record, "future", future))
        except JobNotFoundError:
            pass

    @staticmethod
    def _cancel_record(record: JobRecord) -> bool:
        if record.is_terminal:
            return False
        if record.cancel_token is not None:
            record.cancel_token.cancel(CANCELLED_BY_USER)
        if record.future is not None:
            record.future.cancel()
        return record.fail(CANCELLED_BY_USER, CANCELLED_MESSAGE)

    @staticmethod
    def _interrupt_record(record: JobRecord) -> bool:
        if record.is_terminal:
            return False
        if record.cancel_token is not None:
            record.cancel_token.cancel(INTERRUPTED_ERROR)
        if record.future is not None:
            record.future.cancel()
        return record.fail(INTERRUPTED_ERROR, INTERRUPTED_MESSAGE)

    def _log_job_started(self, snapshot: JobSnapshot) -> None:
        logger.info(
            "Transcription job started",
            extra={
                "event": "transcriber.job.started",
                "status": snapshot.status.value,
                "console_suppress": True,
            },
        )

    def _log_job_progress(self, snapshot: JobSnapshot) -> None:
        logger.info(
            "Transcription progress",
            extra={
                "event": "transcriber.job.progress",
                "status": snapshot.status.value,
                "attributes": {"progress": snapshot.progress, "message": snapshot.message},
                "console_suppress": True,
            },
        )

    def _log_job_finished(self, snapshot: JobSnapshot) -> None:
        if snapshot.status is JobStatus.COMPLETED:
            logger.info(
                "Transcription job completed",
                extra={
                    "event": "transcriber.job.completed",
                    "status": snapshot.status.value,
                    "attributes": {"video_title": snapshot.video_title},
                    "console_suppress": True,
                },
            )
        else:
            logger.info(
                "Transcription job finished",
                extra={
                    "event": "transcriber.job.finished",
                    "status": snapshot.status.value,
                    "console_suppress": True,
                },
            )

    def _log_job_error(self, snapshot: JobSnapshot, exc: Exception) -> None:
        logger.error(
            "Transcription job failed",
            exc_info=exc,
            extra={
                "event": "transcriber.job.failed",
                "status": JobStatus.FAILED.value,
                "attributes": {"error": str(exc), "progress": snapshot.progress},
            },
        )

    def _log_job_interrupted(self, snapshot: JobSnapshot) -> None:
        logger.info(
            "Transcription job cancelled",
            extra={
                "event": "transcriber.job.cancelled",
                "status": JobStatus.FAILED.value,
                "attributes": {"progress": snapshot.progress},
                "console_suppress": True,
            },
        )

    def _pipeline_operation_context(self, snapshot: JobSnapshot) -> ContextManager[object]:
        return observability.pipeline_operation(
            "job",
            attributes={"job_id": snapshot.job_id, "source_key": snapshot.source_key},
        )

    @staticmethod
    def _stage_context(stage: str, snapshot: JobSnapshot) -> ContextManager[object]:
        return observability.pipeline_stage(
            stage, {"job_id": snapshot.job_id, "progress": snapshot.progress}
        )

    def _record_job_metric(
        self, name: str, value: float, attributes: Mapping[str, str]
    ) -> None:
        observability.record_metric(name, value, attributes)


__all__ = [
    "CREATED_MESSAGE",
    "JOINED_MESSAGE",
    "JobSubmission",
    "TranscriptionJobManager",
]
