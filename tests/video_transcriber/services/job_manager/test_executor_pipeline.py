from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

import pytest

from video_transcriber.cancellation import CANCELLED_BY_USER, CancellationToken
from video_transcriber.notifications.hub import NotificationHub
from video_transcriber.services.job_manager import (
    ArtifactWriter,
    DedupIndex,
    JobRecord,
    JobRegistry,
    JobStatus,
    TranscriptionJobExecutor,
    TranscriptionJobExecutorHooks,
)
from video_transcriber.services.job_manager.stages import CANCELLED_MESSAGE

URL = "https://videos.example.com/watch?v=exec"


class _CancellingOptimizer:
    """Sets the job token while the optimizer runs, as a user would mid-stage."""

    available = True

    def optimize(self, text, token=None):
        token.cancel()
        return text


class _SilentFailure(Exception):
    pass


class _BrokenSummarizer:
    available = True

    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    def summarize(self, text, target_language, title, token=None):
        raise self.exc


def _build(tmp_path: Path, collaborators, *, hooks=None, limit: int = 100):
    registry = JobRegistry()
    dedup = DedupIndex(id_factory=lambda: "job-0001")
    saves: list[int] = []
    executor = TranscriptionJobExecutor(
        registry=registry,
        dedup=dedup,
        hub=NotificationHub(heartbeat_interval=60),
        collaborators=collaborators,
        artifacts=ArtifactWriter(tmp_path),
        persist=lambda: saves.append(1),
        work_dir=tmp_path,
        hooks=hooks,
        error_message_limit=limit,
    )

    def _claim() -> str:
        job_id, _ = dedup.claim(
            URL,
            on_claim=lambda new_id: registry.put(
                new_id,
                JobRecord(
                    job_id=new_id,
                    source_key=URL,
                    target_language="zh",
                    cancel_token=CancellationToken(),
                ),
            ),
        )
        return job_id

    return executor, registry, dedup, saves, _claim


def test_stages_run_in_order_with_hooks(tmp_path, make_collaborators):
    stages: list[str] = []
    finished = []

    @contextmanager
    def _stage_context(name, snapshot):
        stages.append(name)
        yield

    hooks = TranscriptionJobExecutorHooks(
        stage_context_factory=_stage_context,
        on_finish=finished.append,
    )
    executor, registry, dedup, saves, claim = _build(tmp_path, make_collaborators(), hooks=hooks)
    job_id = claim()

    executor.execute(job_id)

    assert stages == [
        "resolve_metadata",
        "acquire_audio",
        "transcribe",
        "optimize",
        "translate",
        "summarize",
    ]
    assert finished[0].status is JobStatus.COMPLETED
    assert registry.get(job_id).status is JobStatus.COMPLETED
    assert dedup.active_job(URL) is None
    assert saves


def test_cancellation_mid_stage_fails_job(tmp_path, make_collaborators):
    interrupted = []
    hooks = TranscriptionJobExecutorHooks(on_interrupted=interrupted.append)
    executor, registry, dedup, _, claim = _build(
        tmp_path, make_collaborators(optimizer=_CancellingOptimizer()), hooks=hooks
    )
    job_id = claim()

    executor.execute(job_id)

    snapshot = registry.get(job_id)
    assert snapshot.status is JobStatus.FAILED
    assert snapshot.error == CANCELLED_BY_USER
    assert snapshot.message == CANCELLED_MESSAGE
    assert snapshot.progress == 55
    assert snapshot.raw_script_path is not None
    assert snapshot.script_path is None
    assert interrupted and interrupted[0].job_id == job_id
    assert dedup.active_job(URL) is None


def test_error_text_falls_back_to_class_name(tmp_path, make_collaborators):
    failures = []
    hooks = TranscriptionJobExecutorHooks(on_failure=lambda snap, exc: failures.append(exc))
    executor, registry, _, _, claim = _build(
        tmp_path,
        make_collaborators(summarizer=_BrokenSummarizer(_SilentFailure())),
        hooks=hooks,
    )
    job_id = claim()

    executor.execute(job_id)

    snapshot = registry.get(job_id)
    assert snapshot.status is JobStatus.FAILED
    assert snapshot.error == "_SilentFailure"
    assert snapshot.progress == 80
    assert snapshot.script_path is not None
    assert snapshot.summary_path is None
    assert isinstance(failures[0], _SilentFailure)


def test_failure_message_is_truncated(tmp_path, make_collaborators):
    long_error = "x" * 250
    executor, registry, _, _, claim = _build(
        tmp_path,
        make_collaborators(summarizer=_BrokenSummarizer(RuntimeError(long_error))),
        limit=100,
    )
    job_id = claim()

    executor.execute(job_id)

    snapshot = registry.get(job_id)
    assert snapshot.error == long_error
    assert snapshot.message == "Processing failed: " + "x" * 100 + "..."


def test_unknown_or_finished_jobs_are_ignored(tmp_path, make_collaborators):
    collaborators = make_collaborators()
    executor, registry, _, saves, claim = _build(tmp_path, collaborators)

    executor.execute("missing")

    job_id = claim()
    registry.update(job_id, lambda record: record.fail("boom", "Processing failed: boom..."))
    executor.execute(job_id)

    assert collaborators.metadata.calls == []
    assert saves == []


@pytest.mark.parametrize("detected", ["zh", "zh-TW", "ZH_hans"])
def test_chinese_variants_are_not_translated(tmp_path, make_collaborators, stub_transcriber_factory, detected):
    collaborators = make_collaborators(transcriber=stub_transcriber_factory("内容", detected))
    executor, registry, _, _, claim = _build(tmp_path, collaborators)
    job_id = claim()

    executor.execute(job_id)

    snapshot = registry.get(job_id)
    assert snapshot.status is JobStatus.COMPLETED
    assert snapshot.translation_path is None
    assert collaborators.translator.calls == []
