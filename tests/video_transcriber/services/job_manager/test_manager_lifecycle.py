from __future__ import annotations

import threading
from pathlib import Path

import pytest

from video_transcriber.cancellation import CANCELLED_BY_USER
from video_transcriber.integrations.errors import ToolExecutionError
from video_transcriber.jobs.persistence import (
    INTERRUPTED_ERROR,
    INTERRUPTED_MESSAGE,
    JobSnapshotStore,
)
from video_transcriber.notifications.hub import NotificationHub
from video_transcriber.services.job_manager import (
    InvalidJobRequestError,
    JobNotFoundError,
    JobRecord,
    JobSnapshot,
    JobStatus,
)
from video_transcriber.services.job_manager.manager import CREATED_MESSAGE, JOINED_MESSAGE
from video_transcriber.services.job_manager.stages import CANCELLED_MESSAGE

URL = "https://videos.example.com/watch?v=abc123"


class _RecordingHub(NotificationHub):
    """Hub that remembers every published snapshot."""

    def __init__(self) -> None:
        super().__init__(heartbeat_interval=60)
        self.published: list[JobSnapshot] = []
        self.closed: list[str] = []

    def publish(self, job_id: str, snapshot: JobSnapshot) -> int:
        self.published.append(snapshot)
        return super().publish(job_id, snapshot)

    def close_all(self, job_id: str) -> int:
        self.closed.append(job_id)
        return super().close_all(job_id)


class _FailingAudio:
    def acquire_audio(self, url, output_dir, token=None):
        raise ToolExecutionError("yt-dlp exited with code 1")


def test_job_runs_to_completion_and_writes_artifacts(manager_factory):
    hub = _RecordingHub()
    manager = manager_factory(hub=hub)

    submission = manager.create_or_join(URL, "zh")
    assert submission.created is True
    assert submission.message == CREATED_MESSAGE

    snapshot = manager.wait(submission.job_id, timeout=5)

    assert snapshot.status is JobStatus.COMPLETED
    assert snapshot.progress == 100
    assert snapshot.error is None
    assert snapshot.video_title == "Sample Video"
    assert snapshot.detected_language == "en"
    for path in (
        snapshot.raw_script_path,
        snapshot.script_path,
        snapshot.translation_path,
        snapshot.summary_path,
    ):
        assert path is not None
        assert Path(path).is_file()
    assert Path(snapshot.script_path).name == f"transcript_Sample_Video_{submission.job_id[:6]}.md"
    assert Path(snapshot.translation_path).read_text(encoding="utf-8").startswith(
        "# Sample Video\n\n[zh] Hello world."
    )
    assert not manager.is_processing(URL)
    assert hub.closed == [submission.job_id]
    assert not list(manager.settings.output_path.glob("audio_*"))


def test_progress_is_monotonic_and_error_only_on_failure(manager_factory):
    hub = _RecordingHub()
    manager = manager_factory(hub=hub)

    job_id = manager.create_or_join(URL, "zh").job_id
    manager.wait(job_id, timeout=5)

    progress = [snapshot.progress for snapshot in hub.published]
    assert progress == sorted(progress)
    assert progress[-1] == 100
    assert [10, 15, 35, 55, 70, 80, 100] == sorted(set(progress))
    for snapshot in hub.published:
        assert (snapshot.error is not None) == (snapshot.status is JobStatus.FAILED)


def test_same_language_skips_translation(manager_factory, make_collaborators, stub_transcriber_factory):
    collaborators = make_collaborators(transcriber=stub_transcriber_factory("你好", "zh-CN"))
    manager = manager_factory(collaborators=collaborators)

    job_id = manager.create_or_join("https://x/video1", "zh").job_id
    snapshot = manager.wait(job_id, timeout=5)

    assert snapshot.status is JobStatus.COMPLETED
    assert snapshot.translation_path is None
    assert collaborators.translator.calls == []
    assert snapshot.summary_path is not None


def test_unavailable_translator_is_skipped(manager_factory, make_collaborators, stub_translator_factory):
    translator = stub_translator_factory(available=False)
    manager = manager_factory(collaborators=make_collaborators(translator=translator))

    snapshot = manager.wait(manager.create_or_join(URL, "fr").job_id, timeout=5)

    assert snapshot.status is JobStatus.COMPLETED
    assert snapshot.translation_path is None
    assert translator.calls == []


def test_concurrent_requests_share_one_job(manager_factory, make_collaborators, stub_audio_factory):
    gate = threading.Event()
    collaborators = make_collaborators(audio=stub_audio_factory(gate=gate))
    manager = manager_factory(collaborators=collaborators)
    barrier = threading.Barrier(8)
    results = []
    lock = threading.Lock()

    def _submit() -> None:
        barrier.wait()
        submission = manager.create_or_join(URL, "zh")
        with lock:
            results.append(submission)

    threads = [threading.Thread(target=_submit) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    job_ids = {submission.job_id for submission in results}
    assert len(results) == 8
    assert len(job_ids) == 1
    assert sum(1 for submission in results if submission.created) == 1
    assert {submission.message for submission in results if not submission.created} == {
        JOINED_MESSAGE
    }
    assert len(manager.list_jobs()) == 1

    gate.set()
    snapshot = manager.wait(job_ids.pop(), timeout=5)
    assert snapshot.status is JobStatus.COMPLETED
    assert collaborators.metadata.calls == [URL]


def test_acquisition_failure_marks_job_failed(manager_factory, make_collaborators):
    hub = _RecordingHub()
    manager = manager_factory(hub=hub, collaborators=make_collaborators(audio=_FailingAudio()))

    job_id = manager.create_or_join(URL, "zh").job_id
    snapshot = manager.wait(job_id, timeout=5)

    assert snapshot.status is JobStatus.FAILED
    assert snapshot.progress <= 35
    assert snapshot.error == "yt-dlp exited with code 1"
    assert snapshot.message == "Processing failed: yt-dlp exited with code 1..."
    assert snapshot.script_path is None
    assert snapshot.summary_path is None
    assert not manager.is_processing(URL)
    assert hub.published[-1].status is JobStatus.FAILED

    retry = manager.create_or_join(URL, "zh")
    assert retry.created is True
    assert retry.job_id != job_id
    manager.wait(retry.job_id, timeout=5)


def test_cancel_running_job_releases_claim(manager_factory, make_collaborators, stub_audio_factory):
    gate = threading.Event()
    audio = stub_audio_factory(gate=gate)
    hub = _RecordingHub()
    manager = manager_factory(hub=hub, collaborators=make_collaborators(audio=audio))

    job_id = manager.create_or_join(URL, "zh").job_id
    assert audio.started.wait(5)
    future_holder = manager.registry.update(job_id, lambda record: record.future)[0]

    cancelled = manager.cancel_and_delete(job_id)

    assert cancelled.status is JobStatus.FAILED
    assert cancelled.error == CANCELLED_BY_USER
    assert cancelled.message == CANCELLED_MESSAGE
    with pytest.raises(JobNotFoundError):
        manager.get(job_id)
    assert not manager.is_processing(URL)
    assert hub.subscriber_count(job_id) == 0
    assert job_id in hub.closed

    future_holder.result(timeout=5)
    assert audio.paths == []

    fresh = manager.create_or_join(URL, "zh")
    assert fresh.created is True
    assert fresh.job_id != job_id
    gate.set()
    assert manager.wait(fresh.job_id, timeout=5).status is JobStatus.COMPLETED


def test_cancel_unknown_job_raises(manager_factory):
    manager = manager_factory()

    with pytest.raises(JobNotFoundError):
        manager.cancel_and_delete("missing")


def test_invalid_requests_never_create_jobs(manager_factory):
    manager = manager_factory()

    with pytest.raises(InvalidJobRequestError):
        manager.create_or_join("ftp://example.com/video", "zh")
    with pytest.raises(InvalidJobRequestError):
        manager.create_or_join(URL, "not a language")

    assert manager.list_jobs() == {}


def test_submit_after_shutdown_rolls_back(manager_factory):
    manager = manager_factory()
    manager.shutdown()

    with pytest.raises(RuntimeError):
        manager.create_or_join(URL, "zh")

    assert manager.list_jobs() == {}
    assert not manager.is_processing(URL)


def test_completed_jobs_survive_restart(manager_factory, settings):
    manager = manager_factory()
    job_id = manager.create_or_join(URL, "zh").job_id
    manager.wait(job_id, timeout=5)
    manager.shutdown()

    restored = manager_factory()

    snapshot = restored.get(job_id)
    assert snapshot.status is JobStatus.COMPLETED
    assert snapshot.progress == 100
    assert snapshot.summary_path is not None


def test_processing_jobs_fail_after_restart(manager_factory, settings):
    manager = manager_factory(restore=False)
    job_id = "0f1e2d3c-0000-4000-8000-000000000000"
    manager.registry.put(
        job_id,
        JobRecord(job_id=job_id, source_key=URL, target_language="zh", progress=35),
    )
    manager.persist()

    restored = manager_factory()
    snapshot = restored.get(job_id)

    assert snapshot.status is JobStatus.FAILED
    assert snapshot.error == INTERRUPTED_ERROR
    assert snapshot.progress == 35
    assert not restored.is_processing(URL)
    on_disk = JobSnapshotStore(settings.tasks_path).load()
    assert on_disk[job_id].status is JobStatus.FAILED


def test_shutdown_without_wait_interrupts_running_and_queued_jobs(
    manager_factory, make_collaborators, stub_audio_factory, settings
):
    gate = threading.Event()
    audio = stub_audio_factory(gate=gate)
    collaborators = make_collaborators(audio=audio)
    hub = _RecordingHub()
    manager = manager_factory(max_workers=1, hub=hub, collaborators=collaborators)
    second_url = "https://videos.example.com/watch?v=queued"

    running = manager.create_or_join(URL, "zh").job_id
    assert audio.started.wait(5)
    queued = manager.create_or_join(second_url, "zh").job_id
    futures = {
        job_id: manager.registry.update(job_id, lambda record: record.future)[0]
        for job_id in (running, queued)
    }

    manager.shutdown(wait=False)
    gate.set()
    futures[running].result(timeout=5)

    assert futures[queued].cancelled()
    assert collaborators.metadata.calls == [URL]
    for job_id in (running, queued):
        snapshot = manager.get(job_id)
        assert snapshot.status is JobStatus.FAILED
        assert snapshot.error == INTERRUPTED_ERROR
        assert snapshot.message == INTERRUPTED_MESSAGE
    assert not manager.is_processing(URL)
    assert not manager.is_processing(second_url)
    assert {snapshot.job_id for snapshot in hub.published if snapshot.error == INTERRUPTED_ERROR} == {
        running,
        queued,
    }

    on_disk = JobSnapshotStore(settings.tasks_path).load()
    assert on_disk[queued].status is JobStatus.FAILED
    assert on_disk[running].error == INTERRUPTED_ERROR


def test_restore_uses_map_key_over_stored_job_id(manager_factory, settings):
    record = JobRecord(job_id="stale-id", source_key=URL, target_language="zh")
    record.complete("Processing complete!")
    JobSnapshotStore(settings.tasks_path).save({"renamed-id": record.snapshot()})

    restored = manager_factory()

    assert restored.get("renamed-id").status is JobStatus.COMPLETED
    assert list(restored.list_jobs()) == ["renamed-id"]
