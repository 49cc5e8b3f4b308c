from __future__ import annotations

import threading
import time
from itertools import count

import pytest

from video_transcriber.services.job_manager import (
    DedupIndex,
    JobNotFoundError,
    JobRecord,
    JobRegistry,
)


def _record(job_id: str) -> JobRecord:
    return JobRecord(job_id=job_id, source_key=f"https://x/{job_id}", target_language="zh")


def test_registry_returns_snapshots():
    registry = JobRegistry()
    registry.put("a", _record("a"))

    snapshot = registry.get("a")
    changed, updated = registry.update("a", lambda record: record.advance(10, "Resolving..."))

    assert changed is True
    assert snapshot.progress == 0
    assert updated.progress == 10
    assert "a" in registry
    assert len(registry) == 1


def test_registry_unknown_ids_raise_not_found():
    registry = JobRegistry()

    with pytest.raises(JobNotFoundError) as excinfo:
        registry.get("missing")
    with pytest.raises(KeyError):
        registry.remove("missing")
    with pytest.raises(JobNotFoundError):
        registry.update("missing", lambda record: None)

    assert str(excinfo.value) == "Job missing not found"


def test_registry_rejects_mismatched_ids():
    with pytest.raises(ValueError):
        JobRegistry().put("a", _record("b"))


def test_snapshot_all_is_ordered_by_creation():
    registry = JobRegistry()
    first = _record("first")
    second = _record("second")
    second.created_at = first.created_at.replace(year=first.created_at.year + 1)
    registry.put("second", second)
    registry.put("first", first)

    assert list(registry.snapshot_all()) == ["first", "second"]


def test_claim_is_atomic_under_contention():
    ids = count(1)
    index = DedupIndex(id_factory=lambda: f"job-{next(ids)}")
    registered: list[str] = []
    results: list[tuple[str, bool]] = []
    lock = threading.Lock()
    barrier = threading.Barrier(16)

    def _on_claim(job_id: str) -> None:
        time.sleep(0.01)
        registered.append(job_id)

    def _worker() -> None:
        barrier.wait()
        outcome = index.claim("https://x/same", on_claim=_on_claim)
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=_worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    assert registered == ["job-1"]
    assert {job_id for job_id, _ in results} == {"job-1"}
    assert sum(1 for _, is_new in results if is_new) == 1


def test_failed_registration_rolls_back_claim():
    index = DedupIndex()

    def _explode(_job_id: str) -> None:
        raise RuntimeError("registry unavailable")

    with pytest.raises(RuntimeError):
        index.claim("https://x/a", on_claim=_explode)

    assert index.active_job("https://x/a") is None
    assert len(index) == 0


def test_release_checks_owner():
    ids = iter(["old", "new"])
    index = DedupIndex(id_factory=lambda: next(ids))
    index.claim("https://x/a")
    index.release("https://x/a")
    index.claim("https://x/a")

    assert index.release("https://x/a", job_id="old") is False
    assert index.active_job("https://x/a") == "new"
    assert index.release("https://x/a", job_id="new") is True
    assert index.release("https://x/a") is False
