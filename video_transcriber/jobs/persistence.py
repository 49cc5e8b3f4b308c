"""Filesystem-backed snapshots of the job registry."""

from __future__ import annotations

import json
import threading
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping

from .. import logging_manager
from ..fsutils import AtomicWriteError, atomic_write_text

if TYPE_CHECKING:  # pragma: no cover - for static analysis only
    from ..services.job_manager.job import JobSnapshot

_LOGGER = logging_manager.get_logger().getChild("jobs.persistence")

INTERRUPTED_ERROR = "Application restarted during processing."
INTERRUPTED_MESSAGE = "Processing interrupted"


class SnapshotError(RuntimeError):
    """Raised when the durable snapshot cannot be encoded or written."""


def encode_snapshots(records: Mapping[str, "JobSnapshot"]) -> str:
    payload = {job_id: snapshot.to_dict() for job_id, snapshot in records.items()}
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2)


def write_snapshots(path: Path, records: Mapping[str, "JobSnapshot"]) -> Path:
    """Atomically replace ``path`` with the encoded ``records``."""

    try:
        payload = encode_snapshots(records)
    except (TypeError, ValueError) as exc:
        raise SnapshotError(f"Unable to encode job snapshot: {exc}") from exc
    try:
        return atomic_write_text(path, payload)
    except AtomicWriteError as exc:
        raise SnapshotError(str(exc)) from exc


def _reconcile(snapshot: "JobSnapshot") -> "JobSnapshot":
    from ..services.job_manager.job import JobStatus

    if snapshot.status is not JobStatus.PROCESSING:
        return snapshot
    return replace(
        snapshot,
        status=JobStatus.FAILED,
        error=INTERRUPTED_ERROR,
        message=INTERRUPTED_MESSAGE,
    )


def decode_snapshots(raw: str) -> Dict[str, "JobSnapshot"]:
    """Decode a snapshot document; processing jobs come back as failed."""

    from ..services.job_manager.job import JobSnapshot

    document = json.loads(raw)
    if not isinstance(document, dict):
        raise SnapshotError("Job snapshot must be a JSON object")

    records: Dict[str, JobSnapshot] = {}
    for job_id, entry in document.items():
        try:
            if not isinstance(entry, dict):
                raise TypeError(f"expected an object, got {type(entry).__name__}")
            data: Dict[str, Any] = {**entry, "job_id": job_id}
            records[job_id] = _reconcile(JobSnapshot.from_dict(data))
        except (KeyError, TypeError, ValueError) as exc:
            _LOGGER.warning(
                "Skipping malformed job entry",
                extra={
                    "event": "transcriber.snapshot.entry_invalid",
                    "job_id": job_id,
                    "attributes": {"error": str(exc)},
                },
            )
    return records


class JobSnapshotStore:
    """Durable single-file store for the full job mapping."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def save(self, records: Mapping[str, "JobSnapshot"]) -> bool:
        """Persist ``records``; failures are logged and reported as ``False``."""

        with self._lock:
            return self._write(records)

    def save_from(self, source: Callable[[], Mapping[str, "JobSnapshot"]]) -> bool:
        """Take a snapshot via ``source`` and persist it under the store lock.

        Reading and writing under one lock keeps an older snapshot from
        landing on disk after a newer one.
        """

        with self._lock:
            return self._write(source())

    def _write(self, records: Mapping[str, "JobSnapshot"]) -> bool:
        try:
            write_snapshots(self._path, records)
        except SnapshotError as exc:
            _LOGGER.error(
                "Failed to save job snapshot",
                exc_info=exc,
                extra={
                    "event": "transcriber.snapshot.save_failed",
                    "attributes": {"path": str(self._path), "jobs": len(records)},
                },
            )
            return False
        _LOGGER.debug(
            "Job snapshot saved",
            extra={
                "event": "transcriber.snapshot.saved",
                "attributes": {"path": str(self._path), "jobs": len(records)},
                "console_suppress": True,
            },
        )
        return True

    def load(self) -> Dict[str, "JobSnapshot"]:
        """Return persisted jobs, or an empty mapping when none are stored."""

        with self._lock:
            try:
                raw = self._path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return {}
            except OSError as exc:
                _LOGGER.error(
                    "Failed to read job snapshot",
                    exc_info=exc,
                    extra={
                        "event": "transcriber.snapshot.load_failed",
                        "attributes": {"path": str(self._path)},
                    },
                )
                return {}
        if not raw.strip():
            return {}
        try:
            return decode_snapshots(raw)
        except (json.JSONDecodeError, SnapshotError) as exc:
            _LOGGER.error(
                "Job snapshot is unreadable; starting empty",
                exc_info=exc,
                extra={
                    "event": "transcriber.snapshot.load_failed",
                    "attributes": {"path": str(self._path)},
                },
            )
            return {}


__all__ = [
    "INTERRUPTED_ERROR",
    "INTERRUPTED_MESSAGE",
    "JobSnapshotStore",
    "SnapshotError",
    "decode_snapshots",
    "encode_snapshots",
    "write_snapshots",
]
