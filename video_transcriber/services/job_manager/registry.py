"""Thread-safe registry of live job records."""

from __future__ import annotations

import threading
from typing import Callable, Dict, Iterator, Tuple, TypeVar

from .job import JobNotFoundError, JobRecord, JobSnapshot

T = TypeVar("T")


class JobRegistry:
    """Single source of truth for job state.

    Readers receive :class:`JobSnapshot` copies taken under the lock;
    writers mutate records through :meth:`update`.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: Dict[str, JobRecord] = {}

    def put(self, job_id: str, record: JobRecord) -> None:
        if record.job_id != job_id:
            raise ValueError(f"Record id {record.job_id} does not match {job_id}")
        with self._lock:
            self._records[job_id] = record

    def get(self, job_id: str) -> JobSnapshot:
        with self._lock:
            record = self._records.get(job_id)
            if record is None:
                raise JobNotFoundError(job_id)
            return record.snapshot()

    def update(self, job_id: str, mutator: Callable[[JobRecord], T]) -> Tuple[T, JobSnapshot]:
        """Apply ``mutator`` atomically and return its result with a fresh snapshot."""

        with self._lock:
            record = self._records.get(job_id)
            if record is None:
                raise JobNotFoundError(job_id)
            result = mutator(record)
            return result, record.snapshot()

    def remove(self, job_id: str) -> JobRecord:
        with self._lock:
            try:
                return self._records.pop(job_id)
            except KeyError as exc:
                raise JobNotFoundError(job_id) from exc

    def snapshot_all(self) -> Dict[str, JobSnapshot]:
        """Return every job ordered by creation time."""

        with self._lock:
            records = sorted(self._records.values(), key=lambda record: record.created_at)
            return {record.job_id: record.snapshot() for record in records}

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._records))


__all__ = ["JobRegistry"]
