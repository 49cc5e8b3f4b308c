"""Claims that keep one active job per source."""

from __future__ import annotations

import threading
from typing import Callable, Dict, Optional, Tuple
from uuid import uuid4


def _new_job_id() -> str:
    return str(uuid4())


class DedupIndex:
    """Map each source key to the job currently processing it."""

    def __init__(self, id_factory: Optional[Callable[[], str]] = None) -> None:
        self._lock = threading.Lock()
        self._claims: Dict[str, str] = {}
        self._id_factory = id_factory or _new_job_id

    def claim(
        self,
        source_key: str,
        on_claim: Optional[Callable[[str], None]] = None,
    ) -> Tuple[str, bool]:
        """Return ``(job_id, is_new)`` for ``source_key`` as one atomic step.

        ``on_claim`` runs inside the critical section for new claims, so a
        caller joining the same key never sees the id before the job exists.
        If it raises, the claim is rolled back.
        """

        with self._lock:
            existing = self._claims.get(source_key)
            if existing is not None:
                return existing, False
            job_id = self._id_factory()
            self._claims[source_key] = job_id
            if on_claim is not None:
                try:
                    on_claim(job_id)
                except BaseException:
                    del self._claims[source_key]
                    raise
            return job_id, True

    def release(self, source_key: str, job_id: Optional[str] = None) -> bool:
        """Drop the claim on ``source_key``; a no-op when already released.

        With ``job_id`` the claim is only dropped while it still belongs to
        that job, so a finished run cannot release its successor's claim.
        """

        with self._lock:
            current = self._claims.get(source_key)
            if current is None:
                return False
            if job_id is not None and current != job_id:
                return False
            del self._claims[source_key]
            return True

    def active_job(self, source_key: str) -> Optional[str]:
        with self._lock:
            return self._claims.get(source_key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._claims)


__all__ = ["DedupIndex"]
