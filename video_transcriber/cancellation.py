"""Cooperative cancellation for long-running job stages."""

from __future__ import annotations

import threading
from typing import Optional

from .integrations.errors import CollaboratorError

CANCELLED_BY_USER = "Task was cancelled by user."


class JobCancelledError(CollaboratorError):
    """Raised by a stage that observed its cancellation token."""

    def __init__(self, message: str = CANCELLED_BY_USER) -> None:
        super().__init__(message)


class CancellationToken:
    """Thread-safe flag shared between a job run and whoever may cancel it."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = CANCELLED_BY_USER) -> bool:
        """Set the token. Returns ``False`` when it was already set."""

        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
            return True

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelledError(self._reason or CANCELLED_BY_USER)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block up to ``timeout`` seconds; returns ``True`` once cancelled."""

        return self._event.wait(timeout)


__all__ = ["CANCELLED_BY_USER", "CancellationToken", "JobCancelledError"]
