"""In-memory representations of transcription jobs."""

from __future__ import annotations

import json
from concurrent.futures import Future
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ...cancellation import CancellationToken


class JobStatus(str, Enum):
    """Enumeration of possible job states."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PROCESSING


class JobNotFoundError(KeyError):
    """Raised when a job identifier is not known to the registry."""

    def __init__(self, job_id: str) -> None:
        super().__init__(job_id)
        self.job_id = job_id

    def __str__(self) -> str:
        return f"Job {self.job_id} not found"


class InvalidJobRequestError(ValueError):
    """Raised when a job request is rejected before a job is created."""


class JobTransitionError(ValueError):
    """Raised when a mutation would break a job record invariant."""

    def __init__(self, job_id: str, message: str) -> None:
        super().__init__(message)
        self.job_id = job_id


ARTIFACT_FIELDS = ("raw_script_path", "script_path", "translation_path", "summary_path")
MAX_PROCESSING_PROGRESS = 99
UNKNOWN_ERROR = "Unknown error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(str(value))


@dataclass(frozen=True)
class JobSnapshot:
    """Immutable, serialisable view of a job at one point in time."""

    job_id: str
    source_key: str
    target_language: str
    status: JobStatus
    progress: int
    message: str
    created_at: datetime
    updated_at: datetime
    error: Optional[str] = None
    video_title: Optional[str] = None
    detected_language: Optional[str] = None
    raw_script_path: Optional[str] = None
    script_path: Optional[str] = None
    translation_path: Optional[str] = None
    summary_path: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "job_id": self.job_id,
            "source_key": self.source_key,
            "target_language": self.target_language,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "error": self.error,
            "video_title": self.video_title,
            "detected_language": self.detected_language,
            "created_at": _dt(self.created_at),
            "updated_at": _dt(self.updated_at),
        }
        for name in ARTIFACT_FIELDS:
            payload[name] = getattr(self, name)
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, sort_keys=True)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JobSnapshot":
        created_at = _parse_datetime(data.get("created_at")) or _utcnow()
        status = JobStatus(str(data["status"]))
        progress = max(0, min(100, int(data.get("progress") or 0)))
        error = data.get("error")
        if status is JobStatus.FAILED and not error:
            error = UNKNOWN_ERROR
        elif status is not JobStatus.FAILED:
            error = None
        return cls(
            job_id=str(data["job_id"]),
            source_key=str(data["source_key"]),
            target_language=str(data.get("target_language") or ""),
            status=status,
            progress=progress,
            message=str(data.get("message") or ""),
            error=error,
            video_title=data.get("video_title"),
            detected_language=data.get("detected_language"),
            raw_script_path=data.get("raw_script_path"),
            script_path=data.get("script_path"),
            translation_path=data.get("translation_path"),
            summary_path=data.get("summary_path"),
            created_at=created_at,
            updated_at=_parse_datetime(data.get("updated_at")) or created_at,
        )


@dataclass
class JobRecord:
    """Live job state, mutated only by the worker that owns the run.

    Every mutator refuses to leave a terminal state and reports whether it
    changed anything, so a late write from a cancelled run is a no-op.
    """

    job_id: str
    source_key: str
    target_language: str
    status: JobStatus = JobStatus.PROCESSING
    progress: int = 0
    message: str = ""
    error: Optional[str] = None
    video_title: Optional[str] = None
    detected_language: Optional[str] = None
    raw_script_path: Optional[str] = None
    script_path: Optional[str] = None
    translation_path: Optional[str] = None
    summary_path: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    # Runtime-only state, never persisted.
    cancel_token: Optional[CancellationToken] = field(default=None, repr=False, compare=False)
    future: Optional[Future] = field(default=None, repr=False, compare=False)
    audio_file_path: Optional[str] = field(default=None, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def _touch(self) -> None:
        self.updated_at = _utcnow()

    def advance(self, progress: int, message: str) -> bool:
        """Move a processing job forward; progress never decreases."""

        if self.is_terminal:
            return False
        bounded = max(0, min(MAX_PROCESSING_PROGRESS, int(progress)))
        self.progress = max(self.progress, bounded)
        self.message = message
        self.error = None
        self._touch()
        return True

    def set_details(
        self,
        *,
        video_title: Optional[str] = None,
        detected_language: Optional[str] = None,
    ) -> bool:
        """Record derived metadata; values already set are kept."""

        if self.is_terminal:
            return False
        changed = False
        if video_title is not None and self.video_title is None:
            self.video_title = video_title
            changed = True
        if detected_language is not None and self.detected_language is None:
            self.detected_language = detected_language
            changed = True
        if changed:
            self._touch()
        return changed

    def set_artifact(self, name: str, path: str) -> bool:
        if name not in ARTIFACT_FIELDS:
            raise ValueError(f"Unknown artifact field: {name}")
        if self.is_terminal:
            return False
        current = getattr(self, name)
        if current is not None and current != path:
            raise JobTransitionError(self.job_id, f"{name} is already set to {current}")
        setattr(self, name, path)
        self._touch()
        return True

    def complete(self, message: str) -> bool:
        if self.is_terminal:
            return False
        self.status = JobStatus.COMPLETED
        self.progress = 100
        self.message = message
        self.error = None
        self._touch()
        return True

    def fail(self, error: str, message: str) -> bool:
        if self.is_terminal:
            return False
        self.status = JobStatus.FAILED
        self.error = error or UNKNOWN_ERROR
        self.message = message
        self._touch()
        return True

    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            job_id=self.job_id,
            source_key=self.source_key,
            target_language=self.target_language,
            status=self.status,
            progress=self.progress,
            message=self.message,
            error=self.error,
            video_title=self.video_title,
            detected_language=self.detected_language,
            raw_script_path=self.raw_script_path,
            script_path=self.script_path,
            translation_path=self.translation_path,
            summary_path=self.summary_path,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_snapshot(cls, snapshot: JobSnapshot) -> "JobRecord":
        values = {item.name: getattr(snapshot, item.name) for item in fields(JobSnapshot)}
        return cls(**values)


__all__ = [
    "ARTIFACT_FIELDS",
    "InvalidJobRequestError",
    "JobNotFoundError",
    "JobRecord",
    "JobSnapshot",
    "JobStatus",
    "JobTransitionError",
]
