"""Pydantic models for the transcription API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..notifications.hub import HEARTBEAT, TASK_UPDATE
from ..services.job_manager.job import JobSnapshot, JobStatus


class TaskSubmissionResponse(BaseModel):
    """Response payload after submitting a video."""

    task_id: str
    message: str


class TaskStatusResponse(BaseModel):
    """Full status payload for a transcription task."""

    task_id: str
    status: JobStatus
    progress: int
    message: str
    error: Optional[str] = None
    url: str
    video_title: Optional[str] = None
    detected_language: Optional[str] = None
    summary_language: str
    raw_script_path: Optional[str] = None
    script_path: Optional[str] = None
    translation_path: Optional[str] = None
    summary_path: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_snapshot(cls, snapshot: JobSnapshot) -> "TaskStatusResponse":
        return cls(
            task_id=snapshot.job_id,
            status=snapshot.status,
            progress=snapshot.progress,
            message=snapshot.message,
            error=snapshot.error,
            url=snapshot.source_key,
            video_title=snapshot.video_title,
            detected_language=snapshot.detected_language,
            summary_language=snapshot.target_language,
            raw_script_path=snapshot.raw_script_path,
            script_path=snapshot.script_path,
            translation_path=snapshot.translation_path,
            summary_path=snapshot.summary_path,
            created_at=snapshot.created_at,
            updated_at=snapshot.updated_at,
        )


class TaskEventPayload(TaskStatusResponse):
    """Status payload carried by a ``task_update`` server-sent event."""

    type: str = TASK_UPDATE

    @classmethod
    def from_snapshot(cls, snapshot: JobSnapshot) -> "TaskEventPayload":
        status = TaskStatusResponse.from_snapshot(snapshot)
        return cls(**status.model_dump())


class HeartbeatPayload(BaseModel):
    """Keep-alive carried by a ``heartbeat`` server-sent event."""

    type: str = HEARTBEAT
    message: str = "ping"


__all__ = [
    "HeartbeatPayload",
    "TaskEventPayload",
    "TaskStatusResponse",
    "TaskSubmissionResponse",
]
