"""Routes for transcription task lifecycle management."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Form, HTTPException, Response, status
from fastapi.responses import StreamingResponse

from ... import config_manager as cfg
from ...notifications.hub import HEARTBEAT, TASK_UPDATE, JobChannel
from ...services.job_manager import (
    InvalidJobRequestError,
    JobSnapshot,
    TranscriptionJobManager,
)
from ..dependencies import get_job_manager, get_settings_dependency
from ..schemas import (
    HeartbeatPayload,
    TaskEventPayload,
    TaskStatusResponse,
    TaskSubmissionResponse,
)

router = APIRouter()

_HEARTBEAT_BODY = HeartbeatPayload().model_dump_json()


def _format_event(kind: str, data: str) -> bytes:
    return f"event: {kind}\ndata: {data}\n\n".encode("utf-8")


def _snapshot_event(snapshot: JobSnapshot) -> bytes:
    payload = TaskEventPayload.from_snapshot(snapshot)
    return _format_event(TASK_UPDATE, payload.model_dump_json())


async def _event_stream(
    channel: JobChannel,
    snapshot: JobSnapshot,
    timeout: float,
) -> AsyncIterator[bytes]:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    try:
        yield _snapshot_event(snapshot)
        if snapshot.is_terminal:
            return
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                event = await channel.next_event(timeout=remaining)
            except asyncio.TimeoutError:
                break
            if event is None:
                break
            if event.kind == HEARTBEAT:
                yield _format_event(HEARTBEAT, _HEARTBEAT_BODY)
                continue
            if event.snapshot is not None:
                yield _snapshot_event(event.snapshot)
            if event.is_terminal:
                break
    finally:
        await channel.aclose()


@router.post("/process-video", response_model=TaskSubmissionResponse)
def process_video(
    url: str = Form(...),
    summary_language: str = Form("zh"),
    job_manager: TranscriptionJobManager = Depends(get_job_manager),
) -> TaskSubmissionResponse:
    """Start transcribing ``url`` or join the task already processing it."""

    try:
        submission = job_manager.create_or_join(url, summary_language)
    except InvalidJobRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is shutting down"
        ) from exc
    return TaskSubmissionResponse(task_id=submission.job_id, message=submission.message)


@router.get("/task-status/{task_id}", response_model=TaskStatusResponse)
async def get_task_status(
    task_id: str,
    job_manager: TranscriptionJobManager = Depends(get_job_manager),
) -> TaskStatusResponse:
    """Return the current state of ``task_id``."""

    try:
        snapshot = job_manager.get(task_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found") from exc
    return TaskStatusResponse.from_snapshot(snapshot)


@router.get("/task-stream/{task_id}")
async def stream_task_events(
    task_id: str,
    job_manager: TranscriptionJobManager = Depends(get_job_manager),
    settings: cfg.TranscriberSettings = Depends(get_settings_dependency),
):
    """Stream updates for ``task_id`` as Server-Sent Events."""

    try:
        channel, snapshot = job_manager.open_stream(task_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found") from exc

    generator = _event_stream(channel, snapshot, settings.stream_timeout_seconds)
    return StreamingResponse(
        generator,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.delete("/task/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: str,
    job_manager: TranscriptionJobManager = Depends(get_job_manager),
) -> Response:
    """Cancel ``task_id`` when running and forget it."""

    try:
        job_manager.cancel_and_delete(task_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found") from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
