from __future__ import annotations

import asyncio
import json
import threading

from video_transcriber.services.job_manager import JobStatus
from video_transcriber.services.job_manager.manager import CREATED_MESSAGE, JOINED_MESSAGE

URL = "https://www.youtube.com/watch?v=route"


def _parse_events(body: str):
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


def test_healthcheck(api_client):
    response = api_client.get("/_health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_process_video_creates_then_joins(
    build_client, manager_factory, make_collaborators, stub_audio_factory
):
    gate = threading.Event()
    manager = manager_factory(collaborators=make_collaborators(audio=stub_audio_factory(gate=gate)))
    client = build_client(manager)

    first = client.post("/api/process-video", data={"url": URL, "summary_language": "en"})
    second = client.post("/api/process-video", data={"url": f"  {URL}  "})

    assert first.status_code == 200
    assert first.json()["message"] == CREATED_MESSAGE
    assert second.json() == {"task_id": first.json()["task_id"], "message": JOINED_MESSAGE}

    gate.set()
    snapshot = manager.wait(first.json()["task_id"], timeout=5)
    assert snapshot.target_language == "en"


def test_process_video_rejects_bad_input(api_client, api_manager):
    missing = api_client.post("/api/process-video", data={})
    bad_url = api_client.post("/api/process-video", data={"url": "not-a-url"})
    bad_language = api_client.post(
        "/api/process-video", data={"url": URL, "summary_language": "!!"}
    )

    assert missing.status_code == 422
    assert bad_url.status_code == 400
    assert bad_language.status_code == 400
    assert api_manager.list_jobs() == {}


def test_process_video_after_shutdown_is_unavailable(api_client, api_manager):
    api_manager.shutdown()

    response = api_client.post("/api/process-video", data={"url": URL})

    assert response.status_code == 503


def test_task_status_reports_snapshot(api_client, api_manager):
    task_id = api_client.post("/api/process-video", data={"url": URL}).json()["task_id"]
    api_manager.wait(task_id, timeout=5)

    response = api_client.get(f"/api/task-status/{task_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["task_id"] == task_id
    assert body["status"] == "completed"
    assert body["progress"] == 100
    assert body["error"] is None
    assert body["url"] == URL
    assert body["summary_language"] == "zh"
    assert body["video_title"] == "Sample Video"
    assert body["summary_path"].endswith(".md")


def test_task_status_unknown_is_404(api_client):
    assert api_client.get("/api/task-status/nope").status_code == 404


def test_stream_of_finished_task_sends_single_event(api_client, api_manager):
    task_id = api_client.post("/api/process-video", data={"url": URL}).json()["task_id"]
    api_manager.wait(task_id, timeout=5)

    response = api_client.get(f"/api/task-stream/{task_id}")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _parse_events(response.text)
    assert len(events) == 1
    kind, payload = events[0]
    assert kind == "task_update"
    assert payload["type"] == "task_update"
    assert payload["status"] == "completed"
    assert api_manager.hub.subscriber_count(task_id) == 0


def test_stream_follows_running_task_to_completion(
    build_client, manager_factory, make_collaborators, stub_audio_factory
):
    gate = threading.Event()
    audio = stub_audio_factory(gate=gate)
    manager = manager_factory(collaborators=make_collaborators(audio=audio))
    client = build_client(manager)
    task_id = client.post("/api/process-video", data={"url": URL}).json()["task_id"]
    assert audio.started.wait(5)

    timer = threading.Timer(0.2, gate.set)
    timer.start()
    try:
        response = client.get(f"/api/task-stream/{task_id}")
    finally:
        timer.cancel()

    events = _parse_events(response.text)
    updates = [payload for kind, payload in events if kind == "task_update"]
    heartbeats = [payload for kind, payload in events if kind == "heartbeat"]
    assert updates[0]["status"] == "processing"
    assert updates[-1]["status"] == "completed"
    progress = [payload["progress"] for payload in updates]
    assert progress == sorted(progress)
    assert all(payload == {"type": "heartbeat", "message": "ping"} for payload in heartbeats)
    assert manager.get(task_id).status is JobStatus.COMPLETED


def test_stream_unknown_task_is_404(api_client):
    assert api_client.get("/api/task-stream/nope").status_code == 404


def test_delete_cancels_and_forgets_task(
    build_client, manager_factory, make_collaborators, stub_audio_factory
):
    gate = threading.Event()
    audio = stub_audio_factory(gate=gate)
    manager = manager_factory(collaborators=make_collaborators(audio=audio))
    client = build_client(manager)
    task_id = client.post("/api/process-video", data={"url": URL}).json()["task_id"]
    assert audio.started.wait(5)

    response = client.delete(f"/api/task/{task_id}")

    assert response.status_code == 204
    assert client.get(f"/api/task-status/{task_id}").status_code == 404
    assert not manager.is_processing(URL)
    assert client.delete(f"/api/task/{task_id}").status_code == 404
    gate.set()


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def test_submit_and_delete_persist_off_the_event_loop(
    build_client, manager_factory, make_collaborators, stub_audio_factory, monkeypatch
):
    gate = threading.Event()
    manager = manager_factory(collaborators=make_collaborators(audio=stub_audio_factory(gate=gate)))
    original_persist = manager.persist
    seen = []

    def _persist():
        seen.append(_loop_running())
        return original_persist()

    monkeypatch.setattr(manager, "persist", _persist)
    client = build_client(manager)

    task_id = client.post("/api/process-video", data={"url": URL}).json()["task_id"]
    assert client.delete(f"/api/task/{task_id}").status_code == 204
    gate.set()

    assert len(seen) >= 2
    assert not any(seen)
