"""Fixtures wiring the FastAPI app to an isolated job manager."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from video_transcriber.webapi.application import create_app
from video_transcriber.webapi.dependencies import get_job_manager, get_settings_dependency


@pytest.fixture
def api_manager(manager_factory):
    return manager_factory()


@pytest.fixture
def build_client(settings):
    clients = []

    def _build(manager):
        app = create_app()
        app.dependency_overrides[get_job_manager] = lambda: manager
        app.dependency_overrides[get_settings_dependency] = lambda: settings
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _build
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def api_client(build_client, api_manager):
    return build_client(api_manager)
