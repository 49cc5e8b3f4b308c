"""Application factory for the FastAPI backend."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import logging_manager as log_mgr
from .dependencies import get_job_manager, get_settings_dependency
from .routes import router

LOGGER = log_mgr.get_logger().getChild("webapi")


def _configure_cors(app: FastAPI) -> None:
    allowed_origins = [origin for origin in get_settings_dependency().cors_allowed_origins if origin]
    if not allowed_origins:
        LOGGER.info("CORS middleware disabled; no allowed origins configured.")
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials="*" not in allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    resolve_manager = app.dependency_overrides.get(get_job_manager, get_job_manager)
    job_manager = resolve_manager()
    job_manager.hub.start_keepalive()
    LOGGER.info(
        "Transcription API started",
        extra={"event": "transcriber.api.started", "console_suppress": True},
    )
    try:
        yield
    finally:
        job_manager.hub.stop_keepalive()
        job_manager.shutdown(wait=False)
        LOGGER.info(
            "Transcription API stopped",
            extra={"event": "transcriber.api.stopped", "console_suppress": True},
        )


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""

    app = FastAPI(title="video-transcriber API", version="0.1.0", lifespan=_lifespan)

    _configure_cors(app)

    @app.get("/_health", tags=["health"])
    def healthcheck() -> dict[str, str]:
        """Simple healthcheck endpoint for smoke-testing the server."""

        return {"status": "ok"}

    app.include_router(router, prefix="/api", tags=["tasks"])

    return app


__all__ = ["create_app"]
