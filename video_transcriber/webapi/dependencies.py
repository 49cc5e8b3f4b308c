"""Dependency wiring for the FastAPI application."""

from __future__ import annotations

from functools import lru_cache

from .. import config_manager as cfg
from ..services.job_manager import TranscriptionJobManager


@lru_cache
def get_settings_dependency() -> cfg.TranscriberSettings:
    """Return the settings the API was started with."""

    return cfg.get_settings()


@lru_cache
def get_job_manager() -> TranscriptionJobManager:
    """Return the process-wide :class:`TranscriptionJobManager` instance."""

    return TranscriptionJobManager(settings=get_settings_dependency())


__all__ = ["get_job_manager", "get_settings_dependency"]
