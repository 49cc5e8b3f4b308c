"""Aggregated API router composed from the route groups."""

from __future__ import annotations

from fastapi import APIRouter

from .download_routes import router as download_router
from .jobs_routes import router as jobs_router

router = APIRouter()

router.include_router(jobs_router)
router.include_router(download_router)

__all__ = ["router"]
