"""Routes serving generated Markdown artifacts."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from ... import config_manager as cfg
from ...fsutils import is_safe_filename
from ..dependencies import get_settings_dependency

router = APIRouter()

_ALLOWED_SUFFIX = ".md"


@router.get("/download/{filename}")
async def download_artifact(
    filename: str,
    settings: cfg.TranscriberSettings = Depends(get_settings_dependency),
) -> FileResponse:
    """Return the artifact ``filename`` from the output directory."""

    if not is_safe_filename(filename) or not filename.endswith(_ALLOWED_SUFFIX):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid filename")

    root = settings.output_path.resolve()
    candidate = (root / filename).resolve()
    if candidate.parent != root:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid filename")
    if not candidate.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")

    return FileResponse(
        candidate,
        media_type="text/markdown; charset=utf-8",
        filename=filename,
    )


__all__ = ["router"]
