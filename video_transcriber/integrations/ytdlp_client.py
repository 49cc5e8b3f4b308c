"""yt-dlp client for video metadata and audio extraction."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional
from uuid import uuid4

from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError, ExtractorError

from .. import logging_manager as log_mgr
from ..cancellation import CancellationToken, JobCancelledError
from .errors import OutputMissingError, ToolExecutionError, ToolNotFoundError
from .types import AudioArtifact, VideoMetadata

logger = log_mgr.get_logger().getChild("integrations.ytdlp")

_COMMON_YT_OPTS: Dict[str, Any] = {
    "quiet": True,
    "no_warnings": True,
    "noplaylist": True,
    "noprogress": True,
}

AUDIO_CODEC = "m4a"
AUDIO_QUALITY = "192"
# Mono, 16 kHz: the input format whisper.cpp expects.
NORMALIZE_AUDIO_ARGS = ["-ac", "1", "-ar", "16000"]
FALLBACK_AUDIO_EXTENSIONS = (".m4a", ".mp3", ".ogg", ".wav")

YoutubeDLFactory = Callable[[Mapping[str, Any]], Any]


class _DownloadAborted(Exception):
    """Internal signal raised from a progress hook to stop a download."""

    def __init__(self, error: Exception) -> None:
        super().__init__(str(error))
        self.error = error


def _normalize_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _normalize_duration(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _translate_download_error(exc: Exception, action: str) -> Exception:
    message = str(exc)
    if "ffmpeg" in message.lower() and "not found" in message.lower():
        return ToolNotFoundError("ffmpeg", message)
    return ToolExecutionError(f"{action} failed: {message}")


class YtDlpClient:
    """Resolve video information and extract normalised audio with yt-dlp."""

    def __init__(
        self,
        *,
        ffmpeg_location: Optional[str] = None,
        download_timeout: float = 300.0,
        metadata_timeout: float = 60.0,
        youtube_dl_factory: YoutubeDLFactory = YoutubeDL,
    ) -> None:
        self._ffmpeg_location = ffmpeg_location
        self._download_timeout = download_timeout
        self._metadata_timeout = metadata_timeout
        self._factory = youtube_dl_factory

    def resolve_metadata(
        self, url: str, token: Optional[CancellationToken] = None
    ) -> VideoMetadata:
        """Return the title and duration of ``url`` without downloading it."""

        if token is not None:
            token.raise_if_cancelled()
        options = {
            **_COMMON_YT_OPTS,
            "skip_download": True,
            "socket_timeout": self._metadata_timeout,
        }
        try:
            with self._factory(options) as ydl:
                info = ydl.extract_info(url, download=False) or {}
        except (DownloadError, ExtractorError) as exc:
            raise _translate_download_error(exc, "Resolving video info") from exc

        title = _normalize_text(info.get("title")) or "untitled"
        duration = _normalize_duration(info.get("duration"))
        logger.info(
            "Resolved video metadata",
            extra={
                "event": "transcriber.ytdlp.metadata",
                "attributes": {"url": url, "title": title, "duration": duration},
                "console_suppress": True,
            },
        )
        return VideoMetadata(title=title, duration=duration)

    def acquire_audio(
        self,
        url: str,
        output_dir: Path,
        token: Optional[CancellationToken] = None,
    ) -> AudioArtifact:
        """Download the best audio stream of ``url`` and convert it to mono 16 kHz m4a."""

        if token is not None:
            token.raise_if_cancelled()
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        stem = f"audio_{uuid4().hex[:8]}"
        deadline = time.monotonic() + self._download_timeout

        def _progress_hook(_status: Mapping[str, Any]) -> None:
            if token is not None and token.cancelled:
                raise _DownloadAborted(JobCancelledError(token.reason or "Task was cancelled by user."))
            if time.monotonic() > deadline:
                raise _DownloadAborted(
                    ToolExecutionError(
                        f"Audio download timed out after {self._download_timeout:.0f}s"
                    )
                )

        options: Dict[str, Any] = {
            **_COMMON_YT_OPTS,
            "format": "bestaudio/best",
            "outtmpl": str(output_dir / f"{stem}.%(ext)s"),
            "socket_timeout": self._metadata_timeout,
            "progress_hooks": [_progress_hook],
            "postprocessors": [
                {
                    "key": "FFmpegExtractAudio",
                    "preferredcodec": AUDIO_CODEC,
                    "preferredquality": AUDIO_QUALITY,
                }
            ],
            "postprocessor_args": {"extractaudio": list(NORMALIZE_AUDIO_ARGS)},
        }
        if self._ffmpeg_location:
            options["ffmpeg_location"] = self._ffmpeg_location

        logger.info(
            "Downloading audio",
            extra={
                "event": "transcriber.ytdlp.download.start",
                "attributes": {"url": url, "output_dir": str(output_dir)},
                "console_suppress": True,
            },
        )
        try:
            with self._factory(options) as ydl:
                ydl.download([url])
        except _DownloadAborted as exc:
            raise exc.error from None
        except (DownloadError, ExtractorError) as exc:
            cause = exc.__context__
            if isinstance(cause, _DownloadAborted):
                raise cause.error from None
            if token is not None and token.cancelled:
                raise JobCancelledError(token.reason or str(exc)) from exc
            raise _translate_download_error(exc, "Audio download") from exc

        audio_path = self._locate_output(output_dir, stem)
        logger.info(
            "Audio downloaded",
            extra={
                "event": "transcriber.ytdlp.download.complete",
                "attributes": {"url": url, "path": str(audio_path)},
                "console_suppress": True,
            },
        )
        return AudioArtifact(path=audio_path)

    @staticmethod
    def _locate_output(output_dir: Path, stem: str) -> Path:
        expected = output_dir / f"{stem}.{AUDIO_CODEC}"
        if expected.is_file():
            return expected
        for extension in FALLBACK_AUDIO_EXTENSIONS:
            candidate = output_dir / f"{stem}{extension}"
            if candidate.is_file():
                logger.warning(
                    "Expected %s not found; using %s",
                    expected.name,
                    candidate.name,
                    extra={"event": "transcriber.ytdlp.download.fallback", "console_suppress": True},
                )
                return candidate
        raise OutputMissingError(f"Audio file was not produced: {expected}")


__all__ = ["YtDlpClient"]
