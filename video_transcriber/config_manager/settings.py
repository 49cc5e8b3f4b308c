"""Pydantic models and helper utilities for configuration values."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from .. import logging_manager
from .constants import (
    DEFAULT_ERROR_MESSAGE_LIMIT,
    DEFAULT_FFMPEG_PATH,
    DEFAULT_HEARTBEAT_INTERVAL_SECONDS,
    DEFAULT_JOB_MAX_WORKERS,
    DEFAULT_LLM_TIMEOUT_SECONDS,
    DEFAULT_METADATA_TIMEOUT_SECONDS,
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_URL,
    DEFAULT_OUTPUT_RELATIVE,
    DEFAULT_STREAM_TIMEOUT_SECONDS,
    DEFAULT_TASKS_FILE_RELATIVE,
    DEFAULT_WHISPER_EXECUTABLE,
    DEFAULT_WHISPER_MODEL,
    DEFAULT_WHISPER_TIMEOUT_SECONDS,
    DEFAULT_YTDLP_TIMEOUT_SECONDS,
)

logger = logging_manager.get_logger()


def _resolve_path(value: str) -> Path:
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = Path.cwd() / candidate
    return candidate


class TranscriberSettings(BaseModel):
    """Typed representation of the application configuration."""

    model_config = ConfigDict(extra="allow")

    output_dir: str = str(DEFAULT_OUTPUT_RELATIVE)
    tasks_file: str = str(DEFAULT_TASKS_FILE_RELATIVE)
    job_max_workers: int = Field(default=DEFAULT_JOB_MAX_WORKERS, ge=1)
    heartbeat_interval_seconds: float = Field(default=DEFAULT_HEARTBEAT_INTERVAL_SECONDS, gt=0)
    stream_timeout_seconds: float = Field(default=DEFAULT_STREAM_TIMEOUT_SECONDS, gt=0)
    error_message_limit: int = Field(default=DEFAULT_ERROR_MESSAGE_LIMIT, ge=1)
    ytdlp_timeout_seconds: float = DEFAULT_YTDLP_TIMEOUT_SECONDS
    metadata_timeout_seconds: float = DEFAULT_METADATA_TIMEOUT_SECONDS
    ffmpeg_path: Optional[str] = DEFAULT_FFMPEG_PATH
    whisper_executable: str = DEFAULT_WHISPER_EXECUTABLE
    whisper_model: str = DEFAULT_WHISPER_MODEL
    whisper_timeout_seconds: float = DEFAULT_WHISPER_TIMEOUT_SECONDS
    llm_enabled: bool = True
    ollama_url: str = DEFAULT_OLLAMA_URL
    ollama_model: str = DEFAULT_MODEL
    ollama_api_key: Optional[SecretStr] = None
    llm_timeout_seconds: int = DEFAULT_LLM_TIMEOUT_SECONDS
    cors_allowed_origins: list[str] = Field(default_factory=lambda: ["*"])

    @property
    def output_path(self) -> Path:
        """Return the absolute directory that receives downloads and artifacts."""

        return _resolve_path(self.output_dir)

    @property
    def tasks_path(self) -> Path:
        """Return the absolute location of the durable job snapshot."""

        return _resolve_path(self.tasks_file)


class EnvironmentOverrides(BaseSettings):
    """Configuration overrides sourced from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    output_dir: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("VT_OUTPUT_DIR", "TEMP_DIR")
    )
    tasks_file: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("VT_TASKS_FILE")
    )
    job_max_workers: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("VT_JOB_MAX_WORKERS")
    )
    heartbeat_interval_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("VT_HEARTBEAT_INTERVAL")
    )
    ffmpeg_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("FFMPEG_PATH", "VT_FFMPEG_PATH")
    )
    whisper_executable: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("WHISPER_EXECUTABLE", "VT_WHISPER_EXECUTABLE"),
    )
    whisper_model: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("WHISPER_MODEL", "VT_WHISPER_MODEL")
    )
    llm_enabled: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("VT_LLM_ENABLED")
    )
    ollama_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OLLAMA_URL", "VT_OLLAMA_URL")
    )
    ollama_model: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OLLAMA_MODEL", "VT_OLLAMA_MODEL")
    )
    ollama_api_key: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("OLLAMA_API_KEY", "VT_OLLAMA_API_KEY")
    )


def load_environment_overrides() -> Dict[str, Any]:
    """Return configuration overrides sourced from environment variables."""

    try:
        overrides = EnvironmentOverrides()
    except ValidationError as exc:
        logger.warning(
            "Invalid environment configuration detected; using defaults.",
            extra={
                "event": "config.env.validation_error",
                "error": str(exc),
                "console_suppress": True,
            },
        )
        return {}
    return overrides.model_dump(exclude_none=True)


def apply_settings_updates(
    settings: TranscriberSettings, updates: Dict[str, Any]
) -> TranscriberSettings:
    """Return a copy of ``settings`` updated with ``updates`` if any values exist."""

    if not updates:
        return settings
    return settings.model_copy(update=updates)


__all__ = [
    "EnvironmentOverrides",
    "TranscriberSettings",
    "apply_settings_updates",
    "load_environment_overrides",
]
