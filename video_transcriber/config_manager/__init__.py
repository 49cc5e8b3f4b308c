"""Configuration management for the transcription service."""
from __future__ import annotations

from .constants import (
    CONF_DIR,
    DEFAULT_CONFIG_PATH,
    DEFAULT_ERROR_MESSAGE_LIMIT,
    DEFAULT_HEARTBEAT_INTERVAL_SECONDS,
    DEFAULT_JOB_MAX_WORKERS,
    DEFAULT_LOCAL_CONFIG_PATH,
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_URL,
    DEFAULT_OUTPUT_RELATIVE,
    DEFAULT_TASKS_FILE_RELATIVE,
    PROJECT_ROOT,
    SENSITIVE_CONFIG_KEYS,
)
from .loader import build_settings, get_settings, load_configuration, reset_settings
from .settings import (
    EnvironmentOverrides,
    TranscriberSettings,
    apply_settings_updates,
    load_environment_overrides,
)

__all__ = [
    "CONF_DIR",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_ERROR_MESSAGE_LIMIT",
    "DEFAULT_HEARTBEAT_INTERVAL_SECONDS",
    "DEFAULT_JOB_MAX_WORKERS",
    "DEFAULT_LOCAL_CONFIG_PATH",
    "DEFAULT_MODEL",
    "DEFAULT_OLLAMA_URL",
    "DEFAULT_OUTPUT_RELATIVE",
    "DEFAULT_TASKS_FILE_RELATIVE",
    "PROJECT_ROOT",
    "SENSITIVE_CONFIG_KEYS",
    "EnvironmentOverrides",
    "TranscriberSettings",
    "apply_settings_updates",
    "build_settings",
    "get_settings",
    "load_configuration",
    "load_environment_overrides",
    "reset_settings",
]
