"""Shared constants for the configuration manager package."""
from __future__ import annotations

import os
import shutil
from pathlib import Path

MODULE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = MODULE_DIR.parents[1]
CONF_DIR = PROJECT_ROOT / "conf"
DEFAULT_CONFIG_PATH = CONF_DIR / "config.json"
DEFAULT_LOCAL_CONFIG_PATH = CONF_DIR / "config.local.json"

DEFAULT_OUTPUT_RELATIVE = Path("temp")
DEFAULT_TASKS_FILE_RELATIVE = DEFAULT_OUTPUT_RELATIVE / "tasks.json"

DEFAULT_OLLAMA_URL = os.environ.get("OLLAMA_URL", "http://127.0.0.1:11434/api/chat")
DEFAULT_MODEL = "gpt-oss:120b-cloud"
DEFAULT_FFMPEG_PATH = os.environ.get("FFMPEG_PATH") or shutil.which("ffmpeg")
DEFAULT_WHISPER_EXECUTABLE = "/usr/local/bin/whisper"
DEFAULT_WHISPER_MODEL = "/usr/local/share/whisper/ggml-base.bin"

DEFAULT_JOB_MAX_WORKERS = 4
DEFAULT_HEARTBEAT_INTERVAL_SECONDS = 25.0
DEFAULT_STREAM_TIMEOUT_SECONDS = 30 * 60.0
DEFAULT_ERROR_MESSAGE_LIMIT = 100
DEFAULT_YTDLP_TIMEOUT_SECONDS = 300.0
DEFAULT_METADATA_TIMEOUT_SECONDS = 60.0
DEFAULT_WHISPER_TIMEOUT_SECONDS = 30 * 60.0
DEFAULT_LLM_TIMEOUT_SECONDS = 180

SENSITIVE_CONFIG_KEYS = {"ollama_api_key"}

__all__ = [
    "MODULE_DIR",
    "PROJECT_ROOT",
    "CONF_DIR",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_LOCAL_CONFIG_PATH",
    "DEFAULT_OUTPUT_RELATIVE",
    "DEFAULT_TASKS_FILE_RELATIVE",
    "DEFAULT_OLLAMA_URL",
    "DEFAULT_MODEL",
    "DEFAULT_FFMPEG_PATH",
    "DEFAULT_WHISPER_EXECUTABLE",
    "DEFAULT_WHISPER_MODEL",
    "DEFAULT_JOB_MAX_WORKERS",
    "DEFAULT_HEARTBEAT_INTERVAL_SECONDS",
    "DEFAULT_STREAM_TIMEOUT_SECONDS",
    "DEFAULT_ERROR_MESSAGE_LIMIT",
    "DEFAULT_YTDLP_TIMEOUT_SECONDS",
    "DEFAULT_METADATA_TIMEOUT_SECONDS",
    "DEFAULT_WHISPER_TIMEOUT_SECONDS",
    "DEFAULT_LLM_TIMEOUT_SECONDS",
    "SENSITIVE_CONFIG_KEYS",
]
