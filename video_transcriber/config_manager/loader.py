"""Configuration loading utilities."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .. import logging_manager
from .constants import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_LOCAL_CONFIG_PATH,
    SENSITIVE_CONFIG_KEYS,
)
from .settings import (
    TranscriberSettings,
    apply_settings_updates,
    load_environment_overrides,
)

logger = logging_manager.get_logger()

_ACTIVE_SETTINGS: Optional[TranscriberSettings] = None


def _read_config_json(path: Optional[Path], label: str = "configuration") -> Dict[str, Any]:
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        logger.debug(
            "No %s found at %s.",
            label,
            path,
            extra={"event": "config.file.missing", "console_suppress": True},
        )
        return {}
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(
            "Error loading %s from %s: %s. Proceeding without it.",
            label,
            path,
            exc,
            extra={"event": "config.file.invalid", "console_suppress": True},
        )
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Ignoring %s at %s: expected a JSON object.",
            label,
            path,
            extra={"event": "config.file.invalid", "console_suppress": True},
        )
        return {}
    logger.debug(
        "Loaded %s from %s",
        label,
        path,
        extra={"event": "config.file.loaded", "console_suppress": True},
    )
    return data


def _deep_merge_dict(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def build_settings(config_file: Optional[str] = None) -> TranscriberSettings:
    """Return settings layered from defaults, config files and the environment."""

    payload = _read_config_json(DEFAULT_CONFIG_PATH, label="default configuration")

    if config_file:
        override_path = Path(config_file).expanduser()
        if not override_path.is_absolute():
            override_path = (Path.cwd() / override_path).resolve()
    else:
        override_path = DEFAULT_LOCAL_CONFIG_PATH
    payload = _deep_merge_dict(
        payload, _read_config_json(override_path, label="local configuration")
    )

    try:
        settings = TranscriberSettings.model_validate(payload)
    except ValidationError as exc:
        raise RuntimeError("Invalid configuration detected") from exc

    return apply_settings_updates(settings, load_environment_overrides())


def load_configuration(config_file: Optional[str] = None) -> Dict[str, Any]:
    """Load the layered configuration, activate it and return a dictionary view."""

    global _ACTIVE_SETTINGS
    settings = build_settings(config_file)
    _ACTIVE_SETTINGS = settings
    return settings.model_dump(mode="python", exclude=SENSITIVE_CONFIG_KEYS)


def get_settings() -> TranscriberSettings:
    """Return the currently loaded :class:`TranscriberSettings` instance."""

    global _ACTIVE_SETTINGS
    if _ACTIVE_SETTINGS is None:
        _ACTIVE_SETTINGS = build_settings()
    return _ACTIVE_SETTINGS


def reset_settings() -> None:
    """Forget the active settings so the next lookup reloads them."""

    global _ACTIVE_SETTINGS
    _ACTIVE_SETTINGS = None


__all__ = ["build_settings", "get_settings", "load_configuration", "reset_settings"]
