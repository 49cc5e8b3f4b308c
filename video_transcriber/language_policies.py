"""Language code normalisation and equivalence rules."""

from __future__ import annotations

from typing import Optional

_LANGUAGE_ALIASES = {
    "chinese": "zh",
    "cn": "zh",
    "english": "en",
}

_DISPLAY_NAMES = {
    "en": "English",
    "zh": "中文（简体）",
    "es": "Español",
    "fr": "Français",
    "de": "Deutsch",
    "it": "Italiano",
    "pt": "Português",
    "ru": "Русский",
    "ja": "日本語",
    "ko": "한국어",
    "ar": "العربية",
}


def normalize_language_code(value: Optional[str]) -> str:
    """Return ``value`` lower-cased with ``_`` separators replaced by ``-``."""

    if not value:
        return ""
    return value.strip().lower().replace("_", "-")


def primary_language(value: Optional[str]) -> str:
    """Return the primary subtag of ``value`` with common aliases folded."""

    normalized = normalize_language_code(value)
    if not normalized:
        return ""
    normalized = _LANGUAGE_ALIASES.get(normalized, normalized)
    primary = normalized.split("-", 1)[0]
    return _LANGUAGE_ALIASES.get(primary, primary)


def languages_equivalent(left: Optional[str], right: Optional[str]) -> bool:
    """Return ``True`` when both codes name the same language.

    Regional and script variants are treated as the same language, so
    ``zh``, ``zh-CN`` and ``zh_Hans`` all compare equal.
    """

    left_primary = primary_language(left)
    right_primary = primary_language(right)
    return bool(left_primary) and left_primary == right_primary


def should_translate(source_language: Optional[str], target_language: Optional[str]) -> bool:
    """Return whether text in ``source_language`` needs translating to ``target_language``."""

    if not primary_language(source_language) or not primary_language(target_language):
        return False
    return not languages_equivalent(source_language, target_language)


def language_display_name(code: Optional[str]) -> str:
    """Return a human readable name for prompts, falling back to ``code`` itself."""

    primary = primary_language(code)
    return _DISPLAY_NAMES.get(primary, code or "")


__all__ = [
    "language_display_name",
    "languages_equivalent",
    "normalize_language_code",
    "primary_language",
    "should_translate",
]
