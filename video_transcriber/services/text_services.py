"""LLM-backed text services applied to transcripts."""

from __future__ import annotations

from typing import Optional, Tuple

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from ..cancellation import CancellationToken
from ..integrations.errors import ToolExecutionError
from ..language_policies import language_display_name, should_translate
from ..llm_client import LLMClient, create_client

logger = log_mgr.get_logger().getChild("services.text")

SUMMARY_UNAVAILABLE = "Summary is currently unavailable."
SUMMARY_EMPTY = "No content to summarize."

_OPTIMIZE_PROMPT = """Improve the readability of the following video transcript while keeping its meaning.

Requirements:
- Fix grammar and punctuation
- Merge fragmented sentences into coherent paragraphs
- Keep all original content and do not add new information
- Keep the original language
- Use Markdown, without headings or commentary

Transcript:
```
{text}
```"""

_TRANSLATE_PROMPT = """Translate the following text from {source} into {target}.

Requirements:
- Preserve the Markdown structure and paragraphing
- Translate faithfully without adding or removing content
- Output only the translation

Text:
```
{text}
```"""

_SUMMARY_PROMPT = """Write a detailed summary in {language} of the following video content.

Video title: {title}

Requirements:
- Use Markdown
- Cover the main points and key information
- Use a clear structure with headings and lists
- Roughly 300-500 words
- Write in {language}

Content:
```
{text}
```"""


class _LLMTextService:
    """Shared plumbing for services that are only usable with an LLM endpoint."""

    def __init__(self, client: Optional[LLMClient]) -> None:
        self._client = client

    @property
    def available(self) -> bool:
        return self._client is not None

    def _complete(
        self,
        prompt: str,
        *,
        temperature: float,
        token: Optional[CancellationToken],
    ) -> Tuple[Optional[str], Optional[str]]:
        if self._client is None:
            raise ToolExecutionError("LLM client is not configured")
        response = self._client.send_chat_request(
            {
                "messages": [{"role": "user", "content": prompt}],
                "options": {"temperature": temperature},
            },
            cancel_token=token,
        )
        if response.error:
            return None, response.error
        return response.text.strip(), None


class TextOptimizer(_LLMTextService):
    """Clean up raw transcripts; passes text through when unavailable."""

    def optimize(self, text: str, token: Optional[CancellationToken] = None) -> str:
        if not self.available or not text.strip():
            return text
        optimized, error = self._complete(
            _OPTIMIZE_PROMPT.format(text=text), temperature=0.3, token=token
        )
        if error is not None:
            logger.warning(
                "Transcript optimisation failed; keeping raw text",
                extra={"event": "transcriber.llm.optimize_failed", "attributes": {"error": error}},
            )
            return text
        return optimized or text


class Translator(_LLMTextService):
    """Translate text between languages; passes text through when unavailable."""

    def translate(
        self,
        text: str,
        target_language: str,
        source_language: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> str:
        if not self.available or not text.strip():
            return text
        if source_language and not should_translate(source_language, target_language):
            return text
        prompt = _TRANSLATE_PROMPT.format(
            source=language_display_name(source_language) if source_language else "the source language",
            target=language_display_name(target_language),
            text=text,
        )
        translated, error = self._complete(prompt, temperature=0.3, token=token)
        if error is not None:
            logger.warning(
                "Translation failed; keeping source text",
                extra={"event": "transcriber.llm.translate_failed", "attributes": {"error": error}},
            )
            return text
        return translated or text


class Summarizer(_LLMTextService):
    """Summarise text; returns a fixed placeholder when unavailable."""

    def summarize(
        self,
        text: str,
        target_language: str,
        title: str,
        token: Optional[CancellationToken] = None,
    ) -> str:
        if not self.available:
            return SUMMARY_UNAVAILABLE
        if not text.strip():
            return SUMMARY_EMPTY
        language = language_display_name(target_language)
        summary, error = self._complete(
            _SUMMARY_PROMPT.format(language=language, title=title, text=text),
            temperature=0.5,
            token=token,
        )
        if error is not None:
            raise ToolExecutionError(f"Summary generation failed: {error}")
        return summary or SUMMARY_EMPTY


def build_text_services(
    settings: Optional[cfg.TranscriberSettings] = None,
    *,
    client: Optional[LLMClient] = None,
) -> Tuple[TextOptimizer, Translator, Summarizer]:
    """Return the three text services sharing one client, or none when disabled."""

    settings = settings or cfg.get_settings()
    if client is None and settings.llm_enabled and settings.ollama_url:
        client = create_client(settings)
    if client is None or not settings.llm_enabled:
        logger.warning(
            "LLM endpoint not configured; text services fall back to pass-through.",
            extra={"event": "transcriber.llm.unavailable", "console_suppress": True},
        )
        client = None
    return TextOptimizer(client), Translator(client), Summarizer(client)


__all__ = [
    "SUMMARY_EMPTY",
    "SUMMARY_UNAVAILABLE",
    "Summarizer",
    "TextOptimizer",
    "Translator",
    "build_text_services",
]
