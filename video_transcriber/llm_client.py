"""Utility classes for interacting with Ollama chat endpoints."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

from . import config_manager as cfg
from . import logging_manager as log_mgr
from .cancellation import CancellationToken

logger = log_mgr.get_logger().getChild("llm_client")

TokenUsage = Dict[str, int]
Validator = Callable[[str], bool]


@dataclass(frozen=True)
class ClientSettings:
    """Immutable collection of configuration parameters for an :class:`LLMClient`."""

    model: str = cfg.DEFAULT_MODEL
    api_url: str = cfg.DEFAULT_OLLAMA_URL
    api_key: Optional[str] = None
    timeout: int = 90
    debug: bool = False


@dataclass
class LLMResponse:
    """Container for responses returned by :class:`LLMClient.send_chat_request`."""

    text: str
    status_code: int
    token_usage: TokenUsage
    raw: Optional[Any] = None
    error: Optional[str] = None


def _message_content(message: Any) -> Optional[str]:
    if isinstance(message, dict):
        content = message.get("content")
        if isinstance(content, str):
            return content
    return None


class LLMClient:
    """Stateless helper for issuing chat requests against the Ollama API."""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._session = session or requests.Session()

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def model(self) -> str:
        return self._settings.model

    @property
    def api_url(self) -> str:
        return self._settings.api_url

    def _log_debug(self, message: str, *args: Any) -> None:
        if self._settings.debug:
            logger.debug(message, *args)

    def _extract_token_usage(self, data: Dict[str, Any]) -> TokenUsage:
        usage: TokenUsage = {}
        for key in ("prompt_eval_count", "eval_count"):
            value = data.get(key)
            if isinstance(value, int):
                usage[key] = value
        return usage

    def _parse_json_response(self, response: requests.Response) -> LLMResponse:
        try:
            data = response.json()
        except ValueError as exc:
            return LLMResponse(
                text="",
                status_code=response.status_code,
                token_usage={},
                raw=response.text,
                error=f"Invalid JSON response: {exc}",
            )

        if not isinstance(data, dict):
            return LLMResponse(
                text="",
                status_code=response.status_code,
                token_usage={},
                raw=data,
                error="Unexpected response payload",
            )

        message = _message_content(data.get("message"))
        if not message and isinstance(data.get("response"), str):
            message = data["response"]
        if not message and isinstance(data.get("choices"), list) and data["choices"]:
            choice = data["choices"][0]
            if isinstance(choice, dict):
                message = _message_content(choice.get("message"))

        return LLMResponse(
            text=message if isinstance(message, str) else "",
            status_code=response.status_code,
            token_usage=self._extract_token_usage(data),
            raw=data,
        )

    def _execute_request(self, payload: Dict[str, Any], *, timeout: Optional[int]) -> LLMResponse:
        api_url = self.api_url
        self._log_debug("Dispatching LLM request to %s", api_url)
        self._log_debug("Payload: %s", json.dumps(payload, indent=2, ensure_ascii=False))

        headers: Dict[str, str] = {}
        if self._settings.api_key:
            headers["Authorization"] = f"Bearer {self._settings.api_key}"

        response = self._session.post(
            api_url,
            json=payload,
            headers=headers or None,
            timeout=timeout or self._settings.timeout,
        )

        if response.status_code != 200:
            body_preview = response.text[:300]
            self._log_debug("Received non-200 response: %s - %s", response.status_code, body_preview)
            error_message = f"HTTP {response.status_code}"
            if body_preview:
                error_message = f"{error_message}: {body_preview}"
            return LLMResponse(
                text="",
                status_code=response.status_code,
                token_usage={},
                raw=response.text,
                error=error_message,
            )
        return self._parse_json_response(response)

    def send_chat_request(
        self,
        payload: Dict[str, Any],
        *,
        max_attempts: int = 3,
        timeout: Optional[int] = None,
        validator: Optional[Validator] = None,
        backoff_seconds: float = 1.0,
        cancel_token: Optional[CancellationToken] = None,
    ) -> LLMResponse:
        """Send a chat request with retries and optional response validation.

        When ``cancel_token`` is given it is checked before every attempt and
        during backoff, raising :class:`JobCancelledError` once set.
        """

        working_payload = dict(payload)
        working_payload.setdefault("model", self.model)
        working_payload.setdefault("stream", False)
        last_error: Optional[str] = None

        for attempt in range(1, max_attempts + 1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                result = self._execute_request(working_payload, timeout=timeout)
            except requests.exceptions.RequestException as exc:
                last_error = str(exc)
                self._log_debug("Request error on attempt %s/%s: %s", attempt, max_attempts, exc)
            else:
                if result.error:
                    last_error = result.error
                    self._log_debug(
                        "LLM returned error on attempt %s/%s: %s", attempt, max_attempts, result.error
                    )
                else:
                    text = result.text.strip()
                    if validator and not validator(text):
                        last_error = "Validation failed"
                    elif not text:
                        last_error = "Empty response"
                    else:
                        return result

            if attempt < max_attempts:
                self._sleep(backoff_seconds * attempt, cancel_token)

        return LLMResponse(text="", status_code=0, token_usage={}, raw=None, error=last_error)

    @staticmethod
    def _sleep(seconds: float, cancel_token: Optional[CancellationToken]) -> None:
        if seconds <= 0:
            return
        if cancel_token is None:
            time.sleep(seconds)
            return
        if cancel_token.wait(seconds):
            cancel_token.raise_if_cancelled()

    def close(self) -> None:
        """Release any network resources associated with this client."""

        self._session.close()

    def __enter__(self) -> "LLMClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()


def create_client(
    settings: Optional[cfg.TranscriberSettings] = None,
    *,
    session: Optional[requests.Session] = None,
) -> LLMClient:
    """Return a new :class:`LLMClient` configured from ``settings``."""

    settings = settings or cfg.get_settings()
    api_key = settings.ollama_api_key.get_secret_value() if settings.ollama_api_key else None
    client_settings = ClientSettings(
        model=settings.ollama_model or cfg.DEFAULT_MODEL,
        api_url=settings.ollama_url,
        api_key=api_key,
        timeout=settings.llm_timeout_seconds,
    )
    return LLMClient(settings=client_settings, session=session)


__all__ = ["ClientSettings", "LLMClient", "LLMResponse", "create_client"]
