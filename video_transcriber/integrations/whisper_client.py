"""Subprocess wrapper around the whisper.cpp command line interface."""

from __future__ import annotations

import re
import shutil
import subprocess
import time
from pathlib import Path
from typing import Callable, List, Optional

from .. import logging_manager as log_mgr
from ..cancellation import CancellationToken, JobCancelledError
from .errors import OutputMissingError, ToolExecutionError, ToolNotFoundError
from .types import Transcription

logger = log_mgr.get_logger().getChild("integrations.whisper")

_DETECTED_LANGUAGE = re.compile(r"auto-detected language:\s*([A-Za-z]{2,3}(?:[-_][A-Za-z]+)?)")
UNKNOWN_LANGUAGE = "auto"
_OUTPUT_TAIL_CHARS = 2000

PopenFactory = Callable[..., subprocess.Popen]


class WhisperClient:
    """Run whisper.cpp against an audio file and collect the plain-text transcript."""

    def __init__(
        self,
        executable: str,
        model_path: str,
        *,
        timeout: float = 1800.0,
        poll_interval: float = 0.5,
        popen: PopenFactory = subprocess.Popen,
    ) -> None:
        self._executable = executable
        self._model_path = model_path
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._popen = popen

    def _resolve_executable(self) -> str:
        resolved = shutil.which(self._executable)
        if resolved:
            return resolved
        if Path(self._executable).is_file():
            return self._executable
        raise ToolNotFoundError("whisper", self._executable)

    def build_command(self, audio_path: Path, language_hint: Optional[str]) -> List[str]:
        command = [
            self._resolve_executable(),
            "-m",
            self._model_path,
            "-f",
            str(audio_path),
            "--output-txt",
            "-l",
            language_hint or UNKNOWN_LANGUAGE,
        ]
        return command

    def transcribe(
        self,
        audio_path: Path,
        language_hint: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> Transcription:
        """Transcribe ``audio_path``; kills the process when ``token`` is set."""

        if token is not None:
            token.raise_if_cancelled()
        audio_path = Path(audio_path)
        if not audio_path.is_file():
            raise OutputMissingError(f"Audio file not found: {audio_path}")
        if not Path(self._model_path).is_file():
            raise ToolNotFoundError("whisper model", self._model_path)

        command = self.build_command(audio_path, language_hint)
        logger.info(
            "Starting whisper transcription",
            extra={
                "event": "transcriber.whisper.start",
                "attributes": {"command": command},
                "console_suppress": True,
            },
        )
        try:
            process = self._popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except FileNotFoundError as exc:
            raise ToolNotFoundError("whisper", str(exc)) from exc

        output = self._wait(process, command, token)
        if process.returncode != 0:
            raise ToolExecutionError(
                f"whisper exited with code {process.returncode}",
                command=command,
                returncode=process.returncode,
                stderr=output[-_OUTPUT_TAIL_CHARS:],
            )

        transcript_path = Path(f"{audio_path}.txt")
        if not transcript_path.is_file():
            raise OutputMissingError(f"Transcript file was not produced: {transcript_path}")
        try:
            text = transcript_path.read_text(encoding="utf-8").strip()
        finally:
            transcript_path.unlink(missing_ok=True)

        detected = self._detect_language(output) or language_hint or UNKNOWN_LANGUAGE
        logger.info(
            "Whisper transcription finished",
            extra={
                "event": "transcriber.whisper.complete",
                "attributes": {"characters": len(text), "detected_language": detected},
                "console_suppress": True,
            },
        )
        return Transcription(text=text, detected_language=detected)

    def _wait(
        self,
        process: subprocess.Popen,
        command: List[str],
        token: Optional[CancellationToken],
    ) -> str:
        deadline = time.monotonic() + self._timeout
        while True:
            try:
                output, _ = process.communicate(timeout=self._poll_interval)
                return output or ""
            except subprocess.TimeoutExpired:
                if token is not None and token.cancelled:
                    self._terminate(process)
                    raise JobCancelledError(token.reason or "Task was cancelled by user.")
                if time.monotonic() >= deadline:
                    self._terminate(process)
                    raise ToolExecutionError(
                        f"whisper timed out after {self._timeout:.0f}s", command=command
                    )

    @staticmethod
    def _terminate(process: subprocess.Popen) -> None:
        process.kill()
        process.communicate()

    @staticmethod
    def _detect_language(output: str) -> Optional[str]:
        match = _DETECTED_LANGUAGE.search(output or "")
        if match is None:
            return None
        return match.group(1).lower()


__all__ = ["UNKNOWN_LANGUAGE", "WhisperClient"]
