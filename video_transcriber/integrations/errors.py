"""Exception hierarchy for external tool and service adapters."""

from __future__ import annotations

from typing import Optional, Sequence


class CollaboratorError(RuntimeError):
    """Base class for failures reported by an external collaborator."""


class ToolNotFoundError(CollaboratorError):
    """Raised when a required executable or library backend is missing."""

    def __init__(self, tool: str, detail: Optional[str] = None) -> None:
        message = f"{tool} not found"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.tool = tool


class ToolExecutionError(CollaboratorError):
    """Raised when a tool ran but reported failure."""

    def __init__(
        self,
        message: str,
        *,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.command = list(command) if command is not None else None
        self.returncode = returncode
        self.stderr = stderr


class OutputMissingError(CollaboratorError):
    """Raised when a tool exited cleanly but the expected output is absent."""


__all__ = [
    "CollaboratorError",
    "OutputMissingError",
    "ToolExecutionError",
    "ToolNotFoundError",
]
