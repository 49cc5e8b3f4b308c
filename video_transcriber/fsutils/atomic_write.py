"""Crash-safe file replacement helpers."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


class AtomicWriteError(RuntimeError):
    """Raised when a payload could not be written and swapped into place."""


def atomic_write_text(path: Path | str, payload: str, *, encoding: str = "utf-8") -> Path:
    """Write ``payload`` next to ``path`` and atomically replace ``path`` with it.

    The previous file stays intact until :func:`os.replace` succeeds.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding=encoding,
            dir=target.parent,
            prefix=f".{target.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, target)
    except OSError as exc:
        if temp_path is not None:
            try:
                temp_path.unlink()
            except OSError:
                pass
        raise AtomicWriteError(f"Unable to write {target}: {exc}") from exc
    return target


__all__ = ["AtomicWriteError", "atomic_write_text"]
