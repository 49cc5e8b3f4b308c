"""Markdown artifacts produced by a transcription run."""

from __future__ import annotations

from pathlib import Path

from ...fsutils import atomic_write_text, sanitize_filename


class ArtifactWriter:
    """Write per-job Markdown files into the output directory."""

    def __init__(self, output_dir: Path | str) -> None:
        self._output_dir = Path(output_dir)

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def artifact_path(self, kind: str, job_id: str, title: str) -> Path:
        return self._output_dir / f"{kind}_{sanitize_filename(title)}_{job_id[:6]}.md"

    def _write(self, kind: str, job_id: str, title: str, body: str) -> Path:
        return atomic_write_text(self.artifact_path(kind, job_id, title), body)

    def write_raw_transcript(self, job_id: str, title: str, url: str, text: str) -> Path:
        return self._write("raw", job_id, title, f"{text}\n\nsource: {url}\n")

    def write_transcript(self, job_id: str, title: str, url: str, text: str) -> Path:
        return self._write("transcript", job_id, title, f"# {title}\n\n{text}\n\nsource: {url}\n")

    def write_translation(self, job_id: str, title: str, url: str, text: str) -> Path:
        return self._write("translation", job_id, title, f"# {title}\n\n{text}\n\nsource: {url}\n")

    def write_summary(self, job_id: str, title: str, url: str, summary: str) -> Path:
        return self._write("summary", job_id, title, f"{summary}\n\nsource: {url}\n")


__all__ = ["ArtifactWriter"]
