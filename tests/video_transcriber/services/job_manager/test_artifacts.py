from __future__ import annotations

from video_transcriber.integrations.whisper_client import WhisperClient
from video_transcriber.integrations.ytdlp_client import YtDlpClient
from video_transcriber.services.job_manager import ArtifactWriter, build_default_collaborators
from video_transcriber.services.job_manager.stages import PIPELINE_STAGES, failure_message
from video_transcriber.services.text_services import Summarizer


def test_artifact_names_use_sanitized_title_and_short_id(tmp_path):
    writer = ArtifactWriter(tmp_path)

    path = writer.write_transcript("0f1e2d3c-aaaa", "My: Talk?", "https://x/v", "Body.")

    assert path == tmp_path / "transcript_My_Talk_0f1e2d.md"
    assert path.read_text(encoding="utf-8") == "# My: Talk?\n\nBody.\n\nsource: https://x/v\n"


def test_raw_and_summary_artifacts_have_no_heading(tmp_path):
    writer = ArtifactWriter(tmp_path)

    raw = writer.write_raw_transcript("abcdef123", "Talk", "https://x/v", "words")
    summary = writer.write_summary("abcdef123", "Talk", "https://x/v", "## Points")

    assert raw.name == "raw_Talk_abcdef.md"
    assert raw.read_text(encoding="utf-8") == "words\n\nsource: https://x/v\n"
    assert summary.read_text(encoding="utf-8").startswith("## Points")


def test_stage_checkpoints_increase():
    progress = [stage.progress for stage in PIPELINE_STAGES]

    assert progress == sorted(progress)
    assert progress[-1] < 100
    assert failure_message("abcdef", 3) == "Processing failed: abc..."


def test_default_collaborators_wire_real_adapters(settings):
    collaborators = build_default_collaborators(settings)

    assert isinstance(collaborators.metadata, YtDlpClient)
    assert collaborators.audio is collaborators.metadata
    assert isinstance(collaborators.transcriber, WhisperClient)
    assert isinstance(collaborators.summarizer, Summarizer)
    assert not collaborators.translator.available
