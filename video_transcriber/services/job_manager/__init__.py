"""Public interface for the transcription job management subsystem."""

from .artifacts import ArtifactWriter
from .collaborators import PipelineCollaborators, build_default_collaborators
from .dedup import DedupIndex
from .executor import TranscriptionJobExecutor, TranscriptionJobExecutorHooks
from .job import (
    InvalidJobRequestError,
    JobNotFoundError,
    JobRecord,
    JobSnapshot,
    JobStatus,
    JobTransitionError,
)
from .manager import JobSubmission, TranscriptionJobManager
from .registry import JobRegistry

__all__ = [
    "TranscriptionJobManager",
    "TranscriptionJobExecutor",
    "TranscriptionJobExecutorHooks",
    "JobSubmission",
    "JobRegistry",
    "DedupIndex",
    "ArtifactWriter",
    "PipelineCollaborators",
    "build_default_collaborators",
    "JobRecord",
    "JobSnapshot",
    "JobStatus",
    "JobNotFoundError",
    "InvalidJobRequestError",
    "JobTransitionError",
]
