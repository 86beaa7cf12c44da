"""Pipeline and transcription job models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .analysis import AnalysisRecord
from .audio import AudioArtifact


class JobStatus(Enum):
    """Status of a transcription request against a provider."""
    PENDING = "pending"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class PipelineStage(Enum):
    """Stage of a two-step pipeline run."""
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class TranscriptionJob:
    """A single transcription request. Not persisted."""
    provider_id: str
    artifact: Optional[AudioArtifact] = None
    source_url: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    transcript: Optional[str] = None
    error: Optional[BaseException] = None
    status_history: List[JobStatus] = field(default_factory=list)

    def update(self, status: JobStatus) -> None:
        """Progress callback handed to provider adapters."""
        self.status = status
        self.status_history.append(status)


@dataclass
class PipelineRun:
    """Outcome of one submission through transcription and analysis."""
    stage: PipelineStage
    job: TranscriptionJob
    transcript: Optional[str] = None
    raw_analysis: Optional[str] = None
    analysis: Optional[AnalysisRecord] = None
    error: Optional[BaseException] = None
    failed_stage: Optional[PipelineStage] = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.stage is PipelineStage.COMPLETE

    @property
    def can_retry(self) -> bool:
        return self.stage is PipelineStage.FAILED and self.failed_stage is not None
