"""Data models for the VetScribe application."""

from .audio import AudioArtifact, AudioStats, CaptureState, PcmBuffer
from .analysis import AnalysisRecord, Category, CATEGORIES, CATEGORY_KEYS, CATCH_ALL_KEY
from .history import HistoryEntry
from .pipeline import JobStatus, PipelineRun, PipelineStage, TranscriptionJob

__all__ = [
    "AudioArtifact",
    "AudioStats",
    "CaptureState",
    "PcmBuffer",
    "AnalysisRecord",
    "Category",
    "CATEGORIES",
    "CATEGORY_KEYS",
    "CATCH_ALL_KEY",
    "HistoryEntry",
    "JobStatus",
    "PipelineRun",
    "PipelineStage",
    "TranscriptionJob",
]
