"""History entry model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from .analysis import AnalysisRecord


@dataclass
class HistoryEntry:
    """A completed transcript + analysis pair."""
    id: int
    timestamp: datetime
    transcript: str
    analysis: AnalysisRecord

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "transcript": self.transcript,
            "analysis": self.analysis.to_dict(),
        }
