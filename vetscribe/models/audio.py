"""Audio-related data models."""

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import numpy as np


# Extensions the stdlib mimetypes table does not know (or maps to video/*).
_AUDIO_EXTENSIONS = {
    ".wav": "audio/wav",
    ".webm": "audio/webm",
    ".weba": "audio/webm",
    ".m4a": "audio/x-m4a",
    ".mp4": "audio/mp4",
    ".mp3": "audio/mpeg",
    ".ogg": "audio/ogg",
    ".opus": "audio/ogg",
    ".flac": "audio/flac",
    ".aac": "audio/aac",
}


class CaptureState(Enum):
    """Lifecycle state of a capture session."""
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass(frozen=True)
class AudioArtifact:
    """Immutable audio payload plus its declared container type."""
    payload: bytes
    mime_type: str
    name: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.payload)

    @classmethod
    def from_file(cls, path: Union[str, Path], mime_type: Optional[str] = None) -> "AudioArtifact":
        """Load an audio file from disk.

        Args:
            path: Path to the audio file
            mime_type: Declared mime type; inferred from the extension if omitted

        Raises:
            ValueError: If the file is not recognised as audio
        """
        path = Path(path)
        if mime_type is None:
            mime_type = _AUDIO_EXTENSIONS.get(path.suffix.lower())
        if mime_type is None:
            mime_type, _ = mimetypes.guess_type(path.name)
        if not mime_type or not mime_type.startswith("audio/"):
            raise ValueError(f"Not an audio file: {path}")
        return cls(payload=path.read_bytes(), mime_type=mime_type, name=path.name)


@dataclass
class PcmBuffer:
    """Decoded linear PCM: one float array per channel, samples in [-1, 1]."""
    channels: List[np.ndarray]
    sample_rate: int

    @property
    def channel_count(self) -> int:
        return len(self.channels)

    @property
    def frame_count(self) -> int:
        return len(self.channels[0]) if self.channels else 0

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / self.sample_rate if self.sample_rate else 0.0


@dataclass
class AudioStats:
    """Capture session statistics."""
    state: CaptureState
    elapsed_seconds: float
    sample_rate: int
    channels: int
    total_chunks: int
    total_bytes: int
    peak_level: float
