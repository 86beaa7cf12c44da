"""Capability shared by all provider adapters."""

from typing import Callable, Optional, Protocol, runtime_checkable

from ..errors import ConfigurationError, ProviderError
from ..models.audio import AudioArtifact
from ..models.pipeline import JobStatus
from ..network.http import HttpReply

ProgressCallback = Callable[[JobStatus], None]

MB = 1024 * 1024


@runtime_checkable
class ProviderAdapter(Protocol):
    """Transcription + analysis backend."""

    name: str

    def ensure_configured(self) -> None:
        """Raise ConfigurationError if a required credential or endpoint is missing."""
        ...

    async def transcribe(self, artifact: AudioArtifact, progress: Optional[ProgressCallback] = None) -> str:
        ...

    async def analyze(self, transcript: str) -> str:
        """Return the model's raw analysis text (expected to be JSON)."""
        ...


def require(value: str, message: str) -> str:
    if not value or not value.strip():
        raise ConfigurationError(message)
    return value.strip()


def report(progress: Optional[ProgressCallback], status: JobStatus) -> None:
    if progress is not None:
        progress(status)


def raise_for_reply(reply: HttpReply, provider: str, label: str) -> None:
    """Turn a non-2xx reply into a ProviderError carrying the API's own message."""
    if reply.ok:
        return
    error = reply.json_or_empty().get("error")
    message = None
    if isinstance(error, dict):
        message = error.get("message")
    elif isinstance(error, str):
        message = error
    raise ProviderError(message or f"{label} API error ({reply.status})",
                        status=reply.status, provider=provider)
