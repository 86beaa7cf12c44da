"""Exception hierarchy for VetScribe."""

from typing import Optional


class VetScribeError(Exception):
    """Base class for all VetScribe errors."""


class MicrophonePermissionError(VetScribeError, PermissionError):
    """Raised when the microphone cannot be opened for capture."""


class ConfigurationError(VetScribeError):
    """Raised when the selected provider is missing a credential or endpoint."""


class TransportError(VetScribeError):
    """Network-level failure: no HTTP response was received."""


class ProviderError(VetScribeError):
    """A provider answered, but with an error."""

    def __init__(self, message: str, status: Optional[int] = None, provider: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.provider = provider


class ArtifactTooLargeError(ProviderError):
    """Artifact exceeds the provider's upload limit (checked client-side)."""


class DecodeError(VetScribeError):
    """Compressed audio could not be decoded to PCM."""


class ParseError(VetScribeError):
    """Model output could not be parsed as an analysis object."""


class PipelineBusyError(VetScribeError):
    """A pipeline run is already in flight."""


class HistoryWriteError(VetScribeError):
    """The history file could not be written."""


class InvalidImportError(VetScribeError):
    """An import document is not valid JSON or has the wrong shape."""
