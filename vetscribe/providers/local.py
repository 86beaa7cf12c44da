"""Speech service on the local network, with analysis delegated to a cloud provider."""

import logging
from typing import Optional
from urllib.parse import urlsplit

from ..audio.formats import extension_for
from ..config import LocalSettings
from ..errors import ConfigurationError, ProviderError
from ..models.audio import AudioArtifact
from ..models.pipeline import JobStatus
from ..network.http import FormField, HttpClient
from .base import ProgressCallback, ProviderAdapter, raise_for_reply, report, require

logger = logging.getLogger(__name__)


class LocalProvider:
    """POST {base_url}/api/transcribe; expects {success, text?, error?}."""

    name = "local"

    def __init__(self, settings: LocalSettings, http: HttpClient, analyzer: ProviderAdapter):
        """Initialize local backend.

        Args:
            settings: Service base URL and the cloud provider used for analysis
            http: Client used for the upload
            analyzer: Cloud adapter whose analyze() this provider reuses
        """
        self.settings = settings
        self.http = http
        self.analyzer = analyzer

    def _base_url(self) -> str:
        base_url = require(self.settings.base_url, "Local transcription server URL is not configured")
        parts = urlsplit(base_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ConfigurationError(
                f"Local transcription server URL must start with http:// or https:// (got {base_url!r})")
        return base_url

    def ensure_configured(self) -> None:
        self._base_url()
        self.analyzer.ensure_configured()

    async def transcribe(self, artifact: AudioArtifact, progress: Optional[ProgressCallback] = None) -> str:
        url = f"{self._base_url().rstrip('/')}/api/transcribe"

        report(progress, JobStatus.UPLOADING)
        form = [FormField("audio", artifact.payload,
                          filename=f"recording.{extension_for(artifact.mime_type)}",
                          content_type=artifact.mime_type)]
        reply = await self.http.request("POST", url, form=form)
        report(progress, JobStatus.PROCESSING)

        data = reply.json_or_empty()
        if not reply.ok and "success" not in data:
            raise_for_reply(reply, self.name, "Local transcription")
        if not data.get("success"):
            raise ProviderError(data.get("error") or "Local transcription failed",
                                status=reply.status, provider=self.name)
        text = data.get("text") or ""
        logger.info(f"Local transcription returned {len(text)} characters")
        return text

    async def analyze(self, transcript: str) -> str:
        return await self.analyzer.analyze(transcript)
