"""OpenAI backend: Whisper transcription and chat-completion analysis."""

import logging
from typing import Optional

from ..audio.formats import extension_for
from ..config import OpenAISettings
from ..errors import ArtifactTooLargeError
from ..models.audio import AudioArtifact
from ..models.pipeline import JobStatus
from ..network.http import FormField, HttpClient
from .base import MB, ProgressCallback, raise_for_reply, report, require
from .prompts import ANALYSIS_SYSTEM_PROMPT, ANALYSIS_TEMPERATURE, analysis_user_message

logger = logging.getLogger(__name__)

UPLOAD_LIMIT_BYTES = 25 * MB
TRANSCRIPTION_LANGUAGE = "zh"


class OpenAIProvider:
    """Whisper + Chat Completions over the OpenAI REST API."""

    name = "openai"

    def __init__(self, settings: OpenAISettings, http: HttpClient):
        self.settings = settings
        self.http = http

    def ensure_configured(self) -> None:
        require(self.settings.api_key, "OpenAI API key is not configured")

    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {require(self.settings.api_key, 'OpenAI API key is not configured')}"}

    async def transcribe(self, artifact: AudioArtifact, progress: Optional[ProgressCallback] = None) -> str:
        """Single multipart upload; Whisper answers with plain text."""
        self.ensure_configured()
        if artifact.size > UPLOAD_LIMIT_BYTES:
            raise ArtifactTooLargeError(
                f"OpenAI Whisper accepts audio up to 25MB (got {artifact.size / MB:.1f}MB)",
                provider=self.name)

        report(progress, JobStatus.UPLOADING)
        form = [
            FormField("file", artifact.payload,
                      filename=f"recording.{extension_for(artifact.mime_type)}",
                      content_type=artifact.mime_type),
            FormField("model", self.settings.transcription_model),
            FormField("language", TRANSCRIPTION_LANGUAGE),
            FormField("response_format", "text"),
        ]
        reply = await self.http.request("POST", f"{self.settings.base_url}/audio/transcriptions",
                                        headers=self._auth_headers(), form=form)
        report(progress, JobStatus.PROCESSING)
        raise_for_reply(reply, self.name, "Whisper")
        return reply.text()

    async def analyze(self, transcript: str) -> str:
        self.ensure_configured()
        body = {
            "model": self.settings.model,
            "temperature": ANALYSIS_TEMPERATURE,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                {"role": "user", "content": analysis_user_message(transcript)},
            ],
        }
        headers = {"Content-Type": "application/json", **self._auth_headers()}
        reply = await self.http.request("POST", f"{self.settings.base_url}/chat/completions",
                                        headers=headers, json_body=body)
        raise_for_reply(reply, self.name, "OpenAI")

        try:
            return reply.json()["choices"][0]["message"]["content"] or "{}"
        except (ValueError, KeyError, IndexError, TypeError):
            logger.warning("OpenAI reply had no message content")
            return "{}"
