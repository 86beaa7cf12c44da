"""Gemini multimodal backend: audio in, transcript out; transcript in, JSON out."""

import asyncio
import base64
import logging
from typing import Any, Dict, Optional

from ..audio.formats import gemini_mime_type
from ..config import GeminiSettings
from ..errors import ProviderError
from ..models.audio import AudioArtifact
from ..models.pipeline import JobStatus
from ..network.http import HttpClient
from ..network.resilient import Sleep
from .base import MB, ProgressCallback, raise_for_reply, report, require
from .prompts import (ANALYSIS_SYSTEM_PROMPT, ANALYSIS_TEMPERATURE, TRANSCRIPTION_PROMPT,
                      VIDEO_TRANSCRIPTION_PROMPT, analysis_user_message)

logger = logging.getLogger(__name__)

INLINE_LIMIT_BYTES = 15 * MB
POLL_INTERVAL_SECONDS = 2.0
UPLOAD_DISPLAY_NAME = "vetscribe_audio"


def _first_text(data: Dict[str, Any], default: str) -> str:
    try:
        return data["candidates"][0]["content"]["parts"][0].get("text") or default
    except (KeyError, IndexError, TypeError, AttributeError):
        return default


class GeminiProvider:
    """Gemini generateContent + Files API."""

    name = "gemini"

    def __init__(self, settings: GeminiSettings, http: HttpClient, sleep: Sleep = asyncio.sleep):
        """Initialize Gemini backend.

        Args:
            settings: API key, model and base URL
            http: Client used for every request
            sleep: Awaitable sleep used between status polls
        """
        self.settings = settings
        self.http = http
        self.sleep = sleep

    def ensure_configured(self) -> None:
        require(self.settings.api_key, "Gemini API key is not configured")

    @property
    def _key(self) -> str:
        return require(self.settings.api_key, "Gemini API key is not configured")

    def _generate_url(self) -> str:
        return (f"{self.settings.base_url}/v1beta/models/{self.settings.model}:generateContent"
                f"?key={self._key}")

    async def _generate(self, body: Dict[str, Any], default: str) -> str:
        reply = await self.http.request("POST", self._generate_url(),
                                        headers={"Content-Type": "application/json"},
                                        json_body=body)
        raise_for_reply(reply, self.name, "Gemini")
        return _first_text(reply.json_or_empty(), default)

    async def transcribe(self, artifact: AudioArtifact, progress: Optional[ProgressCallback] = None) -> str:
        """Inline base64 up to 15 MB, resumable upload above that."""
        self.ensure_configured()
        mime_type = gemini_mime_type(artifact.mime_type)

        if artifact.size > INLINE_LIMIT_BYTES:
            logger.info(f"Artifact is {artifact.size} bytes; using resumable upload")
            file_uri = await self._upload(artifact, mime_type, progress)
            media_part = {"file_data": {"mime_type": mime_type, "file_uri": file_uri}}
        else:
            report(progress, JobStatus.UPLOADING)
            media_part = {"inline_data": {
                "mime_type": mime_type,
                "data": base64.b64encode(artifact.payload).decode("ascii"),
            }}

        report(progress, JobStatus.PROCESSING)
        body = {"contents": [{"parts": [media_part, {"text": TRANSCRIPTION_PROMPT}]}]}
        return await self._generate(body, "")

    async def transcribe_url(self, url: str, progress: Optional[ProgressCallback] = None) -> str:
        """Transcribe a remote video (e.g. YouTube) by URI."""
        self.ensure_configured()
        report(progress, JobStatus.PROCESSING)
        body = {"contents": [{"parts": [
            {"file_data": {"mime_type": "video/mp4", "file_uri": url}},
            {"text": VIDEO_TRANSCRIPTION_PROMPT},
        ]}]}
        return await self._generate(body, "")

    async def analyze(self, transcript: str) -> str:
        self.ensure_configured()
        body = {
            "system_instruction": {"parts": [{"text": ANALYSIS_SYSTEM_PROMPT}]},
            "contents": [{"parts": [{"text": analysis_user_message(transcript)}]}],
            "generation_config": {
                "temperature": ANALYSIS_TEMPERATURE,
                "response_mime_type": "application/json",
            },
        }
        return await self._generate(body, "{}")

    async def _upload(self, artifact: AudioArtifact, mime_type: str,
                      progress: Optional[ProgressCallback]) -> str:
        """Resumable upload, then poll until the file is no longer processing.

        Returns:
            The uploaded file's URI
        """
        report(progress, JobStatus.UPLOADING)
        start = await self.http.request(
            "POST",
            f"{self.settings.base_url}/upload/v1beta/files?key={self._key}",
            headers={
                "X-Goog-Upload-Protocol": "resumable",
                "X-Goog-Upload-Command": "start",
                "X-Goog-Upload-Header-Content-Length": str(artifact.size),
                "X-Goog-Upload-Header-Content-Type": mime_type,
                "Content-Type": "application/json",
            },
            json_body={"file": {"display_name": UPLOAD_DISPLAY_NAME}},
        )
        raise_for_reply(start, self.name, "Gemini upload start")
        upload_url = start.header("X-Goog-Upload-URL")
        if not upload_url:
            raise ProviderError("Gemini did not return an upload URL", status=start.status, provider=self.name)

        uploaded = await self.http.request(
            "POST",
            upload_url,
            headers={
                "X-Goog-Upload-Offset": "0",
                "X-Goog-Upload-Command": "upload, finalize",
            },
            data=artifact.payload,
        )
        raise_for_reply(uploaded, self.name, "Gemini upload")
        file_info = uploaded.json_or_empty().get("file") or {}

        report(progress, JobStatus.PROCESSING)
        name = file_info.get("name")
        state = file_info.get("state")
        file_uri = file_info.get("uri")
        while state == "PROCESSING":
            await self.sleep(POLL_INTERVAL_SECONDS)
            status = await self.http.request(
                "GET", f"{self.settings.base_url}/v1beta/{name}?key={self._key}")
            raise_for_reply(status, self.name, "Gemini file status")
            status_info = status.json_or_empty()
            state = status_info.get("state")
            file_uri = status_info.get("uri") or file_uri
            logger.debug(f"Uploaded file {name} state: {state}")

        if state == "FAILED":
            raise ProviderError(f"Gemini could not process the uploaded file {name}", provider=self.name)
        if not file_uri:
            raise ProviderError("Gemini did not return a file URI", provider=self.name)
        return file_uri
