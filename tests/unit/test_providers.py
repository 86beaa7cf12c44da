"""Unit tests for the Gemini, OpenAI and local provider adapters."""

import asyncio
import base64
import pytest
from pydantic import ValidationError

from vetscribe.config import GeminiSettings, LocalSettings, OpenAISettings, ProviderKind, ProviderSettings
from vetscribe.errors import ArtifactTooLargeError, ConfigurationError, ProviderError
from vetscribe.models.audio import AudioArtifact
from vetscribe.models.pipeline import JobStatus
from vetscribe.providers import GeminiProvider, LocalProvider, OpenAIProvider, ProviderAdapter, resolve_provider
from vetscribe.providers.base import MB
from vetscribe.providers.prompts import ANALYSIS_SYSTEM_PROMPT, TRANSCRIPTION_PROMPT, VIDEO_TRANSCRIPTION_PROMPT


def large_artifact(megabytes: int, mime_type: str = 'audio/webm') -> AudioArtifact:
    return AudioArtifact(payload=b'\x00' * (megabytes * MB), mime_type=mime_type)


@pytest.mark.unit
class TestGeminiProvider:
    """Test cases for GeminiProvider."""

    def make(self, fake_http, no_sleep, api_key="test-key"):
        return GeminiProvider(GeminiSettings(api_key=api_key), fake_http, sleep=no_sleep)

    def test_small_artifact_is_sent_inline(self, fake_http, no_sleep, replies, wav_artifact):
        fake_http.queue(replies.gemini("獸醫：今天怎麼了？"))
        provider = self.make(fake_http, no_sleep)
        statuses = []

        transcript = asyncio.run(provider.transcribe(wav_artifact, progress=statuses.append))

        assert transcript == "獸醫：今天怎麼了？"
        assert len(fake_http.calls) == 1
        call = fake_http.calls[0]
        assert call.method == "POST"
        assert call.url == ("https://generativelanguage.googleapis.com/v1beta/models/"
                            "gemini-2.5-flash:generateContent?key=test-key")
        media, prompt = call.json_body["contents"][0]["parts"]
        assert media["inline_data"]["mime_type"] == "audio/wav"
        assert base64.b64decode(media["inline_data"]["data"]) == wav_artifact.payload
        assert prompt["text"] == TRANSCRIPTION_PROMPT
        assert statuses == [JobStatus.UPLOADING, JobStatus.PROCESSING]
        assert no_sleep.delays == []

    def test_five_megabyte_wav_then_analysis(self, fake_http, no_sleep, replies):
        artifact = large_artifact(5, mime_type='audio/wav')
        fake_http.queue(replies.gemini("逐字稿"), replies.gemini('{"chief_complaint": ["咳嗽"]}'))
        provider = self.make(fake_http, no_sleep)

        async def scenario():
            transcript = await provider.transcribe(artifact)
            return transcript, await provider.analyze(transcript)

        transcript, raw = asyncio.run(scenario())

        assert transcript == "逐字稿"
        assert raw == '{"chief_complaint": ["咳嗽"]}'
        transcription, analysis = fake_http.calls
        assert "inline_data" in transcription.json_body["contents"][0]["parts"][0]
        assert analysis.json_body["generation_config"]["response_mime_type"] == "application/json"

    def test_large_artifact_uses_resumable_upload(self, fake_http, no_sleep, replies):
        artifact = large_artifact(20)
        file_uri = "https://generativelanguage.googleapis.com/v1beta/files/abc123"
        fake_http.queue(
            replies.json({}, headers={"X-Goog-Upload-URL": "https://upload.example/session/1"}),
            replies.json({"file": {"name": "files/abc123", "state": "PROCESSING", "uri": file_uri}}),
            replies.json({"name": "files/abc123", "state": "ACTIVE", "uri": file_uri}),
            replies.gemini("逐字稿"),
        )
        provider = self.make(fake_http, no_sleep)
        statuses = []

        transcript = asyncio.run(provider.transcribe(artifact, progress=statuses.append))

        assert transcript == "逐字稿"
        start, upload, poll, generate = fake_http.calls

        assert start.url == "https://generativelanguage.googleapis.com/upload/v1beta/files?key=test-key"
        assert start.headers["X-Goog-Upload-Protocol"] == "resumable"
        assert start.headers["X-Goog-Upload-Command"] == "start"
        assert start.headers["X-Goog-Upload-Header-Content-Length"] == str(20 * MB)
        assert start.headers["X-Goog-Upload-Header-Content-Type"] == "audio/webm"
        assert start.json_body == {"file": {"display_name": "vetscribe_audio"}}

        assert upload.url == "https://upload.example/session/1"
        assert upload.headers["X-Goog-Upload-Offset"] == "0"
        assert upload.headers["X-Goog-Upload-Command"] == "upload, finalize"
        assert upload.data == artifact.payload

        assert poll.method == "GET"
        assert poll.url == "https://generativelanguage.googleapis.com/v1beta/files/abc123?key=test-key"
        assert no_sleep.delays == [2.0]

        media = generate.json_body["contents"][0]["parts"][0]
        assert media == {"file_data": {"mime_type": "audio/webm", "file_uri": file_uri}}
        assert "inline_data" not in str(generate.json_body)
        assert statuses[0] is JobStatus.UPLOADING
        assert statuses[-1] is JobStatus.PROCESSING

    def test_failed_remote_processing(self, fake_http, no_sleep, replies):
        fake_http.queue(
            replies.json({}, headers={"X-Goog-Upload-URL": "https://upload.example/session/2"}),
            replies.json({"file": {"name": "files/bad", "state": "FAILED"}}),
        )
        provider = self.make(fake_http, no_sleep)

        with pytest.raises(ProviderError):
            asyncio.run(provider.transcribe(large_artifact(16)))
        assert len(fake_http.calls) == 2

    def test_missing_upload_url(self, fake_http, no_sleep, replies):
        fake_http.queue(replies.json({}))
        with pytest.raises(ProviderError):
            asyncio.run(self.make(fake_http, no_sleep).transcribe(large_artifact(16)))

    def test_api_error_message_is_surfaced(self, fake_http, no_sleep, replies, wav_artifact):
        fake_http.queue(replies.json({"error": {"code": 400, "message": "API key not valid."}}, status=400))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(self.make(fake_http, no_sleep).transcribe(wav_artifact))

        assert exc_info.value.message == "API key not valid."
        assert exc_info.value.status == 400
        assert exc_info.value.provider == "gemini"

    def test_generic_message_without_error_body(self, fake_http, no_sleep, replies, wav_artifact):
        fake_http.queue(replies.text("Service Unavailable", status=503))
        with pytest.raises(ProviderError, match=r"Gemini API error \(503\)"):
            asyncio.run(self.make(fake_http, no_sleep).transcribe(wav_artifact))

    def test_missing_key_fails_before_any_request(self, fake_http, no_sleep, wav_artifact):
        provider = self.make(fake_http, no_sleep, api_key="")

        with pytest.raises(ConfigurationError):
            asyncio.run(provider.transcribe(wav_artifact))
        with pytest.raises(ConfigurationError):
            asyncio.run(provider.analyze("transcript"))
        assert fake_http.calls == []

    def test_analyze_request(self, fake_http, no_sleep, replies):
        fake_http.queue(replies.gemini('{"symptoms": ["嘔吐"]}'))
        raw = asyncio.run(self.make(fake_http, no_sleep).analyze("飼主：牠一直吐"))

        assert raw == '{"symptoms": ["嘔吐"]}'
        body = fake_http.calls[0].json_body
        assert body["system_instruction"]["parts"][0]["text"] == ANALYSIS_SYSTEM_PROMPT
        assert "飼主：牠一直吐" in body["contents"][0]["parts"][0]["text"]
        assert body["generation_config"] == {"temperature": 0.2, "response_mime_type": "application/json"}

    def test_analyze_without_candidates(self, fake_http, no_sleep, replies):
        fake_http.queue(replies.json({"candidates": []}))
        assert asyncio.run(self.make(fake_http, no_sleep).analyze("x")) == "{}"

    def test_transcribe_url(self, fake_http, no_sleep, replies):
        fake_http.queue(replies.gemini("影片逐字稿"))
        url = "https://www.youtube.com/watch?v=abc"

        transcript = asyncio.run(self.make(fake_http, no_sleep).transcribe_url(url))

        assert transcript == "影片逐字稿"
        media, prompt = fake_http.calls[0].json_body["contents"][0]["parts"]
        assert media == {"file_data": {"mime_type": "video/mp4", "file_uri": url}}
        assert prompt["text"] == VIDEO_TRANSCRIPTION_PROMPT


@pytest.mark.unit
class TestOpenAIProvider:
    """Test cases for OpenAIProvider."""

    def make(self, fake_http, api_key="sk-test"):
        return OpenAIProvider(OpenAISettings(api_key=api_key), fake_http)

    def test_transcription_form(self, fake_http, replies):
        fake_http.queue(replies.text("飼主：牠今天沒吃飯。\n"))
        artifact = AudioArtifact(payload=b'webm-bytes', mime_type='audio/webm;codecs=opus')
        statuses = []

        transcript = asyncio.run(self.make(fake_http).transcribe(artifact, progress=statuses.append))

        assert transcript == "飼主：牠今天沒吃飯。\n"
        call = fake_http.calls[0]
        assert call.url == "https://api.openai.com/v1/audio/transcriptions"
        assert call.headers["Authorization"] == "Bearer sk-test"
        audio = call.form_value("file")
        assert audio.value == b'webm-bytes'
        assert audio.filename == "recording.webm"
        assert call.form_value("model").value == "whisper-1"
        assert call.form_value("language").value == "zh"
        assert call.form_value("response_format").value == "text"
        assert statuses == [JobStatus.UPLOADING, JobStatus.PROCESSING]

    def test_oversized_artifact_rejected_locally(self, fake_http):
        with pytest.raises(ArtifactTooLargeError) as exc_info:
            asyncio.run(self.make(fake_http).transcribe(large_artifact(26)))

        assert "25MB" in str(exc_info.value)
        assert fake_http.calls == []

    def test_exactly_at_limit_is_allowed(self, fake_http, replies):
        fake_http.queue(replies.text("ok"))
        asyncio.run(self.make(fake_http).transcribe(large_artifact(25)))
        assert len(fake_http.calls) == 1

    def test_analyze_request(self, fake_http, replies):
        content = '{"treatment": ["止吐針"]}'
        fake_http.queue(replies.json({"choices": [{"message": {"role": "assistant", "content": content}}]}))

        raw = asyncio.run(self.make(fake_http).analyze("逐字稿"))

        assert raw == content
        call = fake_http.calls[0]
        assert call.url == "https://api.openai.com/v1/chat/completions"
        assert call.json_body["model"] == "gpt-4o"
        assert call.json_body["temperature"] == 0.2
        assert call.json_body["response_format"] == {"type": "json_object"}
        roles = [m["role"] for m in call.json_body["messages"]]
        assert roles == ["system", "user"]

    def test_analyze_without_content(self, fake_http, replies):
        fake_http.queue(replies.json({"choices": []}))
        assert asyncio.run(self.make(fake_http).analyze("x")) == "{}"

    def test_error_reply(self, fake_http, replies):
        fake_http.queue(replies.json({"error": {"message": "Incorrect API key provided"}}, status=401))
        with pytest.raises(ProviderError, match="Incorrect API key provided"):
            asyncio.run(self.make(fake_http).analyze("x"))

    def test_missing_key(self, fake_http, wav_artifact):
        with pytest.raises(ConfigurationError):
            asyncio.run(self.make(fake_http, api_key=" ").transcribe(wav_artifact))
        assert fake_http.calls == []


@pytest.mark.unit
class TestLocalProvider:
    """Test cases for LocalProvider."""

    def make(self, fake_http, no_sleep, base_url="http://192.168.1.20:5000/", gemini_key="test-key"):
        analyzer = GeminiProvider(GeminiSettings(api_key=gemini_key), fake_http, sleep=no_sleep)
        return LocalProvider(LocalSettings(base_url=base_url), fake_http, analyzer)

    def test_successful_transcription(self, fake_http, no_sleep, replies, wav_artifact):
        fake_http.queue(replies.json({"success": True, "text": "獸醫：請把牠放上檯子"}))

        transcript = asyncio.run(self.make(fake_http, no_sleep).transcribe(wav_artifact))

        assert transcript == "獸醫：請把牠放上檯子"
        call = fake_http.calls[0]
        assert call.url == "http://192.168.1.20:5000/api/transcribe"
        assert call.form_value("audio").value == wav_artifact.payload

    def test_service_reports_failure(self, fake_http, no_sleep, replies, wav_artifact):
        fake_http.queue(replies.json({"success": False, "error": "model not loaded"}))
        with pytest.raises(ProviderError, match="model not loaded"):
            asyncio.run(self.make(fake_http, no_sleep).transcribe(wav_artifact))

    def test_service_failure_with_error_status(self, fake_http, no_sleep, replies, wav_artifact):
        fake_http.queue(replies.json({"success": False, "error": "out of memory"}, status=500))
        with pytest.raises(ProviderError, match="out of memory"):
            asyncio.run(self.make(fake_http, no_sleep).transcribe(wav_artifact))

    def test_non_json_error(self, fake_http, no_sleep, replies, wav_artifact):
        fake_http.queue(replies.text("<html>Bad Gateway</html>", status=502))
        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(self.make(fake_http, no_sleep).transcribe(wav_artifact))
        assert exc_info.value.status == 502

    def test_analysis_is_delegated(self, fake_http, no_sleep, replies):
        fake_http.queue(replies.gemini('{"other": ["回診"]}'))
        raw = asyncio.run(self.make(fake_http, no_sleep).analyze("逐字稿"))

        assert raw == '{"other": ["回診"]}'
        assert ":generateContent" in fake_http.calls[0].url

    def test_configuration_checks(self, fake_http, no_sleep):
        with pytest.raises(ConfigurationError):
            self.make(fake_http, no_sleep, base_url="").ensure_configured()
        with pytest.raises(ConfigurationError):
            self.make(fake_http, no_sleep, gemini_key="").ensure_configured()
        self.make(fake_http, no_sleep).ensure_configured()

    @pytest.mark.parametrize("base_url", ["192.168.1.20:5000", "localhost:5000", "ftp://192.168.1.20"])
    def test_base_url_without_http_scheme(self, fake_http, no_sleep, wav_artifact, base_url):
        provider = self.make(fake_http, no_sleep, base_url=base_url)

        with pytest.raises(ConfigurationError, match="http://"):
            provider.ensure_configured()
        with pytest.raises(ConfigurationError):
            asyncio.run(provider.transcribe(wav_artifact))
        assert fake_http.calls == []


@pytest.mark.unit
class TestResolveProvider:
    """Test cases for resolve_provider."""

    def test_gemini_is_default(self, fake_http):
        adapter = resolve_provider(ProviderSettings(), http=fake_http)
        assert isinstance(adapter, GeminiProvider)
        assert isinstance(adapter, ProviderAdapter)

    def test_openai(self, openai_settings, fake_http):
        adapter = resolve_provider(openai_settings, http=fake_http)
        assert isinstance(adapter, OpenAIProvider)
        assert adapter.settings.api_key == "sk-test"

    def test_local_wraps_cloud_analyzer(self, fake_http):
        settings = ProviderSettings.model_validate({
            "provider": "local",
            "local": {"base_url": "http://localhost:5000", "analysis_provider": "openai"},
            "openai": {"api_key": "sk-test"},
        })
        adapter = resolve_provider(settings, http=fake_http)

        assert isinstance(adapter, LocalProvider)
        assert isinstance(adapter.analyzer, OpenAIProvider)
        assert adapter.name == "local"

    def test_local_cannot_analyze_locally(self):
        with pytest.raises(ValidationError):
            LocalSettings(base_url="http://x", analysis_provider=ProviderKind.LOCAL)

    def test_resolving_does_not_check_credentials(self):
        adapter = resolve_provider(ProviderSettings())
        with pytest.raises(ConfigurationError):
            adapter.ensure_configured()
