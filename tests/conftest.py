"""Pytest configuration and fixtures for VetScribe tests."""

import io
import json
import wave
import pytest
import tempfile
import logging
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import Mock, patch
import numpy as np

from vetscribe.config import ProviderSettings
from vetscribe.models.audio import AudioArtifact
from vetscribe.network.http import HttpReply


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without I/O beyond temp files")
    config.addinivalue_line("markers", "integration: multi-component workflows")


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """1024 samples of a 440 Hz sine as 16-bit little-endian PCM."""
    sample_rate = 16000
    t = np.arange(1024) / sample_rate
    audio_data = (np.sin(2 * np.pi * 440 * t) * 32767).astype('<i2')
    return audio_data.tobytes()


def make_wav_bytes(seconds: float = 0.5, sample_rate: int = 16000, channels: int = 1) -> bytes:
    frames = int(seconds * sample_rate)
    t = np.arange(frames) / sample_rate
    mono = (np.sin(2 * np.pi * 440 * t) * 16000).astype('<i2')
    samples = np.repeat(mono, channels) if channels > 1 else mono
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(samples.tobytes())
    return buffer.getvalue()


@pytest.fixture
def wav_artifact():
    return AudioArtifact(payload=make_wav_bytes(), mime_type='audio/wav', name='visit.wav')


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        mock_stream.stop_stream.return_value = None
        mock_stream.start_stream.return_value = None
        mock_stream.close.return_value = None

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


# ---------------------------------------------------------------- HTTP fakes

def json_reply(obj: Any, status: int = 200, headers: Optional[Dict[str, str]] = None) -> HttpReply:
    return HttpReply(
        status=status,
        body=json.dumps(obj, ensure_ascii=False).encode('utf-8'),
        headers={k.lower(): v for k, v in (headers or {}).items()},
    )


def text_reply(text: str, status: int = 200) -> HttpReply:
    return HttpReply(status=status, body=text.encode('utf-8'))


def gemini_text(text: str) -> HttpReply:
    return json_reply({"candidates": [{"content": {"parts": [{"text": text}]}}]})


@dataclass
class RecordedRequest:
    method: str
    url: str
    headers: Dict[str, str]
    json_body: Any = None
    data: Optional[bytes] = None
    form: Optional[list] = None

    def form_value(self, name: str):
        for f in self.form or []:
            if f.name == name:
                return f
        raise KeyError(name)


class FakeHttpClient:
    """Stands in for HttpClient: replays queued replies, records every request."""

    def __init__(self, replies=None):
        self.replies: List[Any] = list(replies or [])
        self.calls: List[RecordedRequest] = []

    def queue(self, *replies) -> None:
        self.replies.extend(replies)

    async def request(self, method, url, *, headers=None, json_body=None, data=None, form=None):
        self.calls.append(RecordedRequest(method, url, dict(headers or {}), json_body, data,
                                          list(form) if form is not None else None))
        if not self.replies:
            raise AssertionError(f"Unexpected request: {method} {url}")
        item = self.replies.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def fake_http():
    return FakeHttpClient()


class FakeResponse:
    def __init__(self, status: int = 200, body: bytes = b"", headers: Optional[Dict[str, str]] = None):
        self.status = status
        self.body = body
        self.headers = headers or {}

    async def read(self) -> bytes:
        return self.body


class _RequestContext:
    def __init__(self, outcome):
        self.outcome = outcome

    async def __aenter__(self):
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, factory: "FakeSessionFactory"):
        self.factory = factory

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def request(self, method, url, **kwargs):
        self.factory.calls.append((method, url, kwargs))
        return _RequestContext(self.factory.outcomes.pop(0))


class FakeSessionFactory:
    """Replaces aiohttp.ClientSession; each outcome is a FakeResponse or an exception."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls: List[tuple] = []

    def __call__(self):
        return FakeSession(self)


@dataclass
class SleepRecorder:
    delays: List[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def no_sleep():
    return SleepRecorder()


@pytest.fixture
def gemini_settings():
    return ProviderSettings.model_validate({
        "provider": "gemini",
        "gemini": {"api_key": "test-gemini-key"},
    })


@pytest.fixture
def openai_settings():
    return ProviderSettings.model_validate({
        "provider": "openai",
        "openai": {"api_key": "sk-test"},
    })


@pytest.fixture
def notifications():
    """Collect notifications published during a test."""
    from vetscribe.notifications import subscribe, unsubscribe

    received = []

    def listener(notification):
        received.append(notification)

    subscribe(listener)
    yield received
    unsubscribe(listener)


class _Replies:
    """Builders for canned HttpReply objects."""
    json = staticmethod(json_reply)
    text = staticmethod(text_reply)
    gemini = staticmethod(gemini_text)


@pytest.fixture
def replies():
    return _Replies


@pytest.fixture
def make_wav():
    return make_wav_bytes


@pytest.fixture
def fake_aiohttp():
    """FakeResponse and FakeSessionFactory for exercising HttpClient."""
    return SimpleNamespace(response=FakeResponse, factory=FakeSessionFactory)
