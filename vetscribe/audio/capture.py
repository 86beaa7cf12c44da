"""Microphone capture session with an explicit Idle/Recording/Paused/Stopped lifecycle."""

import io
import time
import wave
import logging
import threading
from typing import Any, Callable, List, Optional, Tuple

import numpy as np
import pyaudio

from ..errors import MicrophonePermissionError
from ..models.audio import AudioArtifact, AudioStats, CaptureState

logger = logging.getLogger(__name__)


class LevelMeter:
    """Peak level of the most recent chunk, 0.0 to 1.0."""

    def __init__(self):
        self.peak_level = 0.0
        self.active = False

    def open(self) -> None:
        self.active = True
        self.peak_level = 0.0

    def update(self, chunk: bytes) -> None:
        if not self.active or not chunk:
            return
        samples = np.frombuffer(chunk[:len(chunk) - len(chunk) % 2], dtype='<i2')
        if samples.size:
            self.peak_level = float(np.max(np.abs(samples.astype(np.int32)))) / 32768.0

    def close(self) -> None:
        self.active = False
        self.peak_level = 0.0


class Microphone:
    """Exclusive hold on a PyAudio input stream. close() is safe to call repeatedly."""

    def __init__(self,
                 sample_rate: int,
                 channels: int,
                 chunk_size: int,
                 callback: Callable[..., Tuple[Optional[bytes], int]],
                 audio_factory: Optional[Callable[[], Any]] = None):
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_size = chunk_size
        self.callback = callback
        self.audio_factory = audio_factory
        self.pyaudio_instance = None
        self.stream = None

    @property
    def is_open(self) -> bool:
        return self.stream is not None

    def open(self) -> None:
        """Open the input stream; it starts delivering chunks immediately.

        Raises:
            MicrophonePermissionError: If the device cannot be opened
        """
        factory = self.audio_factory or pyaudio.PyAudio
        try:
            self.pyaudio_instance = factory()
            self.stream = self.pyaudio_instance.open(
                format=pyaudio.paInt16,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
                stream_callback=self.callback,
            )
        except OSError as e:
            self.close()
            raise MicrophonePermissionError(f"Cannot access microphone: {e}") from e
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.channels} channel(s), {self.chunk_size} samples/chunk")

    def suspend(self) -> None:
        if self.stream is not None:
            self.stream.stop_stream()

    def resume(self) -> None:
        if self.stream is not None:
            self.stream.start_stream()

    def close(self) -> None:
        stream, self.stream = self.stream, None
        instance, self.pyaudio_instance = self.pyaudio_instance, None
        try:
            if stream is not None:
                stream.stop_stream()
                stream.close()
        finally:
            if instance is not None:
                instance.terminate()
                logger.info("Audio stream released")


class CaptureSession:
    """One recording attempt, from start() to stop().

    State changes only through start/pause/resume/stop. stop() yields a single
    immutable WAV artifact; a new recording needs a new CaptureSession.
    """

    def __init__(self,
                 sample_rate: int = 44100,
                 channels: int = 1,
                 chunk_size: int = 1024,
                 audio_factory: Optional[Callable[[], Any]] = None,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize capture session.

        Args:
            sample_rate: Capture sample rate in Hz
            channels: 1 (mono) or 2 (stereo)
            chunk_size: Samples per callback buffer
            audio_factory: Creates the PyAudio instance (defaults to pyaudio.PyAudio)
            clock: Monotonic clock used for elapsed time
        """
        if channels not in (1, 2):
            raise ValueError(f"Unsupported channel count: {channels}")
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_size = chunk_size
        self.clock = clock

        self.state = CaptureState.IDLE
        self.chunks: List[bytes] = []
        self.total_bytes = 0
        self.artifact: Optional[AudioArtifact] = None

        self._lock = threading.Lock()
        self._elapsed = 0.0
        self._resumed_at: Optional[float] = None

        self.microphone = Microphone(sample_rate, channels, chunk_size, self._on_audio, audio_factory)
        self.meter = LevelMeter()

    def __enter__(self) -> "CaptureSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # Leaving the block abandons an unfinished session; resources still go back.
        if self.state in (CaptureState.RECORDING, CaptureState.PAUSED):
            self.stop()
        else:
            self._release()

    @property
    def elapsed_seconds(self) -> float:
        """Recorded time, excluding paused intervals."""
        if self._resumed_at is not None:
            return self._elapsed + (self.clock() - self._resumed_at)
        return self._elapsed

    @property
    def peak_level(self) -> float:
        return self.meter.peak_level

    def start(self) -> None:
        """Acquire the microphone and begin recording.

        Raises:
            MicrophonePermissionError: Access denied; the session stays Idle
        """
        if self.state is not CaptureState.IDLE:
            logger.warning(f"Cannot start a session in state {self.state.value}")
            return

        logger.info("Starting audio capture")
        try:
            self.microphone.open()
            self.meter.open()
        except Exception:
            self._release()
            raise

        self._resumed_at = self.clock()
        self.state = CaptureState.RECORDING

    def pause(self) -> None:
        """Suspend recording. Does nothing unless Recording."""
        if self.state is not CaptureState.RECORDING:
            return
        self.microphone.suspend()
        self._elapsed = self.elapsed_seconds
        self._resumed_at = None
        self.state = CaptureState.PAUSED
        logger.info(f"Capture paused at {self._elapsed:.1f}s")

    def resume(self) -> None:
        """Continue a paused recording. Does nothing unless Paused."""
        if self.state is not CaptureState.PAUSED:
            return
        self.microphone.resume()
        self._resumed_at = self.clock()
        self.state = CaptureState.RECORDING
        logger.info("Capture resumed")

    def stop(self) -> Optional[AudioArtifact]:
        """Finish the session and return its artifact.

        Releases the microphone whether or not building the artifact succeeds.
        Returns the existing artifact if already stopped, None if never started.
        """
        if self.state is CaptureState.STOPPED:
            return self.artifact
        if self.state is CaptureState.IDLE:
            logger.warning("No recording in progress")
            return None

        self._elapsed = self.elapsed_seconds
        self._resumed_at = None
        try:
            self._release()
            self.artifact = self._build_artifact()
        finally:
            self.state = CaptureState.STOPPED

        logger.info(f"Capture stopped: {len(self.chunks)} chunks, {self.total_bytes} bytes, "
                    f"{self._elapsed:.1f}s")
        return self.artifact

    def get_stats(self) -> AudioStats:
        return AudioStats(
            state=self.state,
            elapsed_seconds=self.elapsed_seconds,
            sample_rate=self.sample_rate,
            channels=self.channels,
            total_chunks=len(self.chunks),
            total_bytes=self.total_bytes,
            peak_level=self.peak_level,
        )

    def _on_audio(self, in_data, frame_count, time_info, status):
        """PyAudio stream callback."""
        if in_data and self.state is CaptureState.RECORDING:
            with self._lock:
                self.chunks.append(bytes(in_data))
                self.total_bytes += len(in_data)
            self.meter.update(in_data)
        return (None, pyaudio.paContinue)

    def _release(self) -> None:
        try:
            self.microphone.close()
        finally:
            self.meter.close()

    def _build_artifact(self) -> AudioArtifact:
        with self._lock:
            frames = b''.join(self.chunks)

        buffer = io.BytesIO()
        with wave.open(buffer, 'wb') as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(2)
            wf.setframerate(self.sample_rate)
            wf.writeframes(frames)

        return AudioArtifact(payload=buffer.getvalue(), mime_type='audio/wav', name='recording.wav')
