"""Decode audio artifacts to PCM and serialize canonical 16-bit WAV."""

import io
import logging
import struct
from dataclasses import dataclass

import numpy as np
import soundfile as sf

from ..errors import DecodeError
from ..models.audio import AudioArtifact, PcmBuffer
from .formats import extension_for

logger = logging.getLogger(__name__)

WAV_HEADER_SIZE = 44
BITS_PER_SAMPLE = 16
BYTES_PER_SAMPLE = BITS_PER_SAMPLE // 8
MAX_CHANNELS = 2


@dataclass(frozen=True)
class ExportedAudio:
    """Bytes ready to be written to disk, with the extension to use."""
    payload: bytes
    extension: str
    mime_type: str
    converted: bool


def decode_artifact(artifact: AudioArtifact) -> PcmBuffer:
    """Decode a compressed artifact into float PCM at its native sample rate.

    Raises:
        DecodeError: Empty, corrupt or unsupported container, or more than two channels
    """
    if not artifact.payload:
        raise DecodeError("Audio artifact is empty")

    try:
        samples, sample_rate = sf.read(io.BytesIO(artifact.payload), dtype='float32', always_2d=True)
    except (RuntimeError, ValueError, TypeError) as e:
        raise DecodeError(f"Cannot decode {artifact.mime_type} audio: {e}") from e

    channel_count = samples.shape[1]
    if channel_count < 1 or channel_count > MAX_CHANNELS:
        raise DecodeError(f"Unsupported channel count: {channel_count}")

    logger.debug(f"Decoded {artifact.mime_type}: {samples.shape[0]} frames, "
                 f"{channel_count} channel(s) @ {sample_rate}Hz")
    return PcmBuffer(
        channels=[np.ascontiguousarray(samples[:, i]) for i in range(channel_count)],
        sample_rate=int(sample_rate),
    )


def float_to_int16(samples: np.ndarray) -> np.ndarray:
    """Clamp to [-1, 1]; negatives scale by 32768, positives by 32767, truncating toward zero."""
    clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    return np.trunc(scaled).astype('<i2')


def wav_header(data_length: int, sample_rate: int, channels: int) -> bytes:
    """The fixed 44-byte RIFF/WAVE header for 16-bit PCM."""
    block_align = channels * BYTES_PER_SAMPLE
    byte_rate = sample_rate * block_align
    return struct.pack(
        '<4sI4s4sIHHIIHH4sI',
        b'RIFF', 36 + data_length, b'WAVE',
        b'fmt ', 16, 1, channels, sample_rate, byte_rate, block_align, BITS_PER_SAMPLE,
        b'data', data_length,
    )


def encode_wav(pcm: PcmBuffer) -> bytes:
    """Serialize a PCM buffer as a canonical WAV file.

    Two-channel audio is interleaved left/right per frame.
    """
    if pcm.channel_count < 1 or pcm.channel_count > MAX_CHANNELS:
        raise ValueError(f"Unsupported channel count: {pcm.channel_count}")
    lengths = {len(ch) for ch in pcm.channels}
    if len(lengths) != 1:
        raise ValueError("All channels must have the same number of frames")

    frames = np.stack([float_to_int16(ch) for ch in pcm.channels], axis=1)
    data = frames.reshape(-1).tobytes()
    return wav_header(len(data), pcm.sample_rate, pcm.channel_count) + data


def artifact_to_wav(artifact: AudioArtifact) -> AudioArtifact:
    """Decode and re-encode an artifact as WAV.

    Raises:
        DecodeError: If the artifact cannot be decoded
    """
    pcm = decode_artifact(artifact)
    stem = artifact.name.rsplit('.', 1)[0] if artifact.name else 'recording'
    return AudioArtifact(payload=encode_wav(pcm), mime_type='audio/wav', name=f"{stem}.wav")


def export_audio(artifact: AudioArtifact) -> ExportedAudio:
    """WAV bytes for an artifact, or its original bytes if it cannot be decoded."""
    try:
        wav = artifact_to_wav(artifact)
    except DecodeError as e:
        extension = extension_for(artifact.mime_type)
        logger.warning(f"WAV conversion failed, exporting original .{extension} bytes: {e}")
        return ExportedAudio(payload=artifact.payload, extension=extension,
                             mime_type=artifact.mime_type, converted=False)
    return ExportedAudio(payload=wav.payload, extension='wav', mime_type='audio/wav', converted=True)
