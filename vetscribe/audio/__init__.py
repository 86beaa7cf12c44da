"""Audio encoding module. Microphone capture lives in vetscribe.audio.capture."""

from .encoder import ExportedAudio, artifact_to_wav, decode_artifact, encode_wav, export_audio
from .formats import extension_for, gemini_mime_type

__all__ = [
    'ExportedAudio',
    'artifact_to_wav',
    'decode_artifact',
    'encode_wav',
    'export_audio',
    'extension_for',
    'gemini_mime_type',
]
