"""Mime type and file extension mapping for audio artifacts."""

_GEMINI_MIME_TYPES = {
    'audio/webm;codecs=opus': 'audio/webm',
    'audio/webm': 'audio/webm',
    'audio/wav': 'audio/wav',
    'audio/mpeg': 'audio/mp3',
    'audio/mp3': 'audio/mp3',
    'audio/ogg': 'audio/ogg',
    'audio/flac': 'audio/flac',
    'audio/aac': 'audio/aac',
    'audio/mp4': 'audio/aac',
    'audio/x-m4a': 'audio/aac',
}


def gemini_mime_type(mime_type: str) -> str:
    """Mime type accepted by the Gemini API for an artifact's declared type."""
    return _GEMINI_MIME_TYPES.get((mime_type or '').strip().lower(), 'audio/wav')


def extension_for(mime_type: str) -> str:
    """File extension (without dot) for an artifact's declared type."""
    mime = (mime_type or '').lower()
    if 'wav' in mime:
        return 'wav'
    if 'mp3' in mime or 'mpeg' in mime:
        return 'mp3'
    if 'ogg' in mime:
        return 'ogg'
    if 'flac' in mime:
        return 'flac'
    if 'm4a' in mime or 'mp4' in mime:
        return 'm4a'
    return 'webm'
