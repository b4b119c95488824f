from __future__ import annotations

import mimetypes
from pathlib import PurePath

DEFAULT_MIME_TYPE = "application/octet-stream"

AUDIO_MIME_TYPES: dict[str, str] = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "m4a": "audio/mp4",
    "flac": "audio/flac",
}


def extension_of(name: str | PurePath) -> str:
    return PurePath(name).suffix.lower().lstrip(".")


def guess_media_type(name: str | PurePath) -> str:
    """Audio table first, then the platform registry, then octet-stream."""
    ext = extension_of(name)
    if ext in AUDIO_MIME_TYPES:
        return AUDIO_MIME_TYPES[ext]
    return mimetypes.guess_type(str(name))[0] or DEFAULT_MIME_TYPE


def is_audio_mime(mime_type: str | None) -> bool:
    return bool(mime_type) and mime_type.strip().lower().startswith("audio/")
