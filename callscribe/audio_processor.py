"""
Audio intake utilities.

Uploaded recordings are validated before a job is created: the payload must
not be empty and its MIME type must be an ``audio/*`` type.  The recording
length is read with `pydub` (which relies on ``ffmpeg``) purely for display;
a file pydub cannot decode is still transcribed.
"""

from __future__ import annotations

import io
import logging
import mimetypes
from pathlib import Path
from typing import Optional

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from .errors import ValidationError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".mp3", ".m4a", ".flac", ".wav", ".mp4", ".ogg", ".webm"}


def is_supported_audio(path: str) -> bool:
    """Check whether ``path`` has a supported audio extension."""
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def validate_audio(data: Optional[bytes], mimetype: Optional[str], filename: str = "") -> str:
    """Raise :class:`ValidationError` unless ``data`` looks like audio.

    Clients that send no content type (or ``application/octet-stream``) are
    given the benefit of the doubt when the file name has a supported
    audio extension.

    Args:
        data: Raw uploaded bytes.
        mimetype: Content type reported by the client.
        filename: Original file name.

    Returns:
        The effective ``audio/*`` content type.
    """
    if not data:
        raise ValidationError("Missing file data")
    if (not mimetype or mimetype == "application/octet-stream") and is_supported_audio(filename):
        guessed, _ = mimetypes.guess_type(filename)
        mimetype = guessed if guessed and guessed.startswith("audio/") else "audio/mpeg"
    if not mimetype or not mimetype.lower().startswith("audio/"):
        raise ValidationError(f"Invalid file type: {mimetype}")
    return mimetype


def probe_duration(data: bytes, filename: str) -> Optional[float]:
    """Return the length of the recording in seconds, or ``None`` if unknown."""
    fmt = Path(filename).suffix.lower().lstrip(".") or None
    try:
        audio = AudioSegment.from_file(io.BytesIO(data), format=fmt)
    except (CouldntDecodeError, OSError) as exc:
        logger.warning("Could not read duration of %s: %s", filename, exc)
        return None
    return round(audio.duration_seconds, 3)
