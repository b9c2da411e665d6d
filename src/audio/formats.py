"""
src/audio/formats.py
=====================
Format Resolver — ScribeRelay

Responsibility:
    - Hold the MIME-type allow-list enforced at the HTTP boundary
    - Validate an upload's MIME type and non-emptiness
    - Map a MIME type / filename to the container extension used for
      temporary files and passed to the segmenter

This module does NOT:
    - Decode, probe, or re-encode audio
    - Touch the filesystem
"""

from src.errors import EmptyUploadError, UnsupportedMediaTypeError


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# WebM and MP4 uploads frequently arrive with a video/* MIME type
ALLOWED_MIME_TYPES: tuple[str, ...] = (
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/webm",
    "video/webm",
    "audio/ogg",
    "audio/m4a",
    "audio/x-m4a",
    "audio/mp4",
    "video/mp4",
)

EXTENSION_BY_MIME: dict[str, str] = {
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
    "audio/webm": ".webm",
    "video/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/m4a": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/mp4": ".mp4",
    "video/mp4": ".mp4",
}

DEFAULT_EXTENSION: str = ".mp3"
DEFAULT_FILENAME: str = "audio.mp3"
DEFAULT_MIME_TYPE: str = "audio/mpeg"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_mime_type(mime_type: str | None) -> None:
    """
    Check that the declared MIME type is in the allow-list.

    Raises:
        UnsupportedMediaTypeError: If the type is missing or not allowed.
    """
    if mime_type not in ALLOWED_MIME_TYPES:
        raise UnsupportedMediaTypeError(
            f"Unsupported file type: {mime_type}. "
            f"Supported types: {', '.join(ALLOWED_MIME_TYPES)}"
        )


def validate_not_empty(audio_bytes: bytes) -> None:
    """
    Check that the uploaded file is not empty (zero bytes).

    Raises:
        EmptyUploadError: If the file has no content.
    """
    if not audio_bytes:
        raise EmptyUploadError("Audio file is empty.")


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def resolve_extension(mime_type: str | None, filename: str | None) -> str:
    """
    Pick the container extension (with leading dot) for a payload.

    Resolution order:
        1. Exact MIME-type lookup in EXTENSION_BY_MIME
        2. Lower-cased extension of the original filename
        3. DEFAULT_EXTENSION

    Never fails and never returns an empty string.
    """
    by_mime = EXTENSION_BY_MIME.get(mime_type or "")
    if by_mime:
        return by_mime
    return _extract_extension(filename or "") or DEFAULT_EXTENSION


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _extract_extension(filename: str) -> str:
    """Return lowercase file extension including the dot, e.g. '.wav'."""
    # Only the final path component counts: "dir.v2/recording" has no extension
    basename = filename.replace("\\", "/").rsplit("/", 1)[-1]
    dot_index = basename.rfind(".")
    if dot_index <= 0 or dot_index == len(basename) - 1:
        return ""
    return basename[dot_index:].lower()
