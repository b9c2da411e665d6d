"""
src/audio/size_gate.py
=======================
Size Gate — ScribeRelay

Classifies an upload as single-shot or split-required against the STT
service's per-request byte ceiling. Pure; no side effects.
"""

from src.config import DEFAULT_MAX_UPLOAD_BYTES
from src.schemas.transcription import TranscriptionMode


def classify(size: int, ceiling: int = DEFAULT_MAX_UPLOAD_BYTES) -> TranscriptionMode:
    """Return SINGLE when ``size <= ceiling``, else SPLIT."""
    if size <= ceiling:
        return TranscriptionMode.SINGLE
    return TranscriptionMode.SPLIT


def requires_split(size: int, ceiling: int = DEFAULT_MAX_UPLOAD_BYTES) -> bool:
    return classify(size, ceiling) is TranscriptionMode.SPLIT
