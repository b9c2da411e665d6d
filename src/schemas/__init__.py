# src/schemas/__init__.py
# ========================
# Data Model — ScribeRelay
#
#   AudioInput          — one uploaded payload (immutable)
#   Segment             — one ordered sub-file produced by the segmenter
#   TranscriptionResult — final transcript plus how it was assembled
#   stream event helpers — {chunk}, {done, transcription}, {error, done}

from src.schemas.transcription import (  # noqa: F401
    AudioInput,
    Segment,
    TranscriptionMode,
    TranscriptionResult,
    chunk_event,
    done_event,
    error_event,
)

__all__ = [
    "AudioInput",
    "Segment",
    "TranscriptionMode",
    "TranscriptionResult",
    "chunk_event",
    "done_event",
    "error_event",
]
