"""
src/schemas/transcription.py
=============================
Transcription data model — ScribeRelay

Responsibility:
    - Describe the inbound audio payload (AudioInput)
    - Describe one ephemeral segment on the split path (Segment)
    - Describe the assembled result (TranscriptionResult)
    - Build the three push-event payloads used in streaming mode

Segments and results are plain dataclasses; they never outlive the job
that produced them.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class TranscriptionMode(str, Enum):
    """Which path the size gate selected for a job."""

    SINGLE = "single"
    SPLIT = "split"


@dataclass(frozen=True)
class AudioInput:
    """
    One uploaded audio payload.

    ``size`` defaults to ``len(data)``; callers that already know the
    declared upload size may pass it explicitly.
    """

    data: bytes
    mime_type: str = ""
    filename: str = ""
    size: int = -1

    def __post_init__(self):
        if self.size < 0:
            object.__setattr__(self, "size", len(self.data))


@dataclass(frozen=True)
class Segment:
    """One time-ordered sub-file; ``index`` defines result order."""

    index: int
    path: Path
    mime_type: str

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass
class TranscriptionResult:
    text: str
    mode: TranscriptionMode
    segment_count: int = 1
    fragments: list[str] = field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        """Batch response body."""
        return {"success": True, "transcription": self.text}


# ---------------------------------------------------------------------------
# Streaming event payloads
# ---------------------------------------------------------------------------


def chunk_event(text: str) -> dict[str, Any]:
    return {"chunk": text}


def done_event(transcription: str) -> dict[str, Any]:
    return {"done": True, "transcription": transcription}


def error_event(message: str) -> dict[str, Any]:
    return {"error": message, "done": True}
