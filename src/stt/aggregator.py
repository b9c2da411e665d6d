"""
src/stt/aggregator.py
======================
Transcript Aggregator — ScribeRelay

Responsibility:
    - Run one STT call per segment, in segment index order
    - Trim each fragment; drop fragments that are empty after trimming
    - Forward each retained fragment to the event sink BEFORE moving on
    - Join retained fragments with a single space

Ordering contract:
    Emission order and assembly order always equal segment index order,
    never completion order. The baseline processes segments strictly one
    after another. With ``concurrency > 1`` calls overlap, but results are
    still awaited, emitted, and joined by index.

Failure contract:
    The first failed segment aborts the job. In the concurrent variant the
    remaining in-flight calls are cancelled before the error propagates.
"""

import asyncio
import logging
from typing import Protocol, Sequence

from src.audio.workspace import read_segment
from src.errors import TranscriptionError
from src.schemas.transcription import Segment
from src.stt.events import EventSink

logger = logging.getLogger("scriberelay.stt.aggregator")

FRAGMENT_SEPARATOR: str = " "


class SpeechToTextClient(Protocol):
    async def transcribe_one(
        self, audio_bytes: bytes, filename: str | None = None, mime_type: str | None = None
    ) -> str: ...


class TranscriptAggregator:
    """Ordered collection of non-empty fragments."""

    def __init__(self, sink: EventSink | None = None):
        self.sink = sink
        self.fragments: list[str] = []

    async def add(self, fragment: str) -> bool:
        """Retain and emit ``fragment`` if non-empty. Returns whether it was kept."""
        text = (fragment or "").strip()
        if not text:
            return False
        self.fragments.append(text)
        if self.sink is not None:
            await self.sink.notify(text)
        return True

    @property
    def text(self) -> str:
        return FRAGMENT_SEPARATOR.join(self.fragments)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def transcribe_segments(
    segments: Sequence[Segment],
    stt: SpeechToTextClient,
    sink: EventSink | None = None,
    concurrency: int = 1,
) -> TranscriptAggregator:
    """
    Transcribe every segment and assemble the ordered transcript.

    Args:
        segments:    Segments from the segmenter (any order; sorted by index).
        stt:         Client exposing ``transcribe_one``.
        sink:        Optional sink notified per retained fragment.
        concurrency: Max overlapping STT calls; 1 keeps the strictly
                     sequential baseline.

    Returns:
        The aggregator holding the retained fragments.

    Raises:
        TranscriptionError: On the first failed segment.
        SegmentationError:  If a segment file cannot be read.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    ordered = sorted(segments, key=lambda seg: seg.index)
    aggregator = TranscriptAggregator(sink)

    if concurrency == 1:
        for segment in ordered:
            text = await _transcribe_segment(stt, segment)
            _log_fragment(segment, text, await aggregator.add(text))
        return aggregator

    semaphore = asyncio.Semaphore(concurrency)

    async def _bounded(segment: Segment) -> str:
        async with semaphore:
            return await _transcribe_segment(stt, segment)

    tasks = [asyncio.create_task(_bounded(segment)) for segment in ordered]
    try:
        # Awaiting in index order keeps emission ordered regardless of latency
        for segment, task in zip(ordered, tasks):
            text = await task
            _log_fragment(segment, text, await aggregator.add(text))
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    return aggregator


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _transcribe_segment(stt: SpeechToTextClient, segment: Segment) -> str:
    audio_bytes = await read_segment(segment.path)
    logger.info(
        "Transcribing segment %d (%s, %d bytes).",
        segment.index, segment.filename, len(audio_bytes),
    )
    try:
        return await stt.transcribe_one(audio_bytes, segment.filename, segment.mime_type)
    except TranscriptionError as exc:
        raise TranscriptionError(exc.message, segment_index=segment.index) from exc


def _log_fragment(segment: Segment, text: str, kept: bool) -> None:
    if kept:
        logger.info("Segment %d transcribed: %d chars.", segment.index, len(text.strip()))
    else:
        logger.info("Segment %d returned an empty transcript — dropped.", segment.index)
