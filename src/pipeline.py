"""
src/pipeline.py
================
Transcription Pipeline — ScribeRelay

Responsibility:
    Make audio of any size compatible with the STT service's per-request
    byte ceiling:

        1. Size gate: single-shot or split-required
        2. Single-shot → one STT call on the whole payload
        3. Split → open workspace → resolve container extension →
           write input → segment with ffmpeg → transcribe every segment
           in index order → join → close workspace
        4. Optionally emit every retained fragment as soon as it exists
           (streaming mode), still returning one final transcript

Guarantees:
    - The workspace is removed on every exit path: success, failure, or
      cancellation of the job task
    - Fragment emission/assembly order == segment index order
    - No partial transcript is returned when any segment fails

This module does NOT:
    - Validate MIME types or build HTTP responses (see src.api.upload)
    - Own the SDK client's lifecycle (the host application does)
"""

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable

from src.audio.formats import resolve_extension
from src.audio.segmenter import segment_audio
from src.audio.size_gate import classify
from src.audio.workspace import WorkspaceManager, write_input
from src.config import DEFAULT_MAX_UPLOAD_BYTES, DEFAULT_SEGMENT_SECONDS, Settings
from src.errors import NoSegmentsProducedError, ProcessingError
from src.schemas.transcription import (
    AudioInput,
    Segment,
    TranscriptionMode,
    TranscriptionResult,
    done_event,
    error_event,
)
from src.stt.aggregator import SpeechToTextClient, transcribe_segments
from src.stt.events import EventSink, QueueEventSink

logger = logging.getLogger("scriberelay.pipeline")

# (input_path, workspace_dir, extension, segment_seconds, ffmpeg_binary) -> ordered paths
Segmenter = Callable[[Path, Path, str, int, "str | None"], Awaitable[list[Path]]]


class Transcriber:
    """
    Orchestrates one transcription job per call.

    Holds no per-job state, so a single instance serves concurrent jobs;
    each split job gets its own workspace.
    """

    def __init__(
        self,
        stt: SpeechToTextClient,
        *,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        segment_seconds: int = DEFAULT_SEGMENT_SECONDS,
        ffmpeg_binary: str | None = None,
        workspaces: WorkspaceManager | None = None,
        segmenter: Segmenter = segment_audio,
        concurrency: int = 1,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.stt = stt
        self.max_upload_bytes = max_upload_bytes
        self.segment_seconds = segment_seconds
        self.ffmpeg_binary = ffmpeg_binary
        self.workspaces = workspaces or WorkspaceManager()
        self.segmenter = segmenter
        self.concurrency = concurrency

    @classmethod
    def from_settings(cls, settings: Settings, stt: SpeechToTextClient) -> "Transcriber":
        return cls(
            stt,
            max_upload_bytes=settings.max_upload_bytes,
            segment_seconds=settings.segment_seconds,
            ffmpeg_binary=settings.ffmpeg_binary,
            workspaces=WorkspaceManager(settings.workspace_prefix, settings.workspace_root),
            concurrency=settings.stt_concurrency,
        )

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def transcribe(
        self, audio: AudioInput, sink: EventSink | None = None
    ) -> TranscriptionResult:
        """
        Transcribe ``audio`` of any size.

        Args:
            audio: The uploaded payload.
            sink:  Optional sink notified with each non-empty fragment.

        Returns:
            TranscriptionResult with the final transcript.

        Raises:
            SegmentationError:  Split failed (tool, zero segments, filesystem).
            TranscriptionError: An STT call failed.
        """
        mode = classify(audio.size, self.max_upload_bytes)
        logger.info(
            "Transcribing %s (%.2f MB, %s) — %s path.",
            audio.filename or "<unnamed>", audio.size / (1024 * 1024),
            audio.mime_type or "unknown type", mode.value,
        )

        if mode is TranscriptionMode.SINGLE:
            return await self._transcribe_single(audio, sink)
        return await self._transcribe_split(audio, sink)

    async def _transcribe_single(
        self, audio: AudioInput, sink: EventSink | None
    ) -> TranscriptionResult:
        text = await self.stt.transcribe_one(audio.data, audio.filename, audio.mime_type)
        fragment = text.strip()
        if fragment and sink is not None:
            await sink.notify(fragment)
        return TranscriptionResult(
            text=text,
            mode=TranscriptionMode.SINGLE,
            segment_count=1,
            fragments=[fragment] if fragment else [],
        )

    async def _transcribe_split(
        self, audio: AudioInput, sink: EventSink | None
    ) -> TranscriptionResult:
        extension = resolve_extension(audio.mime_type, audio.filename)

        async with self.workspaces.workspace() as workspace_dir:
            input_path = await write_input(workspace_dir, audio.data, extension)
            paths = await self.segmenter(
                input_path, workspace_dir, extension, self.segment_seconds, self.ffmpeg_binary
            )
            if not paths:
                raise NoSegmentsProducedError("ffmpeg produced no segments")

            segments = [
                Segment(index=i, path=Path(p), mime_type=audio.mime_type)
                for i, p in enumerate(paths)
            ]
            aggregator = await transcribe_segments(
                segments, self.stt, sink=sink, concurrency=self.concurrency
            )

        logger.info(
            "Split transcription complete: %d segment(s), %d non-empty fragment(s).",
            len(segments), len(aggregator.fragments),
        )
        return TranscriptionResult(
            text=aggregator.text,
            mode=TranscriptionMode.SPLIT,
            segment_count=len(segments),
            fragments=list(aggregator.fragments),
        )

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream(self, audio: AudioInput) -> AsyncIterator[dict]:
        """
        Yield ``{"chunk": text}`` per retained fragment, then exactly one
        terminal event: ``{"done": True, "transcription": text}`` or
        ``{"error": message, "done": True}``.

        Closing the iterator early cancels the job; its workspace is still
        removed.
        """
        sink = QueueEventSink()
        job = asyncio.create_task(self._run_streaming_job(audio, sink))
        try:
            while True:
                event = await sink.queue.get()
                yield event
                if event.get("done"):
                    break
        finally:
            if not job.done():
                job.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await job

    async def _run_streaming_job(self, audio: AudioInput, sink: QueueEventSink) -> None:
        try:
            result = await self.transcribe(audio, sink)
        except ProcessingError as exc:
            logger.error("Streaming transcription failed: %s", exc)
            await sink.queue.put(error_event(str(exc)))
            return
        except Exception as exc:
            logger.error("Streaming transcription failed unexpectedly: %s", exc, exc_info=True)
            await sink.queue.put(error_event(f"Transcription failed: {exc}"))
            return
        await sink.queue.put(done_event(result.text.strip()))
