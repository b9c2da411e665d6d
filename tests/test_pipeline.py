"""
tests/test_pipeline.py
=======================
Transcription Pipeline Tests — ScribeRelay

Tests verify:
    1. Inputs at or below the ceiling → exactly one STT call, no segmenter
    2. Inputs above the ceiling → segmenter invoked once, one STT call per
       segment, never more, never fewer
    3. Workspaces never outlive the job: success, failure, cancellation
    4. Zero segments is a distinct failure, never an empty transcript
    5. Streaming: one chunk per non-empty fragment + exactly one terminal
       event, for both paths; failures become a terminal error event
    6. The two concrete end-to-end scenarios

All tests are OFFLINE — segmenter and STT client are stubs.
"""

import asyncio
import os
import sys
import tempfile
import unittest
from pathlib import Path

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.audio.workspace import WorkspaceManager
from src.errors import NoSegmentsProducedError, SegmentationError, TranscriptionError
from src.pipeline import Transcriber
from src.schemas.transcription import AudioInput, TranscriptionMode
from src.stt.events import CollectingEventSink

MB = 1024 * 1024


# ===================================================================
# Stubs
# ===================================================================


class StubSTT:
    """Returns texts in call order; raises if an entry is an exception."""

    def __init__(self, *responses, delay: float = 0.0):
        self.responses = list(responses)
        self.delay = delay
        self.calls: list[tuple[bytes, str, str]] = []

    async def transcribe_one(self, audio_bytes, filename=None, mime_type=None):
        self.calls.append((audio_bytes, filename, mime_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses[len(self.calls) - 1]
        if isinstance(response, Exception):
            raise response
        return response


class StubSegmenter:
    """Writes ``count`` seg_NNN files into the workspace, like ffmpeg would."""

    def __init__(self, count: int = 3, error: Exception | None = None):
        self.count = count
        self.error = error
        self.calls: list[tuple] = []
        self.workspaces: list[Path] = []

    async def __call__(self, input_path, workspace_dir, extension, segment_seconds, ffmpeg_binary):
        self.calls.append((input_path, workspace_dir, extension, segment_seconds, ffmpeg_binary))
        self.workspaces.append(Path(workspace_dir))
        if self.error is not None:
            raise self.error
        paths = []
        for i in range(self.count):
            path = Path(workspace_dir) / f"seg_{i:03d}{extension}"
            path.write_bytes(f"segment-{i}".encode())
            paths.append(path)
        return paths


# ===================================================================
# Tests
# ===================================================================


class PipelineTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.workspaces = WorkspaceManager(prefix="whisper-", root=self.root)

    def tearDown(self):
        self._tmp.cleanup()

    def _transcriber(self, stt, segmenter=None, **kwargs) -> Transcriber:
        return Transcriber(
            stt,
            workspaces=self.workspaces,
            segmenter=segmenter or StubSegmenter(),
            **kwargs,
        )

    def assertNoWorkspaceLeft(self):
        self.assertEqual(list(self.root.iterdir()), [])
        self.assertEqual(self.workspaces.open_workspaces, frozenset())


class TestSingleShot(PipelineTestCase):

    async def test_one_call_and_text_unmodified(self):
        stt = StubSTT(" hello world\n")
        segmenter = StubSegmenter()
        result = await self._transcriber(stt, segmenter).transcribe(
            AudioInput(b"mp3-bytes", "audio/mpeg", "talk.mp3", size=10 * MB)
        )
        self.assertEqual(result.text, " hello world\n")
        self.assertIs(result.mode, TranscriptionMode.SINGLE)
        self.assertEqual(len(stt.calls), 1)
        self.assertEqual(stt.calls[0], (b"mp3-bytes", "talk.mp3", "audio/mpeg"))
        self.assertEqual(segmenter.calls, [])
        self.assertNoWorkspaceLeft()

    async def test_exactly_at_ceiling_is_single(self):
        stt = StubSTT("x")
        segmenter = StubSegmenter()
        await self._transcriber(stt, segmenter, max_upload_bytes=100).transcribe(
            AudioInput(b"a" * 100, "audio/wav", "a.wav")
        )
        self.assertEqual(segmenter.calls, [])

    async def test_sink_notified_once_with_whole_text(self):
        sink = CollectingEventSink()
        await self._transcriber(StubSTT("whole text")).transcribe(
            AudioInput(b"a", "audio/mpeg", "a.mp3"), sink
        )
        self.assertEqual(sink.fragments, ["whole text"])

    async def test_stt_failure_propagates(self):
        stt = StubSTT(TranscriptionError("invalid api key"))
        with self.assertRaises(TranscriptionError):
            await self._transcriber(stt).transcribe(AudioInput(b"a", "audio/mpeg", "a.mp3"))


class TestSplitPath(PipelineTestCase):

    async def test_segment_count_equals_call_count(self):
        for count in (1, 2, 5):
            stt = StubSTT(*[f"part{i}" for i in range(count)])
            segmenter = StubSegmenter(count)
            result = await self._transcriber(stt, segmenter, max_upload_bytes=10).transcribe(
                AudioInput(b"x" * 11, "audio/wav", "long.wav")
            )
            self.assertEqual(len(segmenter.calls), 1)
            self.assertEqual(len(stt.calls), count)
            self.assertEqual(result.segment_count, count)
            self.assertEqual(result.text, " ".join(f"part{i}" for i in range(count)))

    async def test_input_written_with_resolved_extension(self):
        seen: dict = {}

        class InspectingSegmenter(StubSegmenter):
            async def __call__(self, input_path, workspace_dir, extension, *args):
                seen["input"] = Path(input_path).read_bytes()
                seen["name"] = Path(input_path).name
                seen["extension"] = extension
                return await super().__call__(input_path, workspace_dir, extension, *args)

        stt = StubSTT("a", "b", "c")
        await self._transcriber(stt, InspectingSegmenter(), max_upload_bytes=1).transcribe(
            AudioInput(b"webm-bytes", "video/webm", "clip.bin")
        )
        self.assertEqual(seen, {"input": b"webm-bytes", "name": "input.webm", "extension": ".webm"})

    async def test_segments_inherit_mime_and_use_segment_names(self):
        stt = StubSTT("a", "b")
        await self._transcriber(stt, StubSegmenter(2), max_upload_bytes=1).transcribe(
            AudioInput(b"xx", "audio/ogg", "voice.ogg")
        )
        self.assertEqual(stt.calls[0], (b"segment-0", "seg_000.ogg", "audio/ogg"))
        self.assertEqual(stt.calls[1], (b"segment-1", "seg_001.ogg", "audio/ogg"))

    async def test_passes_segment_settings(self):
        segmenter = StubSegmenter(1)
        transcriber = self._transcriber(
            StubSTT("a"), segmenter, max_upload_bytes=1, segment_seconds=90, ffmpeg_binary="/bin/ff"
        )
        await transcriber.transcribe(AudioInput(b"xx", "audio/mpeg", "a.mp3"))
        _, _, extension, seconds, binary = segmenter.calls[0]
        self.assertEqual((extension, seconds, binary), (".mp3", 90, "/bin/ff"))

    async def test_workspace_removed_after_success(self):
        segmenter = StubSegmenter(2)
        await self._transcriber(StubSTT("a", "b"), segmenter, max_upload_bytes=1).transcribe(
            AudioInput(b"xx", "audio/wav", "a.wav")
        )
        self.assertFalse(segmenter.workspaces[0].exists())
        self.assertNoWorkspaceLeft()

    async def test_workspace_removed_after_segmentation_failure(self):
        segmenter = StubSegmenter(error=SegmentationError("ffmpeg failed (1): moov atom not found"))
        with self.assertRaises(SegmentationError):
            await self._transcriber(StubSTT(), segmenter, max_upload_bytes=1).transcribe(
                AudioInput(b"xx", "audio/mp4", "a.mp4")
            )
        self.assertFalse(segmenter.workspaces[0].exists())
        self.assertNoWorkspaceLeft()

    async def test_workspace_removed_after_stt_failure(self):
        stt = StubSTT("a", TranscriptionError("timeout"), "c")
        segmenter = StubSegmenter(3)
        with self.assertRaises(TranscriptionError) as ctx:
            await self._transcriber(stt, segmenter, max_upload_bytes=1).transcribe(
                AudioInput(b"xx", "audio/wav", "a.wav")
            )
        self.assertEqual(ctx.exception.segment_index, 1)
        self.assertEqual(len(stt.calls), 2)
        self.assertNoWorkspaceLeft()

    async def test_workspace_removed_after_cancellation(self):
        stt = StubSTT("a", "b", delay=3600)
        transcriber = self._transcriber(stt, StubSegmenter(2), max_upload_bytes=1)
        task = asyncio.create_task(transcriber.transcribe(AudioInput(b"xx", "audio/wav", "a.wav")))
        while not stt.calls:
            await asyncio.sleep(0.01)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertNoWorkspaceLeft()

    async def test_zero_segments_is_distinct_failure(self):
        with self.assertRaises(NoSegmentsProducedError):
            await self._transcriber(StubSTT(), StubSegmenter(0), max_upload_bytes=1).transcribe(
                AudioInput(b"xx", "audio/wav", "a.wav")
            )
        self.assertNoWorkspaceLeft()

    async def test_concurrent_jobs_get_separate_workspaces(self):
        segmenter = StubSegmenter(2)
        transcriber = self._transcriber(StubSTT("a", "b", "c", "d", delay=0.01), segmenter, max_upload_bytes=1)
        await asyncio.gather(
            transcriber.transcribe(AudioInput(b"xx", "audio/wav", "a.wav")),
            transcriber.transcribe(AudioInput(b"yy", "audio/wav", "b.wav")),
        )
        self.assertEqual(len(set(segmenter.workspaces)), 2)
        self.assertNoWorkspaceLeft()

    async def test_idempotent(self):
        results = []
        for _ in range(2):
            stt = StubSTT("one", " two ", "three")
            result = await self._transcriber(stt, StubSegmenter(3), max_upload_bytes=1).transcribe(
                AudioInput(b"same", "audio/wav", "a.wav")
            )
            results.append(result.text)
        self.assertEqual(results[0], results[1])
        self.assertEqual(results[0], "one two three")

    async def test_sixty_megabyte_wav_scenario(self):
        sink = CollectingEventSink()
        stt = StubSTT("a", "  ", "b")
        result = await self._transcriber(stt, StubSegmenter(3)).transcribe(
            AudioInput(b"wav", "audio/wav", "meeting.wav", size=60 * MB), sink
        )
        self.assertIs(result.mode, TranscriptionMode.SPLIT)
        self.assertEqual(result.text, "a b")
        self.assertEqual(sink.fragments, ["a", "b"])


class TestStreaming(PipelineTestCase):

    async def _collect(self, transcriber, audio):
        return [event async for event in transcriber.stream(audio)]

    async def test_ten_megabyte_mp3_scenario(self):
        stt = StubSTT("hello world")
        events = await self._collect(
            self._transcriber(stt), AudioInput(b"mp3", "audio/mpeg", "a.mp3", size=10 * MB)
        )
        self.assertEqual(len(stt.calls), 1)
        self.assertEqual(events, [
            {"chunk": "hello world"},
            {"done": True, "transcription": "hello world"},
        ])

    async def test_sixty_megabyte_wav_scenario(self):
        events = await self._collect(
            self._transcriber(StubSTT("a", "  ", "b"), StubSegmenter(3)),
            AudioInput(b"wav", "audio/wav", "a.wav", size=60 * MB),
        )
        self.assertEqual(events, [
            {"chunk": "a"},
            {"chunk": "b"},
            {"done": True, "transcription": "a b"},
        ])
        self.assertNoWorkspaceLeft()

    async def test_single_shot_whitespace_is_trimmed(self):
        events = await self._collect(
            self._transcriber(StubSTT("  padded  ")), AudioInput(b"a", "audio/mpeg", "a.mp3")
        )
        self.assertEqual(events, [{"chunk": "padded"}, {"done": True, "transcription": "padded"}])

    async def test_empty_single_shot_has_no_chunk(self):
        events = await self._collect(
            self._transcriber(StubSTT("   ")), AudioInput(b"a", "audio/mpeg", "a.mp3")
        )
        self.assertEqual(events, [{"done": True, "transcription": ""}])

    async def test_failure_is_terminal_error_event(self):
        stt = StubSTT("a", TranscriptionError("upstream 500"), "c")
        events = await self._collect(
            self._transcriber(stt, StubSegmenter(3), max_upload_bytes=1),
            AudioInput(b"xx", "audio/wav", "a.wav"),
        )
        self.assertEqual(events[0], {"chunk": "a"})
        self.assertEqual(len(events), 2)
        self.assertTrue(events[-1]["done"])
        self.assertIn("upstream 500", events[-1]["error"])
        self.assertNotIn("transcription", events[-1])
        self.assertNoWorkspaceLeft()

    async def test_segmentation_failure_is_terminal_error_event(self):
        events = await self._collect(
            self._transcriber(StubSTT(), StubSegmenter(0), max_upload_bytes=1),
            AudioInput(b"xx", "audio/wav", "a.wav"),
        )
        self.assertEqual(events, [{"error": "ffmpeg produced no segments", "done": True}])

    async def test_unexpected_error_is_terminal_error_event(self):
        events = await self._collect(
            self._transcriber(StubSTT(KeyError("text"))), AudioInput(b"a", "audio/mpeg", "a.mp3")
        )
        self.assertEqual(len(events), 1)
        self.assertTrue(events[0]["done"])
        self.assertIn("error", events[0])

    async def test_closing_stream_early_cleans_workspace(self):
        stt = StubSTT("first", "second", delay=0.01)
        stream = self._transcriber(stt, StubSegmenter(2), max_upload_bytes=1).stream(
            AudioInput(b"xx", "audio/wav", "a.wav")
        )
        first = await stream.__anext__()
        self.assertEqual(first, {"chunk": "first"})
        await stream.aclose()
        self.assertNoWorkspaceLeft()


if __name__ == "__main__":
    unittest.main()
