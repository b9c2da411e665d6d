# src/stt/__init__.py
# ====================
# Speech-to-Text Layer — ScribeRelay
#
#   1. payload        — uploadable file shape for the OpenAI SDK
#   2. whisper_client — one transcription call per payload under the ceiling
#   3. events         — sinks notified with each partial transcript
#   4. aggregator     — ordered per-segment calls, empty-fragment filtering, join
#
# Public API:
#   WhisperClient.transcribe_one(bytes, filename, mime_type) → str
#   transcribe_segments(segments, stt, sink, concurrency)    → TranscriptAggregator

from src.stt.whisper_client import WhisperClient  # noqa: F401
from src.stt.aggregator import TranscriptAggregator, transcribe_segments  # noqa: F401
from src.stt.events import CollectingEventSink, EventSink, QueueEventSink  # noqa: F401

__all__ = [
    "WhisperClient",
    "TranscriptAggregator",
    "transcribe_segments",
    "CollectingEventSink",
    "EventSink",
    "QueueEventSink",
]
