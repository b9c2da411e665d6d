"""
src/stt/events.py
==================
Event Sinks — ScribeRelay

"A partial transcript became available." Two implementations:

    CollectingEventSink — batch mode; records fragments, forwards nothing
    QueueEventSink      — streaming mode; pushes a ``{"chunk": text}`` event
                          per fragment onto an asyncio.Queue read by the
                          transport layer

Sinks are notified in segment index order and only with non-empty text.
"""

import asyncio
from typing import Protocol

from src.schemas.transcription import chunk_event


class EventSink(Protocol):
    async def notify(self, text: str) -> None:
        """Receive one non-empty transcript fragment."""


class CollectingEventSink:
    def __init__(self):
        self.fragments: list[str] = []

    async def notify(self, text: str) -> None:
        self.fragments.append(text)


class QueueEventSink:
    """Forward fragments to a consumer through an asyncio.Queue."""

    def __init__(self, queue: asyncio.Queue | None = None):
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()

    async def notify(self, text: str) -> None:
        await self.queue.put(chunk_event(text))
