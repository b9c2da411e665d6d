"""
src/stt/payload.py
===================
Uploadable Payload — ScribeRelay

Responsibility:
    - Turn raw audio bytes + filename + content type into the object the
      OpenAI SDK uploads as the ``file`` field of a transcription request
    - Offer two interchangeable builders:
        * NativeFilePayload — the SDK's ``(filename, content, content_type)``
          file tuple with the bytes inline
        * BufferFilePayload — the same file tuple, with the bytes behind a
          named in-memory stream the HTTP client reads at send time
    - Select ONE builder at initialization, never per call

Both builders hand the SDK an explicit content type, so the multipart part
sent to the service carries the same filename and Content-Type either way.
The Whisper API uses the filename to detect the container format.
"""

import io
import logging
from typing import Any, Protocol

from src.errors import ConfigurationError

logger = logging.getLogger("scriberelay.stt.payload")


class UploadPayloadBuilder(Protocol):
    name: str

    def build(self, data: bytes, filename: str, content_type: str) -> Any:
        """Return an object accepted as the SDK's ``file`` argument."""


class NativeFilePayload:
    name = "native"

    def build(self, data: bytes, filename: str, content_type: str) -> tuple[str, bytes, str]:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"audio payload must be bytes, got {type(data).__name__}")
        return (filename, bytes(data), content_type)


class NamedAudioBuffer(io.BytesIO):
    """BytesIO carrying the upload's filename as ``.name``."""

    def __init__(self, data: bytes, name: str):
        super().__init__(data)
        self.name = name


class BufferFilePayload:
    name = "buffer"

    def build(
        self, data: bytes, filename: str, content_type: str
    ) -> tuple[str, NamedAudioBuffer, str]:
        # The tuple form is what carries content_type onto the wire; a bare
        # stream would get a Content-Type guessed from its name.
        return (filename, NamedAudioBuffer(bytes(data), filename), content_type)


_BUILDERS: dict[str, type] = {
    NativeFilePayload.name: NativeFilePayload,
    BufferFilePayload.name: BufferFilePayload,
}


def select_payload_builder(mode: str = NativeFilePayload.name) -> UploadPayloadBuilder:
    """
    Pick the payload builder for this process from the configured mode
    (``native`` or ``buffer``).
    """
    try:
        builder = _BUILDERS[mode]()
    except KeyError:
        raise ConfigurationError(f"Unknown upload payload mode '{mode}'.") from None
    logger.debug("Upload payload builder: %s", builder.name)
    return builder
