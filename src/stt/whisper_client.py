"""
src/stt/whisper_client.py
==========================
OpenAI Whisper STT Client — ScribeRelay

Responsibility:
    - Transcribe ONE payload that is already under the service's size
      ceiling, using the OpenAI audio transcription API
    - Adapt raw bytes + filename + MIME hint into the SDK's upload shape
      through the payload builder selected at construction
    - Report any remote failure (network, auth, quota, malformed response)
      as a single TranscriptionError carrying the upstream message

This module does NOT:
    - Split audio (see src.audio.segmenter)
    - Retry failed calls
    - Join or filter transcripts (see src.stt.aggregator)
"""

import logging
from typing import Any

from openai import AsyncOpenAI

from src.audio.formats import DEFAULT_FILENAME, DEFAULT_MIME_TYPE
from src.config import DEFAULT_STT_MODEL, Settings
from src.errors import TranscriptionError
from src.stt.payload import UploadPayloadBuilder, select_payload_builder

logger = logging.getLogger("scriberelay.stt.whisper_client")


# ---------------------------------------------------------------------------
# Client construction
# ---------------------------------------------------------------------------


def create_openai_client(settings: Settings) -> AsyncOpenAI:
    """Build the shared async SDK client; the host owns its lifecycle."""
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        max_retries=settings.openai_max_retries,
        timeout=settings.openai_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class WhisperClient:
    """
    Stateless wrapper around one transcription call.

    Safe to share across concurrent jobs: it holds only the SDK client,
    the model name, and the payload builder.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = DEFAULT_STT_MODEL,
        payload_builder: UploadPayloadBuilder | None = None,
    ):
        if not model:
            raise ValueError("model is required")
        self._client = client
        self.model = model
        self.payload_builder = payload_builder or select_payload_builder()

    @classmethod
    def from_settings(cls, settings: Settings, client: AsyncOpenAI | None = None) -> "WhisperClient":
        return cls(
            client or create_openai_client(settings),
            model=settings.stt_model,
            payload_builder=select_payload_builder(settings.upload_mode),
        )

    async def transcribe_one(
        self,
        audio_bytes: bytes,
        filename: str | None = None,
        mime_type: str | None = None,
    ) -> str:
        """
        Transcribe a single payload below the size ceiling.

        Args:
            audio_bytes: Raw audio file bytes.
            filename:    Name presented to the service (format detection).
            mime_type:   Content-type hint.

        Returns:
            The transcript text exactly as returned by the service.

        Raises:
            TranscriptionError: If the API call fails or the response has
                                no text field.
        """
        upload = self.payload_builder.build(
            audio_bytes,
            filename or DEFAULT_FILENAME,
            mime_type or DEFAULT_MIME_TYPE,
        )
        logger.debug(
            "Sending %s (%d bytes) to %s...",
            filename or DEFAULT_FILENAME, len(audio_bytes), self.model,
        )

        try:
            response = await self._client.audio.transcriptions.create(
                file=upload,
                model=self.model,
            )
        except Exception as exc:
            raise TranscriptionError(f"Whisper transcription failed: {exc}") from exc

        text = _response_text(response)
        if text is None:
            raise TranscriptionError("Whisper transcription response missing text")
        return text


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _response_text(response: Any) -> str | None:
    """Handle both object attribute and dict access patterns."""
    if isinstance(response, str):
        return response
    if isinstance(response, dict):
        text = response.get("text")
    else:
        text = getattr(response, "text", None)
    if text is None:
        return None
    return str(text)
