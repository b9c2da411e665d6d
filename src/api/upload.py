"""
src/api/upload.py
==================
API Upload Endpoints — ScribeRelay

Responsibility:
    - Expose POST /transcribe (batch JSON) and POST /transcribe/stream
      (Server-Sent Events)
    - Accept a single audio file via multipart/form-data (field ``audio``)
    - Reject requests missing an audio file, empty files, and MIME types
      outside the allow-list — before the pipeline runs
    - Translate every pipeline ProcessingError into a 400 response
    - Build the shared OpenAI client and Transcriber at startup and close
      the client at shutdown

Response shapes:
    Batch:     {"success": true, "transcription": "<text>"}
    Streaming: data: {"chunk": "<text>"}                      (0..n)
               data: {"done": true, "transcription": "<text>"} (terminal)
            or data: {"error": "<message>", "done": true}      (terminal)
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiohttp
from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from src.audio.formats import ALLOWED_MIME_TYPES, validate_mime_type, validate_not_empty
from src.config import Settings
from src.errors import EmptyUploadError, ProcessingError, UnsupportedMediaTypeError
from src.pipeline import Transcriber
from src.schemas.transcription import AudioInput
from src.stt.whisper_client import WhisperClient, create_openai_client

logger = logging.getLogger("scriberelay.api")

SERVICE_NAME = "ScribeRelay"
SERVICE_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()  # ConfigurationError aborts startup
    client = create_openai_client(settings)
    app.state.settings = settings
    app.state.transcriber = Transcriber.from_settings(
        settings, WhisperClient.from_settings(settings, client)
    )
    logger.info(
        "Transcriber ready: model=%s ceiling=%d bytes segment=%ds concurrency=%d.",
        settings.stt_model, settings.max_upload_bytes,
        settings.segment_seconds, settings.stt_concurrency,
    )
    try:
        yield
    finally:
        await client.close()


app = FastAPI(
    title=SERVICE_NAME,
    description="Audio transcription of any size — splits large uploads to fit the STT ceiling.",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_transcriber(request: Request) -> Transcriber:
    transcriber = getattr(request.app.state, "transcriber", None)
    if transcriber is None:
        raise HTTPException(status_code=503, detail="Transcriber is not initialised.")
    return transcriber


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/")
async def get_info():
    """Service information."""
    return {
        "name": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "endpoints": {
            "transcribe": "POST /transcribe",
            "transcribe_stream": "POST /transcribe/stream",
        },
        "supported_types": list(ALLOWED_MIME_TYPES),
    }


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/transcribe")
async def transcribe(
    request: Request,
    audio: UploadFile | None = File(None),
    transcriber: Transcriber = Depends(get_transcriber),
):
    """
    Transcribe an uploaded audio file and return the full text.

    Supported formats: mp3, wav, webm, ogg, m4a, mp4. Files above the STT
    ceiling are split with ffmpeg and transcribed segment by segment.
    """
    audio_input = await _read_upload(audio)

    try:
        result = await transcriber.transcribe(audio_input)
    except ProcessingError as exc:
        logger.error("Transcription failed for %s: %s", audio_input.filename, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        logger.error("Transcription unexpected error: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Transcription failed: {exc}")

    content = result.to_response()
    await _post_webhook(request, content)
    return JSONResponse(status_code=200, content=content)


@app.post("/transcribe/stream")
async def transcribe_stream(
    audio: UploadFile | None = File(None),
    transcriber: Transcriber = Depends(get_transcriber),
):
    """
    Transcribe an uploaded audio file, pushing each partial transcript as a
    Server-Sent Event. Failures arrive as a terminal error event.
    """
    audio_input = await _read_upload(audio)

    async def generate_stream() -> AsyncIterator[str]:
        async for event in transcriber.stream(audio_input):
            yield f"data: {json.dumps(event)}\n\n"

    return StreamingResponse(
        generate_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _read_upload(audio: UploadFile | None) -> AudioInput:
    """Validate the upload and read it into an AudioInput."""
    if audio is None or not audio.filename:
        raise HTTPException(status_code=400, detail="Audio file is required")

    try:
        validate_mime_type(audio.content_type)
    except UnsupportedMediaTypeError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    try:
        audio_bytes = await audio.read()
    except Exception:
        raise HTTPException(status_code=400, detail="Failed to read uploaded file.")

    try:
        validate_not_empty(audio_bytes)
    except EmptyUploadError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    logger.info(
        "Audio file received: %s (%s, %.2f KB)",
        audio.filename, audio.content_type, len(audio_bytes) / 1024,
    )
    return AudioInput(
        data=audio_bytes,
        mime_type=audio.content_type or "",
        filename=audio.filename,
        size=len(audio_bytes),
    )


async def _post_webhook(request: Request, content: dict) -> None:
    """POST the batch result to WEBHOOK_URL when configured; never raises."""
    settings: Settings | None = getattr(request.app.state, "settings", None)
    webhook_url = settings.webhook_url if settings else None
    if not webhook_url:
        logger.debug("WEBHOOK_URL not configured — skipping POST.")
        return

    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                webhook_url,
                json=content,
                timeout=aiohttp.ClientTimeout(total=30),
            ) as resp:
                logger.info("Webhook POST to %s — status %d", webhook_url, resp.status)
    except Exception as exc:
        logger.error("Webhook POST failed: %s", exc)
