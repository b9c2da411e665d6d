"""
src/config.py
==============
Service configuration — ScribeRelay

Responsibility:
    - Read every tunable from environment variables (.env supported)
    - Validate values once, at startup, and fail fast on bad credentials
    - Hand an immutable Settings object to the host application, which
      owns client construction and lifecycle

This module does NOT:
    - Construct the OpenAI client (see src.stt.whisper_client)
    - Hold any process-wide mutable state
"""

import os
import tempfile
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

from src.errors import ConfigurationError

load_dotenv()


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_STT_MODEL: str = "whisper-1"
DEFAULT_MAX_UPLOAD_BYTES: int = 25 * 1024 * 1024  # OpenAI Whisper ceiling
DEFAULT_SEGMENT_SECONDS: int = 120                # ~21 MB for 2 min of WAV
DEFAULT_WORKSPACE_PREFIX: str = "whisper-"
DEFAULT_OPENAI_TIMEOUT_SECONDS: float = 600.0

# Checked in order; OPEN_AI wins when both are set
API_KEY_ENV_VARS: tuple[str, ...] = ("OPEN_AI", "OPENAI_API_KEY")

UPLOAD_MODES: tuple[str, ...] = ("native", "buffer")
DEFAULT_UPLOAD_MODE = "native"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration for one service process."""

    openai_api_key: str
    stt_model: str = DEFAULT_STT_MODEL
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    segment_seconds: int = DEFAULT_SEGMENT_SECONDS
    ffmpeg_binary: str | None = None
    workspace_prefix: str = DEFAULT_WORKSPACE_PREFIX
    workspace_root: str | None = None
    upload_mode: str = DEFAULT_UPLOAD_MODE
    stt_concurrency: int = 1
    openai_max_retries: int = 0
    openai_timeout_seconds: float = DEFAULT_OPENAI_TIMEOUT_SECONDS
    webhook_url: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build Settings from the environment.

        Raises:
            ConfigurationError: If the API key is missing or any numeric
                                setting is malformed or out of range.
        """
        env = os.environ if environ is None else environ

        api_key = ""
        for name in API_KEY_ENV_VARS:
            api_key = (env.get(name) or "").strip()
            if api_key:
                break
        if not api_key:
            raise ConfigurationError(
                "OpenAI API key is not set. Please set OPEN_AI or "
                "OPENAI_API_KEY environment variable."
            )

        upload_mode = (env.get("STT_UPLOAD_MODE") or DEFAULT_UPLOAD_MODE).strip().lower()
        if upload_mode not in UPLOAD_MODES:
            raise ConfigurationError(
                f"STT_UPLOAD_MODE must be one of {', '.join(UPLOAD_MODES)}, "
                f"got '{upload_mode}'."
            )

        return cls(
            openai_api_key=api_key,
            stt_model=(env.get("STT_MODEL") or DEFAULT_STT_MODEL).strip(),
            max_upload_bytes=_positive_int(env, "STT_MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
            segment_seconds=_positive_int(env, "SEGMENT_SECONDS", DEFAULT_SEGMENT_SECONDS),
            ffmpeg_binary=(env.get("FFMPEG_BINARY") or "").strip() or None,
            workspace_prefix=env.get("WORKSPACE_PREFIX") or DEFAULT_WORKSPACE_PREFIX,
            workspace_root=(env.get("WORKSPACE_ROOT") or "").strip() or tempfile.gettempdir(),
            upload_mode=upload_mode,
            stt_concurrency=_positive_int(env, "STT_CONCURRENCY", 1),
            openai_max_retries=_non_negative_int(env, "OPENAI_MAX_RETRIES", 0),
            openai_timeout_seconds=_positive_float(
                env, "OPENAI_TIMEOUT_SECONDS", DEFAULT_OPENAI_TIMEOUT_SECONDS
            ),
            webhook_url=(env.get("WEBHOOK_URL") or "").strip() or None,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'.")


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = _parse(env, name, default, int)
    if value <= 0:
        raise ConfigurationError(f"{name} must be > 0, got {value}.")
    return value


def _non_negative_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = _parse(env, name, default, int)
    if value < 0:
        raise ConfigurationError(f"{name} must be >= 0, got {value}.")
    return value


def _positive_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = _parse(env, name, default, float)
    if value <= 0:
        raise ConfigurationError(f"{name} must be > 0, got {value}.")
    return value
