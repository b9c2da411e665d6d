"""
src/audio/segmenter.py
=======================
Audio Segmenter — ScribeRelay

Responsibility:
    - Cut one input file into time-ordered sub-files of bounded duration
      by running ffmpeg's segment muxer as a subprocess
    - Stream-copy only (``-c copy``): no re-encoding, no quality loss
    - Collect the produced sub-files in time order

Naming contract:
    Sub-files are written as ``seg_%03d<ext>``. The index is zero-padded to
    a minimum width, so ordering by (name length, name) equals time order.

This module does NOT:
    - Choose cut points (ffmpeg cuts on the nearest keyframe)
    - Create or remove the workspace (see src.audio.workspace)
    - Transcribe anything
"""

import asyncio
import contextlib
import logging
import re
from pathlib import Path

from pydub.utils import get_encoder_name

from src.config import DEFAULT_SEGMENT_SECONDS
from src.errors import NoSegmentsProducedError, SegmentationError

logger = logging.getLogger("scriberelay.audio.segmenter")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SEGMENT_PREFIX: str = "seg_"
SEGMENT_INDEX_WIDTH: int = 3
MAX_STDERR_CHARS: int = 500  # tail of ffmpeg's diagnostics kept in errors
KILL_WAIT_SECONDS: float = 5.0


# ---------------------------------------------------------------------------
# Command construction
# ---------------------------------------------------------------------------


def resolve_ffmpeg_binary(configured: str | None = None) -> str:
    """
    Return the ffmpeg executable to invoke.

    An explicitly configured binary wins; otherwise pydub's encoder
    discovery searches PATH (and falls back to the name ``ffmpeg``).
    """
    if configured:
        return configured
    return get_encoder_name()


def segment_pattern(workspace_dir: Path, extension: str) -> Path:
    return Path(workspace_dir) / f"{SEGMENT_PREFIX}%0{SEGMENT_INDEX_WIDTH}d{extension}"


def build_segment_cmd(
    ffmpeg_binary: str,
    input_path: Path,
    workspace_dir: Path,
    extension: str,
    segment_seconds: int = DEFAULT_SEGMENT_SECONDS,
) -> list[str]:
    """Build a deterministic stream-copy segmenting command."""
    if segment_seconds <= 0:
        raise ValueError("segment_seconds must be > 0")

    return [
        ffmpeg_binary,
        "-i",
        str(input_path),
        "-f",
        "segment",
        "-segment_time",
        str(segment_seconds),
        "-c",
        "copy",
        "-reset_timestamps",
        "1",
        "-y",
        str(segment_pattern(workspace_dir, extension)),
    ]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def segment_audio(
    input_path: Path,
    workspace_dir: Path,
    extension: str,
    segment_seconds: int = DEFAULT_SEGMENT_SECONDS,
    ffmpeg_binary: str | None = None,
) -> list[Path]:
    """
    Split ``input_path`` into ``seg_NNN<extension>`` files in ``workspace_dir``.

    Args:
        input_path:      Audio file already written into the workspace.
        workspace_dir:   Job workspace; receives the sub-files.
        extension:       Container extension with leading dot, e.g. ".wav".
        segment_seconds: Target duration of each sub-file.
        ffmpeg_binary:   Executable override; resolved from PATH if None.

    Returns:
        Sub-file paths in time order.

    Raises:
        SegmentationError:       ffmpeg is missing or exited non-zero.
        NoSegmentsProducedError: ffmpeg exited cleanly but wrote no sub-files.
    """
    workspace_dir = Path(workspace_dir)
    cmd = build_segment_cmd(
        resolve_ffmpeg_binary(ffmpeg_binary),
        Path(input_path),
        workspace_dir,
        extension,
        segment_seconds,
    )
    logger.info(
        "Segmenting %s into %ds windows (stream copy).",
        Path(input_path).name, segment_seconds,
    )

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise SegmentationError(
            f"ffmpeg not found ({cmd[0]}). Install ffmpeg and add it to PATH, "
            "or set FFMPEG_BINARY."
        ) from exc
    except OSError as exc:
        raise SegmentationError(f"Failed to start ffmpeg: {exc}") from exc

    try:
        _, stderr = await proc.communicate()
    except asyncio.CancelledError:
        await _kill_and_reap(proc)
        raise

    if proc.returncode != 0:
        diagnostics = stderr.decode("utf-8", errors="replace").strip()
        raise SegmentationError(
            f"ffmpeg failed ({proc.returncode}): {diagnostics[-MAX_STDERR_CHARS:]}"
        )

    segments = await asyncio.to_thread(collect_segment_paths, workspace_dir, extension)
    if not segments:
        raise NoSegmentsProducedError("ffmpeg produced no segments")

    logger.info("ffmpeg produced %d segment(s).", len(segments))
    return segments


def collect_segment_paths(workspace_dir: Path, extension: str) -> list[Path]:
    """
    List the sub-files ffmpeg wrote, in time order.

    Anything not matching ``seg_<digits><extension>`` (the job's own input
    file, for instance) is ignored.

    Raises:
        SegmentationError: If the workspace cannot be listed.
    """
    name_re = re.compile(
        rf"^{re.escape(SEGMENT_PREFIX)}\d{{{SEGMENT_INDEX_WIDTH},}}{re.escape(extension)}$"
    )
    try:
        names = [p.name for p in Path(workspace_dir).iterdir() if p.is_file()]
    except OSError as exc:
        raise SegmentationError(f"Failed to list segments in workspace: {exc}") from exc

    # Length first: ffmpeg widens the index past 999, which breaks plain name order
    matched = sorted((name for name in names if name_re.match(name)), key=lambda n: (len(n), n))
    return [Path(workspace_dir) / name for name in matched]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _kill_and_reap(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    # Shielded: the caller is already being cancelled
    with contextlib.suppress(asyncio.TimeoutError):
        await asyncio.wait_for(asyncio.shield(proc.wait()), KILL_WAIT_SECONDS)
