"""
src/audio/workspace.py
=======================
Workspace Manager — ScribeRelay

Responsibility:
    - Create one uniquely named temporary directory per transcription job
    - Remove it (recursively, forcibly) exactly once, on every exit path:
      normal return, failure, or cancellation
    - Read and write job files inside the workspace without blocking the
      event loop

Cleanup failures are logged and swallowed: they must never mask or replace
the job's own outcome. Filesystem failures while the job is running are
raised as SegmentationError so callers handle them like a failed split.
"""

import asyncio
import logging
import shutil
import tempfile
import threading
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from src.config import DEFAULT_WORKSPACE_PREFIX
from src.errors import SegmentationError

logger = logging.getLogger("scriberelay.audio.workspace")

INPUT_STEM: str = "input"


class WorkspaceManager:
    """Owns the lifecycle of per-job temporary directories."""

    def __init__(self, prefix: str = DEFAULT_WORKSPACE_PREFIX, root: str | Path | None = None):
        self.prefix = prefix
        self.root = Path(root) if root else None
        self._open: set[Path] = set()
        self._lock = threading.Lock()

    def open(self) -> Path:
        """
        Create a fresh workspace directory.

        Raises:
            SegmentationError: If the directory cannot be created.
        """
        try:
            path = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.root))
        except OSError as exc:
            raise SegmentationError(f"Failed to create workspace: {exc}") from exc
        with self._lock:
            self._open.add(path)
        logger.debug("Workspace created: %s", path)
        return path

    def close(self, path: Path) -> None:
        """Remove ``path`` and everything in it. Later calls are no-ops."""
        path = Path(path)
        with self._lock:
            if path not in self._open:
                return
            self._open.discard(path)
        try:
            shutil.rmtree(path)
            logger.debug("Workspace removed: %s", path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove workspace %s: %s", path, exc)

    @property
    def open_workspaces(self) -> frozenset[Path]:
        with self._lock:
            return frozenset(self._open)

    @asynccontextmanager
    async def workspace(self) -> AsyncIterator[Path]:
        """``async with manager.workspace() as path:`` — open, then always close."""
        path = self.open()
        try:
            yield path
        finally:
            self.close(path)


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


async def write_input(workspace_dir: Path, audio_bytes: bytes, extension: str) -> Path:
    """Write the uploaded bytes to ``input<extension>`` inside the workspace."""
    input_path = Path(workspace_dir) / f"{INPUT_STEM}{extension}"
    try:
        await asyncio.to_thread(input_path.write_bytes, audio_bytes)
    except OSError as exc:
        raise SegmentationError(f"Failed to write input file: {exc}") from exc
    return input_path


async def read_segment(path: Path) -> bytes:
    try:
        return await asyncio.to_thread(Path(path).read_bytes)
    except OSError as exc:
        raise SegmentationError(f"Failed to read segment {Path(path).name}: {exc}") from exc
