"""
Relocation engine for Map Watcher.

Moves validated files from the watched folder into the destination
folder with a single rename, so the file appears there complete or not
at all. Moves never fall back to copy+delete: a rename that cannot be
performed (destination taken, different volume, permissions) is reported
and the source file is left where it was.

Also holds the per-file processing records and aggregated statistics
used for status reporting.
"""

import enum
import errno
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from map_watcher.config import (
    COLLISION_FAIL,
    COLLISION_OVERWRITE,
    COLLISION_RENAME,
    DEFAULT_RENAME_PATTERN,
)

logger = logging.getLogger(__name__)


class RelocationError(OSError):
    """A validated file could not be moved into the destination folder."""

    def __init__(self, message: str, source: str | Path, destination: str | Path):
        super().__init__(message)
        self.source = str(source)
        self.destination = str(destination)


def _expand_rename_pattern(
    pattern: str,
    name: str,
    ext: str,
    counter: int,
) -> str:
    """
    Expand token-based rename pattern.

    Supported tokens:
      {name}     - filename without extension
      {ext}      - extension without leading dot
      {n}        - collision counter (1, 2, 3, ...)
      {date}     - current date YYYY-MM-DD
      {time}     - current time HH-MM-SS
      {datetime} - combined YYYY-MM-DD_HH-MM-SS
      {ts}       - integer Unix timestamp
    """
    now = datetime.now()
    return pattern.format(
        name=name,
        ext=ext,
        n=counter,
        date=now.strftime("%Y-%m-%d"),
        time=now.strftime("%H-%M-%S"),
        datetime=now.strftime("%Y-%m-%d_%H-%M-%S"),
        ts=int(now.timestamp()),
    )


class ProcessResult(enum.Enum):
    """Terminal outcome of one path's processing task."""

    MOVED = "moved"
    ABANDONED = "abandoned"
    READ_ERROR = "read_error"
    REJECTED = "rejected"
    MOVE_FAILED = "move_failed"
    CANCELLED = "cancelled"
    ERROR = "error"  # unexpected failure inside the pipeline


@dataclass
class MoveRecord:
    """Record of a single processed file."""
    source: str
    destination: str = ""
    result: ProcessResult = ProcessResult.CANCELLED
    size_bytes: int = 0
    version: int | None = None
    started: float = 0.0
    finished: float = 0.0
    error: str = ""

    @property
    def success(self) -> bool:
        return self.result is ProcessResult.MOVED

    @property
    def duration(self) -> float:
        if self.finished and self.started:
            return self.finished - self.started
        return 0.0

    @property
    def timestamp_str(self) -> str:
        """Human-readable timestamp of when processing finished."""
        if self.finished:
            return datetime.fromtimestamp(self.finished).strftime("%Y-%m-%d %H:%M:%S")
        return ""


@dataclass
class MoveStats:
    """Aggregated processing statistics."""
    total_moved: int = 0
    total_rejected: int = 0
    total_failed: int = 0
    total_abandoned: int = 0
    total_errors: int = 0
    total_bytes: int = 0
    last_moved_file: str = ""
    history: list[MoveRecord] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, rec: MoveRecord) -> None:
        with self._lock:
            self.history.append(rec)
            if rec.result is ProcessResult.MOVED:
                self.total_moved += 1
                self.total_bytes += rec.size_bytes
                self.last_moved_file = rec.destination
            elif rec.result is ProcessResult.REJECTED:
                self.total_rejected += 1
            elif rec.result is ProcessResult.ABANDONED:
                self.total_abandoned += 1
            elif rec.result in (ProcessResult.MOVE_FAILED, ProcessResult.READ_ERROR):
                self.total_failed += 1
            elif rec.result is ProcessResult.ERROR:
                self.total_errors += 1
            # Keep last 1000 records
            if len(self.history) > 1000:
                self.history = self.history[-1000:]


class Relocator:
    """
    Moves files into *destination_root* by atomic rename.

    Parameters
    ----------
    destination_root : str
        Folder that receives validated files.
    collision_mode : str
        One of 'fail', 'overwrite', 'rename'.
    rename_pattern : str
        Token pattern for renamed files on collision.
    """

    def __init__(
        self,
        destination_root: str | Path,
        collision_mode: str = COLLISION_FAIL,
        rename_pattern: str = DEFAULT_RENAME_PATTERN,
    ):
        self.destination_root = Path(destination_root)
        self._collision_mode = collision_mode
        self._rename_pattern = rename_pattern

    def destination_for(self, filename: str) -> Path:
        """Return the base destination path for *filename*."""
        return self.destination_root / filename

    def _resolve_collision(self, source: Path, dest: Path) -> Path:
        """
        Apply the configured collision strategy.

        Returns the final destination path or raises RelocationError.
        """
        if not dest.exists():
            return dest

        if self._collision_mode == COLLISION_OVERWRITE:
            return dest

        if self._collision_mode == COLLISION_RENAME:
            stem = dest.stem
            ext = dest.suffix.lstrip(".")
            parent = dest.parent
            for n in range(1, 10_000):
                candidate = parent / _expand_rename_pattern(
                    self._rename_pattern, stem, ext, n
                )
                if not candidate.exists():
                    return candidate
            # Exhausted counter space - fall back to timestamp
            return parent / f"{stem}_{int(time.time())}.{ext}"

        raise RelocationError(
            f"Destination already exists: {dest}. Remove or rename it, "
            f"or set collision_mode to 'overwrite' or 'rename'.",
            source,
            dest,
        )

    def move(self, source_path: str | Path, dest_path: str | Path) -> Path:
        """
        Rename *source_path* to *dest_path* (after collision handling).

        Returns the path the file now lives at. Raises RelocationError on
        failure; the source file is untouched in that case.
        """
        source = Path(source_path)
        dest = Path(dest_path)

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RelocationError(
                f"Cannot create destination folder {dest.parent}: {exc}",
                source,
                dest,
            ) from exc

        final = self._resolve_collision(source, dest)

        try:
            if self._collision_mode == COLLISION_OVERWRITE:
                os.replace(source, final)
            else:
                os.rename(source, final)
        except OSError as exc:
            if exc.errno == errno.EXDEV:
                message = (
                    f"Cannot move {source} to {final}: source and destination "
                    f"are on different volumes. Put the watched folder and the "
                    f"destination on the same drive."
                )
            else:
                message = f"Cannot move {source} to {final}: {exc}"
            raise RelocationError(message, source, final) from exc

        logger.info("Moved %s -> %s", source, final)
        return final
