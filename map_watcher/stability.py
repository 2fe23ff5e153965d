"""File stabilisation for Map Watcher.

Decides when a growing file has finished being written by sampling its
size on a fixed cadence until it stops changing. Downloaders give no
completion signal, so an unchanged size across the quiet window is the
only evidence available.
"""

from __future__ import annotations

import enum
import logging
import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    """Terminal result of waiting for a file to stabilise."""

    STABLE = "stable"
    ABANDONED = "abandoned"  # zero-byte placeholder
    READ_ERROR = "read_error"  # vanished or inaccessible mid-watch
    CANCELLED = "cancelled"  # detector stopped during the wait


@dataclass(frozen=True)
class StabilitySample:
    """One size observation taken on a poll tick."""

    path: str
    size: int
    timestamp: float


@dataclass
class StabilityResult:
    """Outcome of :meth:`StabilityDetector.wait_until_stable`."""

    path: str
    outcome: Outcome
    size: int = 0
    samples: int = 0
    error: str = ""

    @property
    def is_stable(self) -> bool:
        return self.outcome is Outcome.STABLE


class StabilityDetector:
    """
    Polls file sizes until they stop changing.

    Parameters
    ----------
    poll_interval : float
        Seconds between size samples.
    stable_samples : int
        Consecutive unchanged samples required before a file is reported
        stable. 1 reproduces the classic "one unchanged tick" heuristic.
    wait : callable, optional
        ``wait(seconds) -> bool`` used between samples; returning True
        aborts the wait as cancelled. Defaults to the detector's stop event.
    size_of : callable, optional
        ``size_of(path) -> int`` used to sample; defaults to ``os.path.getsize``.
    """

    def __init__(
        self,
        poll_interval: float = 1.0,
        stable_samples: int = 1,
        wait: Callable[[float], bool] | None = None,
        size_of: Callable[[str], int] | None = None,
    ):
        self._poll_interval = max(0.0, poll_interval)
        self._stable_samples = max(1, stable_samples)
        self._stop = threading.Event()
        self._wait = wait or self._stop.wait
        self._size_of = size_of or os.path.getsize

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def stable_samples(self) -> int:
        return self._stable_samples

    @property
    def quiet_window(self) -> float:
        return self._poll_interval * self._stable_samples

    def stop(self) -> None:
        """Cancel every wait in progress; later waits return immediately."""
        self._stop.set()

    def _sample(self, path: str) -> StabilitySample:
        return StabilitySample(path, self._size_of(path), time.time())

    def wait_until_stable(self, path: str) -> StabilityResult:
        """Block the calling task until *path* is stable, abandoned or unreadable."""
        last_size: int | None = None
        unchanged = 0
        samples = 0

        while True:
            if self._wait(self._poll_interval) or self._stop.is_set():
                logger.debug("Stopped waiting for %s", path)
                return StabilityResult(
                    path, Outcome.CANCELLED, last_size or 0, samples
                )

            try:
                sample = self._sample(path)
            except OSError as exc:
                logger.warning("Cannot read size of %s: %s", path, exc)
                return StabilityResult(
                    path, Outcome.READ_ERROR, last_size or 0, samples, str(exc)
                )
            samples += 1

            if sample.size == 0:
                logger.info("Ignoring empty placeholder file: %s", path)
                return StabilityResult(path, Outcome.ABANDONED, 0, samples)

            if sample.size == last_size:
                unchanged += 1
                if unchanged >= self._stable_samples:
                    logger.info("File stable: %s (%d bytes)", path, sample.size)
                    return StabilityResult(path, Outcome.STABLE, sample.size, samples)
            else:
                unchanged = 0
                logger.debug("Still growing: %s (size=%d)", path, sample.size)

            last_size = sample.size
