"""
Event dispatch for Map Watcher.

Consumes the watch stream on one loop and starts an independent
processing task per qualifying path:

    stabilise -> validate -> relocate

Each task owns its path in the in-flight registry from the moment the
creation event is accepted until the task ends, whatever the outcome.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Iterable
from typing import Any, Protocol

from map_watcher.registry import InFlightRegistry
from map_watcher.relocator import (
    MoveRecord,
    MoveStats,
    ProcessResult,
    RelocationError,
    Relocator,
)
from map_watcher.stability import Outcome, StabilityDetector
from map_watcher.validator import ValidationResult
from map_watcher.watcher import EventKind, WatchEvent, WatchFault

logger = logging.getLogger(__name__)

_OUTCOME_RESULTS = {
    Outcome.ABANDONED: ProcessResult.ABANDONED,
    Outcome.READ_ERROR: ProcessResult.READ_ERROR,
    Outcome.CANCELLED: ProcessResult.CANCELLED,
}


class Validator(Protocol):
    def validate(self, path: str) -> ValidationResult: ...


class _Ticket:
    """Identifies one processing task's claim in the registry."""

    __slots__ = ("path",)

    def __init__(self, path: str):
        self.path = path

    def __repr__(self) -> str:
        return f"<_Ticket {self.path!r} {id(self):#x}>"


class WatchDispatcher:
    """
    Routes creation events into per-path processing tasks.

    Parameters
    ----------
    registry : InFlightRegistry
        Shared record of paths that already have a task.
    detector : StabilityDetector
        Decides when a file has finished being written.
    validator : object with ``validate(path) -> ValidationResult``
        Gatekeeper run on stable files.
    relocator : Relocator
        Moves accepted files into the destination folder.
    extension : str
        Literal, case-sensitive suffix a path must end with.
    on_complete : callable, optional
        Invoked with the MoveRecord after each task finishes.
    """

    def __init__(
        self,
        registry: InFlightRegistry,
        detector: StabilityDetector,
        validator: Validator,
        relocator: Relocator,
        extension: str = ".bsp",
        on_complete: Callable[[MoveRecord], None] | None = None,
    ):
        self.registry = registry
        self.detector = detector
        self.validator = validator
        self.relocator = relocator
        self.extension = extension
        self._on_complete = on_complete
        self.stats = MoveStats()
        self._tasks: set[threading.Thread] = set()
        self._lock = threading.Lock()

    @property
    def active_tasks(self) -> int:
        with self._lock:
            return sum(1 for t in self._tasks if t.is_alive())

    # ---- event loop ----

    def run(self, events: Iterable[WatchEvent | WatchFault]) -> None:
        """Consume *events* until the stream closes."""
        logger.info("Dispatcher started (extension=%s)", self.extension)
        for item in events:
            if isinstance(item, WatchFault):
                logger.warning("Watch error: %s", item.error)
                continue
            try:
                self.dispatch(item)
            except Exception:
                logger.exception("Error dispatching %s", item)
        logger.info("Watch stream closed; dispatcher stopped.")

    def dispatch(self, event: WatchEvent) -> threading.Thread | None:
        """Start a processing task for *event* if it qualifies.

        Returns the started thread, or None when the event was ignored or
        the path was already in flight.
        """
        if event.kind is not EventKind.CREATED:
            return None
        path = event.path
        if not path.endswith(self.extension):
            return None

        ticket = _Ticket(path)
        if not self.registry.try_acquire(path, owner=ticket):
            logger.info("File %s is already being processed, skipping.", path)
            return None

        logger.info(
            "Map file created: %s. Waiting for the download to finish...", path
        )
        thread = threading.Thread(
            target=self._run_task,
            args=(path, ticket),
            daemon=True,
            name=f"Process-{os.path.basename(path)}",
        )
        with self._lock:
            self._tasks = {t for t in self._tasks if t.is_alive()}
            self._tasks.add(thread)
        try:
            thread.start()
        except RuntimeError:
            with self._lock:
                self._tasks.discard(thread)
            self.registry.release(path, ticket)
            raise
        return thread

    def _run_task(self, path: str, ticket: _Ticket) -> None:
        try:
            self.process(path, owner=ticket)
        except Exception:
            logger.exception("Unexpected error processing %s", path)

    # ---- per-path pipeline ----

    def process(self, path: str, owner: Any = None) -> MoveRecord:
        """Stabilise, validate and relocate *path*; always releases its claim."""
        rec = MoveRecord(source=path, started=time.time())
        try:
            self._process(path, rec)
        except Exception as exc:
            rec.result = ProcessResult.ERROR
            rec.error = str(exc)
            raise
        finally:
            self.registry.release(path, owner)
            rec.finished = rec.finished or time.time()
            self.stats.record(rec)
            if self._on_complete:
                try:
                    self._on_complete(rec)
                except Exception:
                    logger.exception("Error in on_complete callback")
        return rec

    def _process(self, path: str, rec: MoveRecord) -> None:
        stability = self.detector.wait_until_stable(path)
        rec.size_bytes = stability.size
        if not stability.is_stable:
            rec.result = _OUTCOME_RESULTS[stability.outcome]
            rec.error = stability.error
            return

        verdict = self.validator.validate(path)
        rec.version = verdict.version
        if not verdict.accepted:
            rec.result = ProcessResult.REJECTED
            rec.error = verdict.reason
            logger.warning("Ignoring %s: %s", path, verdict.reason)
            return

        filename = os.path.basename(path)
        dest = self.relocator.destination_for(filename)
        try:
            final = self.relocator.move(path, dest)
        except RelocationError as exc:
            rec.result = ProcessResult.MOVE_FAILED
            rec.destination = exc.destination
            rec.error = str(exc)
            logger.error("%s", exc)
            return

        rec.result = ProcessResult.MOVED
        rec.destination = str(final)
        rec.finished = time.time()

    # ---- lifecycle ----

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Join outstanding tasks. Returns True when none are left running."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = [t for t in self._tasks if t.is_alive()]
            if not pending:
                return True
            for thread in pending:
                remaining = None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return False
                thread.join(remaining)

    def stop(self) -> None:
        """Cancel stabilisation waits still in progress."""
        self.detector.stop()


