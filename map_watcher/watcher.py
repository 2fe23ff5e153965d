"""File system watcher for Map Watcher.

Uses the watchdog library to monitor a source folder and turns its
callbacks into a stream of events that the dispatcher consumes from a
single loop.
"""

from __future__ import annotations

import enum
import logging
import os
import queue
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileSystemMovedEvent,
)
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class EventKind(enum.Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    MOVED = "moved"


@dataclass(frozen=True)
class WatchEvent:
    """A change notification for one path."""

    kind: EventKind
    path: str


@dataclass(frozen=True)
class WatchFault:
    """A non-fatal error reported by the watch source."""

    error: str


class WatchStream:
    """
    Queue-backed stream of :class:`WatchEvent` and :class:`WatchFault` items.

    Producers (watchdog's observer thread) push items; a single consumer
    iterates. Iteration ends once :meth:`close` has been called and the
    items queued before it are drained.
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: queue.Queue[Any] = queue.Queue()
        self._closed = False
        self._lock = threading.Lock()

    def _put(self, item: Any) -> None:
        with self._lock:
            if self._closed:
                logger.debug("Dropping %r: stream closed", item)
                return
            self._queue.put(item)

    def put_event(self, kind: EventKind, path: str) -> None:
        self._put(WatchEvent(kind, path))

    def put_fault(self, error: str | BaseException) -> None:
        self._put(WatchFault(str(error)))

    def close(self) -> None:
        """Close the stream; the consumer loop stops after draining."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(self._CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[WatchEvent | WatchFault]:
        while True:
            item = self._queue.get()
            if item is self._CLOSED:
                return
            yield item


class StreamingHandler(FileSystemEventHandler):
    """Watchdog handler that forwards file events into a :class:`WatchStream`."""

    def __init__(self, stream: WatchStream, root: str):
        super().__init__()
        self._stream = stream
        self._root = os.path.normpath(root)

    def _forward(self, kind: EventKind, path: bytes | str) -> None:
        try:
            self._stream.put_event(kind, os.fsdecode(path))
        except Exception as exc:
            # Never let a bad event kill the observer thread
            logger.exception("Could not forward %s event for %r", kind.value, path)
            self._stream.put_fault(exc)

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a new file creation event."""
        if not event.is_directory:
            self._forward(EventKind.CREATED, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(EventKind.MODIFIED, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if os.path.normpath(os.fsdecode(event.src_path)) == self._root:
            self._stream.put_fault(f"Watched folder was removed: {self._root}")
            return
        if not event.is_directory:
            self._forward(EventKind.DELETED, event.src_path)

    def on_moved(self, event: FileSystemMovedEvent) -> None:  # type: ignore[override]
        """Handle a rename.

        A file renamed into its final name (for example a browser turning
        ``map.bsp.part`` into ``map.bsp``) is reported as a creation of the
        destination path; other platforms report such renames that way.
        """
        if event.is_directory:
            return
        self._forward(EventKind.MOVED, event.src_path)
        self._forward(EventKind.CREATED, event.dest_path)


class FolderWatcher:
    """High-level watcher that owns the watchdog observer and its event stream.

    Usage:
        watcher = FolderWatcher(source)
        watcher.start()
        for item in watcher.events: ...
        watcher.stop()   # closes the stream, ending the loop above
    """

    def __init__(self, source_folder: str, recursive: bool = False):
        """Create a new folder watcher."""
        self.source_folder = source_folder
        self._recursive = recursive
        self._stream = WatchStream()
        self._handler = StreamingHandler(self._stream, source_folder)
        self._observer: Any | None = None

    @property
    def events(self) -> WatchStream:
        return self._stream

    # ---- lifecycle ----

    def start(self) -> None:
        """Start watching the source folder."""
        if not os.path.isdir(self.source_folder):
            logger.error("Source folder does not exist: %s", self.source_folder)
            raise FileNotFoundError(
                f"Source folder does not exist: {self.source_folder}"
            )

        observer = Observer()
        self._observer = observer
        observer.schedule(self._handler, self.source_folder, recursive=self._recursive)
        observer.start()
        logger.info(
            "Watching '%s' (recursive=%s)", self.source_folder, self._recursive
        )

    def stop(self) -> None:
        """Stop watching and close the event stream."""
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._stream.close()
        logger.info("Watcher stopped.")

    @property
    def is_running(self) -> bool:
        """Return whether the watcher is currently active."""
        return self._observer is not None and self._observer.is_alive()
