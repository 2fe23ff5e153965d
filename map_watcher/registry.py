"""In-flight registry for Map Watcher.

Tracks which paths currently have a processing task, so duplicate or
out-of-order creation events never start a second task for a path that
is already being handled.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

logger = logging.getLogger(__name__)

# Marker stored when the caller does not identify itself
_ANONYMOUS = object()


class InFlightRegistry:
    """Thread-safe set of in-progress paths with atomic check-and-set.

    Paths are compared by exact string equality; callers are responsible
    for passing a consistent representation.
    """

    def __init__(self) -> None:
        # path -> owner token of the task that holds it
        self._entries: dict[str, Any] = {}
        self._lock = threading.Lock()

    def try_acquire(self, path: str, owner: Any = None) -> bool:
        """
        Claim *path* for a new processing task.

        Returns True when the path was absent and is now held by *owner*.
        Returns False when the path was already in progress; the entry is
        then cleared, so the next creation event for the path starts fresh.
        """
        with self._lock:
            if path in self._entries:
                del self._entries[path]
                return False
            self._entries[path] = _ANONYMOUS if owner is None else owner
            return True

    def release(self, path: str, owner: Any = None) -> None:
        """
        Drop the entry for *path*.

        Without *owner* the entry is removed unconditionally. With an
        *owner* it is removed only while that owner still holds it.
        """
        with self._lock:
            if owner is None:
                self._entries.pop(path, None)
                return
            if self._entries.get(path) is owner:
                del self._entries[path]
            elif path in self._entries:
                logger.debug("Not releasing %s: held by a newer task", path)

    def is_in_flight(self, path: str) -> bool:
        with self._lock:
            return path in self._entries

    @property
    def paths(self) -> list[str]:
        """Snapshot of the paths currently in progress."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._entries
