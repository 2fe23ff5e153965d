from __future__ import annotations

import os
import threading

import pytest
from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from map_watcher.watcher import (
    EventKind,
    FolderWatcher,
    StreamingHandler,
    WatchEvent,
    WatchFault,
    WatchStream,
)


def _drain(stream: WatchStream) -> list:
    stream.close()
    return list(stream)


def test_stream_yields_items_until_closed():
    stream = WatchStream()
    stream.put_event(EventKind.CREATED, "dl/map.bsp")
    stream.put_fault(RuntimeError("overflow"))

    assert _drain(stream) == [
        WatchEvent(EventKind.CREATED, "dl/map.bsp"),
        WatchFault("overflow"),
    ]
    assert stream.closed


def test_items_after_close_are_dropped():
    stream = WatchStream()
    stream.close()
    stream.put_event(EventKind.CREATED, "dl/late.bsp")
    stream.close()

    assert list(stream) == []


def test_consumer_blocks_until_close():
    stream = WatchStream()
    seen = []
    consumer = threading.Thread(target=lambda: seen.extend(stream))
    consumer.start()

    stream.put_event(EventKind.CREATED, "dl/map.bsp")
    stream.close()
    consumer.join(5)

    assert not consumer.is_alive()
    assert seen == [WatchEvent(EventKind.CREATED, "dl/map.bsp")]


def test_handler_forwards_file_events(tmp_path):
    root = str(tmp_path)
    stream = WatchStream()
    handler = StreamingHandler(stream, root)
    path = os.path.join(root, "map.bsp")

    handler.dispatch(FileCreatedEvent(path))
    handler.dispatch(FileModifiedEvent(path))
    handler.dispatch(FileDeletedEvent(path))
    handler.dispatch(DirCreatedEvent(os.path.join(root, "sub")))

    assert _drain(stream) == [
        WatchEvent(EventKind.CREATED, path),
        WatchEvent(EventKind.MODIFIED, path),
        WatchEvent(EventKind.DELETED, path),
    ]


def test_rename_into_place_counts_as_creation(tmp_path):
    root = str(tmp_path)
    stream = WatchStream()
    handler = StreamingHandler(stream, root)
    part = os.path.join(root, "map.bsp.part")
    final = os.path.join(root, "map.bsp")

    handler.dispatch(FileMovedEvent(part, final))

    assert _drain(stream) == [
        WatchEvent(EventKind.MOVED, part),
        WatchEvent(EventKind.CREATED, final),
    ]


def test_removed_watch_folder_is_a_fault(tmp_path):
    root = str(tmp_path)
    stream = WatchStream()
    handler = StreamingHandler(stream, root)

    handler.dispatch(DirDeletedEvent(root))

    items = _drain(stream)
    assert len(items) == 1
    assert isinstance(items[0], WatchFault)
    assert "removed" in items[0].error


def test_start_requires_existing_folder(tmp_path):
    watcher = FolderWatcher(str(tmp_path / "missing"))

    with pytest.raises(FileNotFoundError):
        watcher.start()
    assert not watcher.is_running


def test_stop_closes_event_stream(tmp_path):
    watcher = FolderWatcher(str(tmp_path))
    watcher.start()
    assert watcher.is_running

    watcher.stop()

    assert not watcher.is_running
    assert watcher.events.closed
    assert all(isinstance(item, (WatchEvent, WatchFault)) for item in watcher.events)
