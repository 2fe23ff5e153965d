from __future__ import annotations

import errno
import os
import threading

import pytest

from map_watcher.config import COLLISION_OVERWRITE, COLLISION_RENAME
from map_watcher.relocator import (
    MoveRecord,
    MoveStats,
    ProcessResult,
    RelocationError,
    Relocator,
)


@pytest.fixture
def dirs(tmp_path):
    src = tmp_path / "downloads"
    dst = tmp_path / "maps"
    src.mkdir()
    return src, dst


def test_move_renames_into_destination(dirs):
    src, dst = dirs
    source = src / "map.bsp"
    source.write_bytes(b"data")
    relocator = Relocator(dst)

    final = relocator.move(source, relocator.destination_for("map.bsp"))

    assert final == dst / "map.bsp"
    assert final.read_bytes() == b"data"
    assert not source.exists()


def test_existing_destination_fails_and_keeps_source(dirs):
    src, dst = dirs
    dst.mkdir()
    (dst / "map.bsp").write_bytes(b"old")
    source = src / "map.bsp"
    source.write_bytes(b"new")

    with pytest.raises(RelocationError) as excinfo:
        Relocator(dst).move(source, dst / "map.bsp")

    assert "already exists" in str(excinfo.value)
    assert excinfo.value.source == str(source)
    assert source.read_bytes() == b"new"
    assert (dst / "map.bsp").read_bytes() == b"old"


def test_overwrite_mode_replaces(dirs):
    src, dst = dirs
    dst.mkdir()
    (dst / "map.bsp").write_bytes(b"old")
    source = src / "map.bsp"
    source.write_bytes(b"new")

    final = Relocator(dst, collision_mode=COLLISION_OVERWRITE).move(source, dst / "map.bsp")

    assert final.read_bytes() == b"new"
    assert not source.exists()


def test_rename_mode_picks_free_name(dirs):
    src, dst = dirs
    dst.mkdir()
    (dst / "map.bsp").write_bytes(b"old")
    (dst / "map_1.bsp").write_bytes(b"older")
    source = src / "map.bsp"
    source.write_bytes(b"new")

    final = Relocator(dst, collision_mode=COLLISION_RENAME).move(source, dst / "map.bsp")

    assert final == dst / "map_2.bsp"
    assert final.read_bytes() == b"new"


def test_cross_volume_is_reported_not_copied(dirs, monkeypatch):
    src, dst = dirs
    source = src / "map.bsp"
    source.write_bytes(b"data")

    def fake_rename(a, b):
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr(os, "rename", fake_rename)

    with pytest.raises(RelocationError) as excinfo:
        Relocator(dst).move(source, dst / "map.bsp")

    assert "different volumes" in str(excinfo.value)
    assert source.exists()
    assert not (dst / "map.bsp").exists()


def test_missing_source_raises(dirs):
    src, dst = dirs

    with pytest.raises(RelocationError):
        Relocator(dst).move(src / "gone.bsp", dst / "gone.bsp")


def test_stats_count_by_result():
    stats = MoveStats()
    stats.record(MoveRecord("a.bsp", "maps/a.bsp", ProcessResult.MOVED, size_bytes=5))
    stats.record(MoveRecord("b.bsp", result=ProcessResult.REJECTED))
    stats.record(MoveRecord("c.bsp", result=ProcessResult.MOVE_FAILED))
    stats.record(MoveRecord("d.bsp", result=ProcessResult.ABANDONED))

    assert stats.total_moved == 1
    assert stats.total_bytes == 5
    assert stats.last_moved_file == "maps/a.bsp"
    assert stats.total_rejected == 1
    assert stats.total_failed == 1
    assert stats.total_abandoned == 1
    assert len(stats.history) == 4


def test_stats_history_is_bounded():
    stats = MoveStats()
    threads = [
        threading.Thread(
            target=lambda: [
                stats.record(MoveRecord("x.bsp", result=ProcessResult.REJECTED))
                for _ in range(300)
            ]
        )
        for _ in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)

    assert stats.total_rejected == 1200
    assert len(stats.history) == 1000


def test_record_duration_and_timestamp():
    rec = MoveRecord("a.bsp", started=100.0, finished=102.5)

    assert rec.duration == pytest.approx(2.5)
    assert rec.timestamp_str
    assert not rec.success
