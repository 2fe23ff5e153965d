"""Fakes and builders shared by the test modules."""

from __future__ import annotations

import struct
import threading

from map_watcher.stability import Outcome, StabilityResult
from map_watcher.validator import ValidationResult


def bsp_bytes(size: int = 500, version: int = 20, ident: bytes = b"VBSP") -> bytes:
    """Build a fake map file: a BSP header padded with zeros to *size* bytes."""
    header = struct.pack("<4si", ident, version)
    return header + b"\0" * max(0, size - len(header))


class GatedDetector:
    """Detector stand-in whose waits block until ``gate`` is set."""

    def __init__(self, outcome: Outcome = Outcome.STABLE, size: int = 10, error: str = ""):
        self.outcome = outcome
        self.size = size
        self.error = error
        self.gate = threading.Event()
        self.started = threading.Event()
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def wait_until_stable(self, path: str) -> StabilityResult:
        with self._lock:
            self.calls.append(path)
        self.started.set()
        self.gate.wait(5)
        return StabilityResult(path, self.outcome, self.size, 1, self.error)

    def stop(self) -> None:
        self.gate.set()


class FakeValidator:
    def __init__(self, accepted: bool = True, reason: str = "", version: int | None = 20):
        self.accepted = accepted
        self.reason = reason
        self.version = version
        self.calls: list[str] = []

    def validate(self, path: str) -> ValidationResult:
        self.calls.append(path)
        return ValidationResult(self.accepted, self.version, self.reason)


class SpyRelocator:
    """Relocator stand-in that records moves instead of renaming files."""

    def __init__(self, root: str = "maps", error: Exception | None = None):
        self.root = root
        self.error = error
        self.moves: list[tuple[str, str]] = []

    def destination_for(self, filename: str) -> str:
        return f"{self.root}/{filename}"

    def move(self, source, dest):
        if self.error is not None:
            raise self.error
        self.moves.append((str(source), str(dest)))
        return dest
