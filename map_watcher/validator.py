"""Map file validation for Map Watcher.

Checks the header of a stabilised file to confirm it is a Source engine
BSP map of the version the game can load, before it is moved.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path

from map_watcher.config import DEFAULT_BSP_VERSION

logger = logging.getLogger(__name__)

BSP_IDENT = b"VBSP"
# ident (4 bytes) followed by a little-endian int32 version
_HEADER = struct.Struct("<4si")


@dataclass
class ValidationResult:
    """Verdict for one file."""

    accepted: bool
    version: int | None = None
    reason: str = ""


class BspValidator:
    """Accepts VBSP files whose header version equals *expected_version*."""

    def __init__(self, expected_version: int = DEFAULT_BSP_VERSION):
        self.expected_version = expected_version

    def read_header(self, path: str | Path) -> tuple[bytes, int]:
        """Return ``(ident, version)`` from the file header.

        Raises ``OSError`` if the file cannot be read and ``ValueError``
        if it is too short to hold a header.
        """
        with open(path, "rb") as fh:
            raw = fh.read(_HEADER.size)
        if len(raw) < _HEADER.size:
            raise ValueError(f"file too short for a BSP header ({len(raw)} bytes)")
        return _HEADER.unpack(raw)

    def validate(self, path: str | Path) -> ValidationResult:
        """Return whether *path* is a loadable map. Never raises for bad files."""
        try:
            ident, version = self.read_header(path)
        except (OSError, ValueError) as exc:
            return ValidationResult(False, None, f"Could not read BSP header: {exc}")

        if ident != BSP_IDENT:
            return ValidationResult(
                False, None, f"Not a BSP file (ident {ident!r})"
            )
        if version != self.expected_version:
            return ValidationResult(
                False,
                version,
                f"Wrong format version {version} (expected {self.expected_version})",
            )
        return ValidationResult(True, version)
