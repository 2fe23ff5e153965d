"""
Cross-platform utilities for Map Watcher.

Centralises all OS-detection logic so every other module can import
a single canonical set of helpers rather than scattering ``sys.platform``
checks throughout the codebase.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"
IS_LINUX: bool = sys.platform.startswith("linux")

_APP_DIR_NAME = "MapWatcher"

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory, created if needed.

    - Windows : ``%APPDATA%\\MapWatcher``
    - macOS   : ``~/Library/Application Support/MapWatcher``
    - Linux   : ``$XDG_CONFIG_HOME/MapWatcher`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))

    config_dir = Path(base) / _APP_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_log_path() -> Path:
    """Return the path to the log file (inside the config directory)."""
    return get_config_dir() / "map_watcher.log"


def get_downloads_dir() -> Path:
    """Return the user's Downloads folder (not created if missing)."""
    return Path.home() / "Downloads"


def same_volume(a: str | Path, b: str | Path) -> bool:
    """Return True when *a* and *b* live on the same filesystem volume.

    Missing paths are resolved through their nearest existing parent.
    """

    def _device(p: Path) -> int:
        p = p.resolve()
        while not p.exists() and p != p.parent:
            p = p.parent
        return p.stat().st_dev

    try:
        return _device(Path(a)) == _device(Path(b))
    except OSError:
        logger.debug("Could not compare volumes of %s and %s", a, b, exc_info=True)
        return False
