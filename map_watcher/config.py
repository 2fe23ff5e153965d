"""Configuration management for Map Watcher.

Stores and retrieves user settings from a JSON config file
in the platform-appropriate application data directory.
"""

import json
import logging
from pathlib import Path
from typing import Any

from map_watcher.platform_utils import (
    get_config_dir as _platform_config_dir,
)
from map_watcher.platform_utils import (
    get_downloads_dir,
)
from map_watcher.platform_utils import (
    get_log_path as _platform_log_path,
)

logger = logging.getLogger(__name__)

# Collision resolution strategies
COLLISION_FAIL = "fail"
COLLISION_OVERWRITE = "overwrite"
COLLISION_RENAME = "rename"
COLLISION_MODES = (COLLISION_FAIL, COLLISION_OVERWRITE, COLLISION_RENAME)

# Available tokens for the rename pattern
# {name}     - original filename without extension
# {ext}      - original extension (without dot)
# {n}        - incrementing number (1, 2, 3, ...)
# {date}     - date stamp YYYY-MM-DD
# {time}     - time stamp HH-MM-SS
# {datetime} - combined YYYY-MM-DD_HH-MM-SS
# {ts}       - Unix timestamp (integer)
DEFAULT_RENAME_PATTERN = "{name}_{n}.{ext}"

# Team Fortress 2 maps are VBSP version 20
DEFAULT_BSP_VERSION = 20

DEFAULT_CONFIG: dict[str, Any] = {
    "source_folder": str(get_downloads_dir()),
    "destination_folder": "",
    "file_extension": ".bsp",
    "poll_interval_seconds": 1.0,
    "stable_samples": 1,  # consecutive unchanged samples before a file is stable
    "expected_bsp_version": DEFAULT_BSP_VERSION,
    "recursive": False,
    "log_level": "INFO",
    # ---- collision protection ----
    "collision_mode": COLLISION_FAIL,  # fail | overwrite | rename
    "rename_pattern": DEFAULT_RENAME_PATTERN,
    # ---- log rotation ----
    "max_log_size_mb": 10,
    "log_backup_count": 3,
}


def _normalise_extension(value: str) -> str:
    """Return *value* as a dotted suffix, falling back to ".bsp" when blank."""
    value = value.strip()
    if value and not value.startswith("."):
        value = "." + value
    return value if value not in ("", ".") else ".bsp"


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    return get_config_dir() / "config.json"


def get_log_path() -> Path:
    """Return the path to the log file."""
    return _platform_log_path()


class Config:
    """Configuration manager backed by a JSON file."""

    def __init__(self, path: Path | None = None):
        """Load config from *path*, falling back to the platform default."""
        self._path = path or get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    # ---- persistence ----

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing keys."""
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as fh:
                    stored = json.load(fh)
                if not isinstance(stored, dict):
                    raise ValueError("top-level value is not an object")
                # Merge stored values over defaults so new keys get defaults
                self._data = {**DEFAULT_CONFIG, **stored}
                logger.info("Configuration loaded from %s", self._path)
            except (json.JSONDecodeError, ValueError, OSError) as exc:
                logger.warning("Could not read config (%s); using defaults.", exc)
                self._data = dict(DEFAULT_CONFIG)
        else:
            self._data = dict(DEFAULT_CONFIG)
            self.save()
            logger.info("Created default configuration at %s", self._path)

    def save(self) -> None:
        """Persist the current configuration to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            logger.info("Configuration saved.")
        except OSError as exc:
            logger.error("Failed to save configuration: %s", exc)

    def as_dict(self) -> dict[str, Any]:
        """Return a copy of the raw settings."""
        return dict(self._data)

    # ---- folders ----

    @property
    def source_folder(self) -> str:
        """Return the watched source folder path."""
        return self._data["source_folder"]

    @source_folder.setter
    def source_folder(self, value: str) -> None:
        self._data["source_folder"] = value

    @property
    def destination_folder(self) -> str:
        """Return the maps folder that validated files are moved into."""
        return self._data["destination_folder"]

    @destination_folder.setter
    def destination_folder(self, value: str) -> None:
        self._data["destination_folder"] = value

    @property
    def recursive(self) -> bool:
        """Return whether sub-folders of the source are watched too."""
        return bool(self._data.get("recursive", False))

    @recursive.setter
    def recursive(self, value: bool) -> None:
        self._data["recursive"] = value

    # ---- filtering ----

    @property
    def file_extension(self) -> str:
        """Return the literal, case-sensitive suffix of candidate files."""
        return _normalise_extension(str(self._data.get("file_extension", ".bsp")))

    @file_extension.setter
    def file_extension(self, value: str) -> None:
        """Set the suffix, adding the leading dot if it is missing."""
        self._data["file_extension"] = _normalise_extension(value)

    # ---- stabilisation ----

    @property
    def poll_interval(self) -> float:
        """Return the size-sampling interval in seconds."""
        return max(0.1, float(self._data.get("poll_interval_seconds", 1.0)))

    @poll_interval.setter
    def poll_interval(self, value: float) -> None:
        """Set the sampling interval (minimum 0.1 s)."""
        self._data["poll_interval_seconds"] = max(0.1, float(value))

    @property
    def stable_samples(self) -> int:
        """Return how many consecutive unchanged samples mark a file stable."""
        return max(1, int(self._data.get("stable_samples", 1)))

    @stable_samples.setter
    def stable_samples(self, value: int) -> None:
        self._data["stable_samples"] = max(1, int(value))

    @property
    def quiet_window(self) -> float:
        """Seconds a file must stay unchanged before it counts as stable."""
        return self.poll_interval * self.stable_samples

    # ---- validation ----

    @property
    def expected_bsp_version(self) -> int:
        """Return the BSP format version accepted by the validator."""
        return int(self._data.get("expected_bsp_version", DEFAULT_BSP_VERSION))

    @expected_bsp_version.setter
    def expected_bsp_version(self, value: int) -> None:
        self._data["expected_bsp_version"] = int(value)

    # ---- collision protection ----

    @property
    def collision_mode(self) -> str:
        """Return the collision resolution strategy."""
        value = self._data.get("collision_mode", COLLISION_FAIL)
        return value if value in COLLISION_MODES else COLLISION_FAIL

    @collision_mode.setter
    def collision_mode(self, value: str) -> None:
        """Set the collision resolution strategy."""
        if value not in COLLISION_MODES:
            value = COLLISION_FAIL
        self._data["collision_mode"] = value

    @property
    def rename_pattern(self) -> str:
        """Return the token-based rename pattern."""
        return self._data.get("rename_pattern", DEFAULT_RENAME_PATTERN)

    @rename_pattern.setter
    def rename_pattern(self, value: str) -> None:
        self._data["rename_pattern"] = value.strip() or DEFAULT_RENAME_PATTERN

    # ---- logging ----

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return self._data.get("log_level", "INFO")

    @log_level.setter
    def log_level(self, value: str) -> None:
        self._data["log_level"] = value

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return max(1, int(self._data.get("max_log_size_mb", 10)))

    @max_log_size_mb.setter
    def max_log_size_mb(self, value: int) -> None:
        """Set the maximum log file size in MB (minimum 1)."""
        self._data["max_log_size_mb"] = max(1, int(value))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return max(0, int(self._data.get("log_backup_count", 3)))

    @log_backup_count.setter
    def log_backup_count(self, value: int) -> None:
        self._data["log_backup_count"] = max(0, int(value))

    # ---- convenience ----

    def is_configured(self) -> bool:
        """Return True when both source and destination folders are set."""
        return bool(self.source_folder) and bool(self.destination_folder)
