"""
Headless runner for Map Watcher.

Wires the watcher, dispatcher and their collaborators together from the
saved configuration and runs them in the foreground until SIGINT/SIGTERM:

    python -m map_watcher run       Watch and move maps (Ctrl-C to stop)
    python -m map_watcher config    Show the config file and current values
    python -m map_watcher check F   Validate a single map file
"""

import logging
import logging.handlers
import signal
import sys
import threading
from pathlib import Path

from map_watcher import __app_name__, __version__
from map_watcher.config import Config, get_log_path
from map_watcher.dispatcher import WatchDispatcher
from map_watcher.platform_utils import same_volume
from map_watcher.registry import InFlightRegistry
from map_watcher.relocator import MoveRecord, ProcessResult, Relocator
from map_watcher.stability import StabilityDetector
from map_watcher.validator import BspValidator
from map_watcher.watcher import FolderWatcher

logger = logging.getLogger(__name__)


def setup_logging(config: Config, log_path: Path | None = None) -> None:
    """Configure rotating file log and stderr handler."""
    log_path = log_path or get_log_path()
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    # Rotating file handler
    max_bytes = config.max_log_size_mb * 1024 * 1024
    fh = logging.handlers.RotatingFileHandler(
        str(log_path),
        maxBytes=max_bytes,
        backupCount=config.log_backup_count,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(fmt)
    root_logger.addHandler(fh)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)


def report(rec: MoveRecord) -> None:
    """Log the end of one file's processing."""
    if rec.result is ProcessResult.MOVED:
        logger.info("Map file moved to %s", rec.destination)
        logger.info(
            "You can start the map by typing 'map %s' in the console.",
            Path(rec.destination).stem,
        )
    elif rec.result is ProcessResult.MOVE_FAILED:
        logger.error("Map %s was left in place: %s", rec.source, rec.error)


def build_dispatcher(config: Config, on_complete=report) -> WatchDispatcher:
    """Create a dispatcher and its collaborators from *config*."""
    return WatchDispatcher(
        registry=InFlightRegistry(),
        detector=StabilityDetector(
            poll_interval=config.poll_interval,
            stable_samples=config.stable_samples,
        ),
        validator=BspValidator(config.expected_bsp_version),
        relocator=Relocator(
            config.destination_folder,
            collision_mode=config.collision_mode,
            rename_pattern=config.rename_pattern,
        ),
        extension=config.file_extension,
        on_complete=on_complete,
    )


def start(config: Config) -> "tuple[FolderWatcher, WatchDispatcher, threading.Thread]":
    """
    Start the watcher and a dispatcher thread consuming its events.

    Returns the (watcher, dispatcher, consumer thread) so the caller can
    stop them. Raises FileNotFoundError if the source folder is missing.
    """
    if not same_volume(config.source_folder, config.destination_folder):
        logger.warning(
            "'%s' and '%s' are on different volumes; moves will fail.",
            config.source_folder,
            config.destination_folder,
        )

    dispatcher = build_dispatcher(config)
    watcher = FolderWatcher(config.source_folder, recursive=config.recursive)
    watcher.start()
    consumer = threading.Thread(
        target=dispatcher.run, args=(watcher.events,), daemon=True, name="Dispatcher"
    )
    consumer.start()
    logger.info(
        "Moving %s files to '%s' (poll=%.1fs, quiet window=%.1fs)",
        config.file_extension,
        config.destination_folder,
        config.poll_interval,
        config.quiet_window,
    )
    return watcher, dispatcher, consumer


def run_foreground(config: Config) -> int:
    """Run until SIGINT/SIGTERM. Returns the process exit status."""
    if not config.is_configured():
        logger.error(
            "Not configured: set source_folder and destination_folder in %s",
            config.path,
        )
        return 1

    try:
        watcher, dispatcher, consumer = start(config)
    except FileNotFoundError as exc:
        logger.error("Cannot start: %s", exc)
        return 1

    stop = threading.Event()

    def _handler(sig, frame):
        stop.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)

    print(f"{__app_name__} running (press Ctrl-C to stop)...")
    while not stop.wait(1):
        if not consumer.is_alive():
            logger.error("Dispatcher exited unexpectedly.")
            break

    watcher.stop()
    dispatcher.stop()
    consumer.join(timeout=5)
    dispatcher.wait_idle(timeout=5)
    stats = dispatcher.stats
    logger.info(
        "Stopped: %d moved, %d rejected, %d failed, %d errors.",
        stats.total_moved,
        stats.total_rejected,
        stats.total_failed,
        stats.total_errors,
    )
    print(f"{__app_name__} stopped.")
    return 0


def check_file(config: Config, path: str) -> int:
    """Print the validator verdict for *path*; exit status 0 when accepted."""
    verdict = BspValidator(config.expected_bsp_version).validate(path)
    if verdict.accepted:
        print(f"OK: {path} (BSP version {verdict.version})")
        return 0
    print(f"REJECTED: {path}: {verdict.reason}")
    return 1


def show_config(config: Config) -> int:
    print(f"Config file: {config.path}")
    for key, value in sorted(config.as_dict().items()):
        print(f"  {key} = {value!r}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the command line."""
    args = sys.argv[1:] if argv is None else argv
    cmd = args[0] if args else "run"

    if cmd in ("-h", "--help", "help"):
        _show_help()
        return 0
    if cmd == "--version":
        print(f"{__app_name__} {__version__}")
        return 0

    config = Config()

    if cmd == "config":
        return show_config(config)
    if cmd == "check":
        if len(args) < 2:
            _show_help()
            return 2
        return check_file(config, args[1])
    if cmd == "run":
        setup_logging(config)
        logger.info("%s %s starting.", __app_name__, __version__)
        return run_foreground(config)

    _show_help()
    return 2


def _show_help() -> None:
    print(f"{__app_name__} {__version__}")
    print()
    print("Usage:")
    print("  python -m map_watcher [run]       Watch and move maps (Ctrl-C to stop)")
    print("  python -m map_watcher config      Show the config file and values")
    print("  python -m map_watcher check FILE  Validate a single map file")
