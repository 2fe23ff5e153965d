"""Entry point for Map Watcher.

Usage:
    python -m map_watcher            Watch the downloads folder and move maps
    python -m map_watcher config     Show configuration
    python -m map_watcher check F    Validate a single map file
"""

import sys


def main() -> None:
    """Delegate to the headless runner's command line."""
    from map_watcher.service import main as service_main

    sys.exit(service_main())


if __name__ == "__main__":
    main()
