"""Map Watcher: moves downloaded maps into the game's maps folder.

Watches a downloads folder for new ``.bsp`` files, waits until each one
has finished downloading, checks that it is a map the game can load and
renames it into the configured maps folder.
"""

__version__ = "1.0.0"
__app_name__ = "Map Watcher"
