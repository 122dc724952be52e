"""
Kindex Watching

Live filesystem updates for folder sources.
"""

from kindex.watching.handler import FileChangeHandler
from kindex.watching.watcher import FileWatcher, WatcherManager, get_watcher_manager

__all__ = [
    "FileChangeHandler",
    "FileWatcher",
    "WatcherManager",
    "get_watcher_manager",
]
