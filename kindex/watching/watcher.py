"""
File Watcher

Live filesystem observation on top of watchdog. Events are filtered through
the chain and handed to a small executor so the observer thread never
blocks on embedding. At most one watcher is active per WatcherManager.
"""

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from kindex.configs import get_logger
from kindex.exceptions import WatcherError
from kindex.filters.base import FilterChain, is_within
from kindex.watching.handler import FileChangeHandler

logger = get_logger("watching.watcher")

STOP_TIMEOUT = 5.0


class _EventBridge(FileSystemEventHandler):
    """Forwards watchdog callbacks to the owning FileWatcher."""

    def __init__(self, watcher: "FileWatcher"):
        super().__init__()
        self.watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        self.watcher.dispatch("created", event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self.watcher.dispatch("modified", event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self.watcher.dispatch("deleted", event)

    def on_moved(self, event: FileSystemEvent) -> None:
        self.watcher.dispatch("moved", event)


class FileWatcher:
    """
    Watches one or more folder roots recursively.

    Args:
        roots: Directories to watch
        handler: Applies events to the index
        chain: Filter chain deciding which paths matter
        max_workers: Threads processing events
    """

    def __init__(
        self,
        roots: Iterable[str],
        handler: FileChangeHandler,
        chain: FilterChain,
        max_workers: int = 2,
    ):
        self.roots = [os.path.abspath(r) for r in roots]
        self.handler = handler
        self.chain = chain
        self.max_workers = max(1, max_workers)
        self._observer: Optional[Observer] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Schedule every existing root and start observing."""
        with self._lock:
            if self._running:
                return
            roots = [r for r in self.roots if os.path.isdir(r)]
            if not roots:
                raise WatcherError("No watchable directories", {"roots": self.roots})

            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="kindex-watch")
            observer = Observer()
            observer.daemon = True
            bridge = _EventBridge(self)
            for root in roots:
                observer.schedule(bridge, root, recursive=True)
            observer.start()
            self._observer = observer
            self._running = True
        logger.info(f"Watching {len(roots)} directories: {roots}")

    def stop(self) -> None:
        """Release watch handles even if events are still being processed."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            observer, self._observer = self._observer, None
            executor, self._executor = self._executor, None

        if observer is not None:
            observer.unschedule_all()
            observer.stop()
            observer.join(timeout=STOP_TIMEOUT)
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        logger.info(f"Stopped watching {self.roots}")

    def root_for(self, path: str) -> Optional[str]:
        """Deepest watched root containing ``path``."""
        matches = [r for r in self.roots if is_within(path, r)]
        return max(matches, key=len) if matches else None

    def dispatch(self, kind: str, event: FileSystemEvent) -> None:
        """Queue an event for processing (called on the observer thread)."""
        src_path = os.fsdecode(event.src_path)
        dest_path = os.fsdecode(event.dest_path) if getattr(event, "dest_path", None) else None
        root = self.root_for(src_path) or (self.root_for(dest_path) if dest_path else None)
        if root is None:
            return
        if kind == "modified" and event.is_directory:
            return

        with self._lock:
            executor = self._executor if self._running else None
            if executor is None:
                return
            try:
                executor.submit(self._process_safely, kind, event.is_directory, src_path, dest_path, root)
            except RuntimeError:
                # Executor shut down between the check and the submit
                return

    def _process_safely(self, kind: str, is_directory: bool, src_path: str, dest_path: Optional[str], root: str) -> None:
        try:
            self.process_event(kind, is_directory, src_path, dest_path, root)
        except Exception as e:
            logger.error(f"Failed to process {kind} event for {src_path}: {e}")

    def process_event(
        self,
        kind: str,
        is_directory: bool,
        src_path: str,
        dest_path: Optional[str],
        root: str,
    ) -> None:
        """Apply one event synchronously."""
        if os.path.basename(src_path) == ".gitignore" or (dest_path and os.path.basename(dest_path) == ".gitignore"):
            self.chain.invalidate()

        if kind == "deleted":
            self.handler.on_delete(src_path)
        elif kind == "moved":
            self.handler.on_moved(src_path, dest_path, root, is_directory)
        elif is_directory:
            if kind == "created" and self.chain.is_indexable(src_path, root):
                self.handler.on_directory_created(src_path, root)
        elif self.chain.is_indexable(src_path, root):
            self.handler.on_upsert(src_path)


class WatcherManager:
    """Owns the single active watcher; starting a new one stops the old one."""

    def __init__(self):
        self._lock = threading.Lock()
        self._active: Optional[FileWatcher] = None

    @property
    def active(self) -> Optional[FileWatcher]:
        with self._lock:
            return self._active

    def start(self, watcher: FileWatcher) -> None:
        with self._lock:
            if self._active is not None and self._active is not watcher:
                logger.info("Stopping previous watcher before starting a new one")
                self._active.stop()
                self._active = None
            watcher.start()
            self._active = watcher

    def stop(self) -> None:
        with self._lock:
            if self._active is not None:
                self._active.stop()
                self._active = None

    def stop_if(self, watcher: FileWatcher) -> None:
        """Stop ``watcher`` only if it is still the active one."""
        with self._lock:
            if self._active is watcher:
                watcher.stop()
                self._active = None


_default_manager: Optional[WatcherManager] = None
_default_manager_lock = threading.Lock()


def get_watcher_manager() -> WatcherManager:
    """Get the process-wide watcher manager."""
    global _default_manager
    with _default_manager_lock:
        if _default_manager is None:
            _default_manager = WatcherManager()
        return _default_manager
