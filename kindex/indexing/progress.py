"""
Indexing Progress

Observable status of one coordinator. Only the owning coordinator mutates
it; listeners receive immutable snapshots.
"""

import threading
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Callable, Optional

from kindex.configs import get_logger

logger = get_logger("indexing.progress")


class IndexStatus(str, Enum):
    IDLE = "idle"
    INDEXING = "indexing"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class IndexProgress:
    """Snapshot of a coordinator's progress."""

    status: IndexStatus = IndexStatus.IDLE
    processed_files: int = 0
    total_files: int = 0
    skipped_files: int = 0
    segments_indexed: int = 0
    error: Optional[str] = None

    @property
    def percent(self) -> float:
        if self.total_files <= 0:
            return 0.0
        return round(self.processed_files / self.total_files * 100, 1)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["percent"] = self.percent
        return data


ProgressListener = Callable[[IndexProgress], None]


class ProgressTracker:
    """
    Holds the current IndexProgress and notifies listeners.

    Per-file updates only notify every ``interval`` processed files and on
    completion; status transitions always notify.
    """

    def __init__(self, interval: int = 10):
        self.interval = max(1, interval)
        self._lock = threading.Lock()
        self._progress = IndexProgress()
        self._listeners: list[ProgressListener] = []

    @property
    def current(self) -> IndexProgress:
        with self._lock:
            return self._progress

    def add_listener(self, listener: ProgressListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: ProgressListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, snapshot: IndexProgress) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"Progress listener failed: {e}")

    def start(self) -> None:
        with self._lock:
            self._progress = IndexProgress(status=IndexStatus.INDEXING)
            snapshot = self._progress
        self._notify(snapshot)

    def set_total(self, total: int) -> None:
        with self._lock:
            self._progress = replace(self._progress, total_files=total)

    def file_done(self, skipped: bool = False, segments: int = 0) -> None:
        """Count one processed file, notifying at the configured cadence."""
        with self._lock:
            p = self._progress
            self._progress = replace(
                p,
                processed_files=p.processed_files + 1,
                skipped_files=p.skipped_files + (1 if skipped else 0),
                segments_indexed=p.segments_indexed + segments,
            )
            snapshot = self._progress
        if snapshot.processed_files % self.interval == 0 or snapshot.processed_files == snapshot.total_files:
            self._notify(snapshot)

    def add_segments(self, count: int) -> None:
        with self._lock:
            self._progress = replace(self._progress, segments_indexed=self._progress.segments_indexed + count)

    def finish(self) -> None:
        with self._lock:
            self._progress = replace(self._progress, status=IndexStatus.READY, error=None)
            snapshot = self._progress
        self._notify(snapshot)

    def fail(self, error: str) -> None:
        with self._lock:
            self._progress = replace(self._progress, status=IndexStatus.FAILED, error=error)
            snapshot = self._progress
        self._notify(snapshot)

    def reset(self) -> None:
        with self._lock:
            self._progress = IndexProgress()
            snapshot = self._progress
        self._notify(snapshot)
