"""
Kindex Index State

Durable per-project record of what has been indexed: one content hash per
resource and the segment IDs written for it, namespaced by source kind.
Drives delta sync between runs.
"""

import json
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Generator, Optional

from kindex.configs import get_logger, get_project_state_dir
from kindex.exceptions import StateError
from kindex.filters.base import is_within

logger = get_logger("state")

STATE_VERSION = 1
STATE_FILE_NAME = "index_state.json"


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class IndexedFileRecord:
    """Fingerprint of one indexed resource."""

    path: str
    content_hash: str
    last_modified: float = 0.0
    size_bytes: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "IndexedFileRecord":
        """Create from dictionary."""
        return cls(
            path=data["path"],
            content_hash=data["content_hash"],
            last_modified=float(data.get("last_modified", 0.0)),
            size_bytes=int(data.get("size_bytes", 0)),
        )


@dataclass(frozen=True)
class SegmentMapping:
    """One segment written for a resource."""

    project_id: str
    file_path: str
    segment_id: str
    chunk_index: int


@dataclass
class ChangeSet:
    """Result of diffing two hash maps."""

    to_add: list[str] = field(default_factory=list)
    to_update: list[str] = field(default_factory=list)
    to_remove: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_update or self.to_remove)


def detect_changes(previous: dict[str, str], current: dict[str, str]) -> ChangeSet:
    """
    Diff previous and current {path: content_hash} maps.

    Args:
        previous: Hashes recorded by the last run
        current: Hashes observed now

    Returns:
        ChangeSet with sorted path lists
    """
    return ChangeSet(
        to_add=sorted(path for path in current if path not in previous),
        to_update=sorted(path for path, digest in current.items() if path in previous and previous[path] != digest),
        to_remove=sorted(path for path in previous if path not in current),
    )


# =============================================================================
# Per-Project Locks
# =============================================================================

_project_locks: dict[str, threading.RLock] = {}
_project_locks_guard = threading.Lock()


def get_project_lock(project_id: str) -> threading.RLock:
    """Process-wide writer lock for one project (re-entrant)."""
    with _project_locks_guard:
        lock = _project_locks.get(project_id)
        if lock is None:
            lock = threading.RLock()
            _project_locks[project_id] = lock
        return lock


# =============================================================================
# Store
# =============================================================================


def _empty_state() -> dict[str, Any]:
    return {"version": STATE_VERSION, "sources": {}}


class IndexStateStore:
    """
    JSON-backed state for one project.

    The document lives at <data>/projects/<project>/index_state.json and is
    rewritten atomically after every mutation, or once at the end of a
    ``transaction()``. A missing or unreadable file is treated as empty state.
    """

    def __init__(self, project_id: str, state_dir: Optional[Path] = None):
        self.project_id = project_id
        self.state_dir = Path(state_dir) if state_dir is not None else get_project_state_dir(project_id)
        self.state_file = self.state_dir / STATE_FILE_NAME
        self._lock = get_project_lock(project_id)
        self._state: Optional[dict[str, Any]] = None
        self._stamp: Optional[tuple[int, int]] = None
        self._depth = 0
        self._dirty = False

    # --- persistence ---

    def _file_stamp(self) -> Optional[tuple[int, int]]:
        try:
            stat = os.stat(self.state_file)
        except OSError:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    def _load(self) -> dict[str, Any]:
        """Load state from disk."""
        if not self.state_file.exists():
            return _empty_state()
        try:
            content = self.state_file.read_text().strip()
            if not content:
                return _empty_state()
            state = json.loads(content)
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable index state {self.state_file}, starting fresh: {e}")
            return _empty_state()

        if not isinstance(state, dict) or not isinstance(state.get("sources"), dict):
            logger.warning(f"Malformed index state {self.state_file}, starting fresh")
            return _empty_state()
        return state

    def _save(self, state: dict[str, Any]) -> None:
        """Atomic save using temp file + os.replace()."""
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.state_dir), suffix=".tmp")
        except OSError as e:
            raise StateError(f"Cannot write index state: {e}", {"path": str(self.state_file)})
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(state, f, indent=2)
            os.replace(tmp_path, str(self.state_file))
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        self._stamp = self._file_stamp()

    def _document(self) -> dict[str, Any]:
        # Reload when another store instance rewrote the file
        stamp = self._file_stamp()
        if self._state is None or (not self._dirty and stamp != self._stamp):
            self._state = self._load()
            self._stamp = stamp
        return self._state

    def _commit(self) -> None:
        self._dirty = True
        if self._depth == 0:
            self._save(self._document())
            self._dirty = False

    def _section(self, source_kind: str, create: bool = False) -> dict[str, Any]:
        sources = self._document()["sources"]
        section = sources.get(source_kind)
        if section is None:
            section = {"files": {}, "segments": {}}
            if create:
                sources[source_kind] = section
        return section

    @contextmanager
    def transaction(self) -> Generator["IndexStateStore", None, None]:
        """Hold the project lock and write once when the outermost block exits."""
        with self._lock:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
                if self._depth == 0 and self._dirty:
                    self._save(self._document())
                    self._dirty = False

    # --- file records ---

    def load_previous_state(self, source_kind: str) -> dict[str, str]:
        """{path: content_hash} recorded for a source kind."""
        with self._lock:
            files = self._section(source_kind)["files"]
            return {path: data["content_hash"] for path, data in files.items()}

    def get_records(self, source_kind: str) -> dict[str, IndexedFileRecord]:
        with self._lock:
            files = self._section(source_kind)["files"]
            return {path: IndexedFileRecord.from_dict(data) for path, data in files.items()}

    def get_record(self, source_kind: str, path: str) -> Optional[IndexedFileRecord]:
        with self._lock:
            data = self._section(source_kind)["files"].get(path)
            return IndexedFileRecord.from_dict(data) if data else None

    def upsert_record(self, source_kind: str, record: IndexedFileRecord) -> None:
        with self._lock:
            self._section(source_kind, create=True)["files"][record.path] = record.to_dict()
            self._commit()

    def remove_record(self, source_kind: str, path: str) -> None:
        with self._lock:
            files = self._section(source_kind)["files"]
            if path in files:
                del files[path]
                self._commit()

    def paths_under(self, source_kind: str, directory: str) -> list[str]:
        """Recorded paths at or below ``directory`` (records and mappings)."""
        with self._lock:
            section = self._section(source_kind)
            known = set(section["files"]) | set(section["segments"])
            return sorted(path for path in known if is_within(path, directory))

    # --- segment mappings ---

    def save_segments(self, source_kind: str, path: str, mappings: list[SegmentMapping]) -> None:
        """Append segment mappings for a resource."""
        if not mappings:
            return
        with self._lock:
            rows = self._section(source_kind, create=True)["segments"].setdefault(path, [])
            rows.extend([m.segment_id, m.chunk_index] for m in mappings)
            self._commit()

    def get_segments(self, source_kind: str, path: str) -> list[SegmentMapping]:
        with self._lock:
            rows = self._section(source_kind)["segments"].get(path, [])
            return [SegmentMapping(self.project_id, path, row[0], int(row[1])) for row in rows]

    def get_segment_ids(self, source_kind: str, path: str) -> list[str]:
        return [m.segment_id for m in self.get_segments(source_kind, path)]

    def all_segment_ids(self, source_kind: str) -> list[str]:
        with self._lock:
            segments = self._section(source_kind)["segments"]
            return [row[0] for rows in segments.values() for row in rows]

    def remove_segments(self, source_kind: str, path: str) -> None:
        with self._lock:
            segments = self._section(source_kind)["segments"]
            if path in segments:
                del segments[path]
                self._commit()

    # --- clearing ---

    def clear_source(self, source_kind: str) -> None:
        """Forget everything recorded for one source kind."""
        with self._lock:
            sources = self._document()["sources"]
            if source_kind in sources:
                del sources[source_kind]
                self._commit()
        logger.info(f"Cleared {source_kind} state for project {self.project_id}")

    def clear_project(self) -> None:
        """Forget everything recorded for the project."""
        with self._lock:
            self._state = _empty_state()
            self._dirty = False
            if self.state_file.exists():
                self.state_file.unlink()
            self._stamp = None
        logger.info(f"Cleared index state for project {self.project_id}")
