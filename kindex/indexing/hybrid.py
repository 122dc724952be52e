"""
Hybrid Indexer

Batches chunks, embeds them, and writes each batch to the vector store and
the keyword store before recording the file -> segment mappings. A batch is
one unit: mappings are persisted only after both store writes succeed, and a
file is reported committed only once all of its chunks are.
"""

import threading
import uuid
from typing import Callable, Optional

from kindex.capabilities import EmbeddingCapability, KeywordStore, Segment, VectorStore
from kindex.configs import get_logger
from kindex.ingest.processor import Chunk
from kindex.state import IndexStateStore, SegmentMapping

logger = get_logger("indexing.hybrid")

DEFAULT_BATCH_SIZE = 50

CommittedCallback = Callable[[str, int], None]  # (source_path, segment_count)


def make_segment_id(project_id: str, file_path: str, chunk_index: int) -> str:
    """Globally unique segment ID: project:path:chunk:uuid."""
    return f"{project_id}:{file_path}:{chunk_index}:{uuid.uuid4()}"


class HybridIndexer:
    """
    Dual-store writer for one project and source kind.

    Args:
        project_id: Owning project
        source_kind: State namespace ("folders", "files", "urls")
        embedder: Embedding capability (usually a RetryingEmbedder)
        vector_store: Vector store capability
        keyword_store: Keyword store capability
        state_store: Where segment mappings are recorded
        batch_size: Chunks per flush
        on_committed: Called with (path, segment_count) when every expected
            chunk of a path has been committed
    """

    def __init__(
        self,
        project_id: str,
        source_kind: str,
        embedder: EmbeddingCapability,
        vector_store: VectorStore,
        keyword_store: KeywordStore,
        state_store: IndexStateStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        on_committed: Optional[CommittedCallback] = None,
    ):
        if batch_size <= 0:
            logger.warning(f"Invalid batch size {batch_size}, using {DEFAULT_BATCH_SIZE}")
            batch_size = DEFAULT_BATCH_SIZE
        self.project_id = project_id
        self.source_kind = source_kind
        self.embedder = embedder
        self.vector_store = vector_store
        self.keyword_store = keyword_store
        self.state_store = state_store
        self.batch_size = batch_size
        self.on_committed = on_committed

        self._lock = threading.RLock()
        self._pending: list[tuple[Chunk, str]] = []
        self._remaining: dict[str, int] = {}
        self._committed: dict[str, int] = {}
        self._failed: set[str] = set()
        self._written: dict[str, set[str]] = {}  # segment IDs per path, current generation
        self.last_error: Optional[str] = None

    # --- batching ---

    def reset(self) -> None:
        """Drop pending work and failure state before a new run."""
        with self._lock:
            self._pending = []
            self._remaining.clear()
            self._committed.clear()
            self._failed.clear()
            self._written.clear()
            self.last_error = None

    def expect(self, source_path: str, chunk_count: int) -> None:
        """Announce how many chunks of ``source_path`` will be added."""
        with self._lock:
            self._failed.discard(source_path)
            self._remaining[source_path] = chunk_count
            self._committed[source_path] = 0
            self._written[source_path] = set()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def add_to_batch(self, chunk: Chunk, source_path: str) -> bool:
        """
        Queue a chunk, flushing when the batch is full.

        Returns:
            False if the chunk's file already failed or the triggered flush failed
        """
        with self._lock:
            if source_path in self._failed:
                return False
            self._pending.append((chunk, source_path))
            if len(self._pending) >= self.batch_size:
                return self.flush()
            return True

    def flush(self) -> bool:
        """
        Commit pending chunks: embed, vector store, keyword store, mappings.

        Returns:
            True on success (or nothing to do), False if the batch failed
        """
        with self._lock:
            if not self._pending:
                return True
            batch = self._pending
            self._pending = []

            try:
                vectors = self.embedder.embed_batch([chunk.text for chunk, _ in batch])

                segments: list[Segment] = []
                mappings: dict[str, list[SegmentMapping]] = {}
                for (chunk, path), vector in zip(batch, vectors):
                    segment_id = make_segment_id(self.project_id, path, chunk.chunk_index)
                    segments.append(Segment(segment_id, chunk.text, dict(chunk.metadata), vector))
                    mappings.setdefault(path, []).append(
                        SegmentMapping(self.project_id, path, segment_id, chunk.chunk_index)
                    )

                with self.state_store.transaction():
                    for path in mappings:
                        self._drop_foreign_segments(path)

                    self.vector_store.add(segments)
                    try:
                        self.keyword_store.index(segments)
                    except Exception:
                        # Keep the stores symmetric
                        self.vector_store.remove_all([s.segment_id for s in segments])
                        raise

                    for path, rows in mappings.items():
                        self.state_store.save_segments(self.source_kind, path, rows)
                        self._written.setdefault(path, set()).update(row.segment_id for row in rows)
                    for path, rows in mappings.items():
                        self._settle(path, len(rows))

            except Exception as e:
                self.last_error = str(e)
                paths = {path for _, path in batch}
                for path in paths:
                    self._failed.add(path)
                    self._remaining.pop(path, None)
                    self._committed.pop(path, None)
                    self._written.pop(path, None)
                # Later chunks of the failed files must not be committed either
                self._pending = [(c, p) for c, p in self._pending if p not in paths]
                logger.error(f"Batch of {len(batch)} chunks failed: {e}")
                return False

            logger.debug(f"Committed batch of {len(batch)} segments")
            return True

    def flush_remaining(self) -> bool:
        """Commit whatever is still pending."""
        return self.flush()

    def _settle(self, path: str, count: int) -> None:
        if path not in self._remaining:
            return
        self._remaining[path] -= count
        self._committed[path] = self._committed.get(path, 0) + count
        if self._remaining[path] <= 0:
            del self._remaining[path]
            total = self._committed.pop(path)
            self._written.pop(path, None)
            if self.on_committed is not None:
                self.on_committed(path, total)

    def _drop_foreign_segments(self, path: str) -> None:
        """
        Remove segments of ``path`` that this generation did not write.

        Another writer (the watcher, another coordinator) may have re-indexed
        the file between our ``remove_file`` and this commit. The newest
        generation replaces theirs instead of being appended to it.
        """
        written = self._written.get(path, set())
        current = self.state_store.get_segments(self.source_kind, path)
        foreign = [m.segment_id for m in current if m.segment_id not in written]
        if not foreign:
            return
        logger.warning(f"Replacing {len(foreign)} segments of {path} written by another indexer")
        self.vector_store.remove_all(foreign)
        self.keyword_store.remove_all(foreign)
        self.state_store.remove_segments(self.source_kind, path)
        self.state_store.save_segments(
            self.source_kind, path, [m for m in current if m.segment_id in written]
        )

    # --- removal ---

    def remove_file(self, source_path: str) -> bool:
        """
        Delete every segment of a resource from both stores, then its mappings.

        Returns:
            True on success
        """
        with self._lock:
            self._pending = [(c, p) for c, p in self._pending if p != source_path]
            self._remaining.pop(source_path, None)
            self._committed.pop(source_path, None)
            self._written.pop(source_path, None)
            try:
                ids = self.state_store.get_segment_ids(self.source_kind, source_path)
                if ids:
                    self.vector_store.remove_all(ids)
                    self.keyword_store.remove_all(ids)
                self.state_store.remove_segments(self.source_kind, source_path)
            except Exception as e:
                self.last_error = str(e)
                logger.error(f"Failed to remove segments for {source_path}: {e}")
                return False
            if ids:
                logger.debug(f"Removed {len(ids)} segments for {source_path}")
            return True

    def clear_source(self) -> bool:
        """Delete every recorded segment of this source kind from both stores."""
        with self._lock:
            self._pending = []
            self._remaining.clear()
            self._committed.clear()
            self._written.clear()
            try:
                ids = self.state_store.all_segment_ids(self.source_kind)
                if ids:
                    self.vector_store.remove_all(ids)
                    self.keyword_store.remove_all(ids)
            except Exception as e:
                self.last_error = str(e)
                logger.error(f"Failed to clear {self.source_kind} segments: {e}")
                return False
            logger.info(f"Removed {len(ids)} {self.source_kind} segments for project {self.project_id}")
            return True
