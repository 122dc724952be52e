"""
File Change Handler

Applies single filesystem events to the index: re-index a created or
modified file, drop a deleted one, pick up a new directory subtree.
"""

import os
from typing import Optional

from kindex.capabilities import EmbeddingCapability, KeywordStore, VectorStore
from kindex.configs import get_logger
from kindex.filters.base import FilterChain
from kindex.indexing.coordinator import snapshot_file
from kindex.indexing.hybrid import HybridIndexer
from kindex.ingest.processor import ResourceContentProcessor
from kindex.ingest.walker import walk_subtree
from kindex.state import IndexedFileRecord, IndexStateStore, get_project_lock

logger = get_logger("watching.handler")


class FileChangeHandler:
    """
    Event sink for one watched folder source.

    Events are applied one at a time under the project writer lock. A file's
    state record is written only after its new segments are committed to both
    stores.
    """

    def __init__(
        self,
        project_id: str,
        source_kind: str,
        processor: ResourceContentProcessor,
        embedder: EmbeddingCapability,
        vector_store: VectorStore,
        keyword_store: KeywordStore,
        state_store: IndexStateStore,
        chain: FilterChain,
        batch_size: int = 50,
    ):
        self.project_id = project_id
        self.source_kind = source_kind
        self.processor = processor
        self.state_store = state_store
        self.chain = chain
        self.indexer = HybridIndexer(
            project_id,
            source_kind,
            embedder,
            vector_store,
            keyword_store,
            state_store,
            batch_size=batch_size,
            on_committed=self._on_committed,
        )
        # Project writer lock, shared with the coordinators
        self._lock = get_project_lock(project_id)
        self._pending_records: dict[str, IndexedFileRecord] = {}

    def _on_committed(self, path: str, segment_count: int) -> None:
        record = self._pending_records.pop(path, None)
        if record is not None:
            self.state_store.upsert_record(self.source_kind, record)

    def on_upsert(self, path: str) -> bool:
        """
        Index a created or modified file.

        Returns:
            True when the index reflects the file (including "unchanged")
        """
        key = os.path.abspath(path)
        with self._lock:
            record = snapshot_file(key)
            if record is None:
                return False

            previous = self.state_store.get_record(self.source_kind, key)
            if previous is not None and previous.content_hash == record.content_hash:
                logger.debug(f"Unchanged, skipping: {key}")
                return True

            chunks = self.processor.process_file(key)

            if not self.indexer.remove_file(key):
                return False

            if not chunks:
                self.state_store.upsert_record(self.source_kind, record)
                return True

            self._pending_records[key] = record
            self.indexer.expect(key, len(chunks))
            for chunk in chunks:
                if not self.indexer.add_to_batch(chunk, key):
                    break
            ok = self.indexer.flush_remaining() and key not in self._pending_records
            if not ok:
                self._pending_records.pop(key, None)
                logger.warning(f"Failed to re-index {key}: {self.indexer.last_error}")
            else:
                logger.info(f"Re-indexed {key} ({len(chunks)} segments)")
            return ok

    def on_delete(self, path: str) -> int:
        """
        Drop a deleted file, or every recorded file under a deleted directory.

        Returns:
            Number of resources removed
        """
        key = os.path.abspath(path)
        removed = 0
        with self._lock:
            for recorded in self.state_store.paths_under(self.source_kind, key):
                if self.indexer.remove_file(recorded):
                    self.state_store.remove_record(self.source_kind, recorded)
                    removed += 1
        if removed:
            logger.info(f"Removed {removed} resources under {key}")
        return removed

    def on_directory_created(self, directory: str, root: str) -> int:
        """Index every indexable file of a new subtree."""
        indexed = 0
        for path in walk_subtree(directory, root, self.chain):
            if self.on_upsert(str(path)):
                indexed += 1
        return indexed

    def on_moved(self, src_path: str, dest_path: Optional[str], root: str, is_directory: bool) -> None:
        """A move is a delete of the source plus a create of the destination."""
        self.on_delete(src_path)
        if not dest_path or not self.chain.is_indexable(dest_path, root):
            return
        if is_directory:
            self.on_directory_created(dest_path, root)
        else:
            self.on_upsert(dest_path)
