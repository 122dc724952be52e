"""
Indexing Coordinators

One coordinator per knowledge source. A run enumerates resources, diffs
their content hashes against the recorded state, removes what disappeared,
and re-indexes what was added or changed, reporting progress as it goes.

Hashing and extraction run on a shared thread pool with a bounded number of
tasks in flight; only the coordinator thread feeds the hybrid indexer.
"""

import os
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Generator, Iterable, Optional, TypeVar

from kindex.capabilities import (
    ContentExtractor,
    EmbeddingCapability,
    ExtractedUrlContent,
    KeywordStore,
    UrlContentExtractor,
    VectorStore,
)
from kindex.configs import get_full_config, get_logger
from kindex.embedding import RetryingEmbedder
from kindex.exceptions import BatchCommitError, ConfigurationError, IngestError
from kindex.filters.base import FilterChain
from kindex.filters.builtin import build_filter_chain
from kindex.indexing.hybrid import HybridIndexer
from kindex.indexing.progress import IndexProgress, ProgressListener, ProgressTracker
from kindex.ingest.chunker import ChunkSizing
from kindex.ingest.extractor import LocalFileContentExtractor
from kindex.ingest.processor import Chunk, ResourceContentProcessor
from kindex.ingest.walker import compute_file_hash, compute_text_hash, iter_file_list, walk_folder
from kindex.sources import FileListSource, FolderSource, KnowledgeSource, UrlListSource
from kindex.state import IndexedFileRecord, IndexStateStore, detect_changes, get_project_lock

logger = get_logger("indexing.coordinator")

T = TypeVar("T")
R = TypeVar("R")

CANCELLED = "cancelled"


@dataclass
class IndexingDependencies:
    """Collaborators shared by the coordinators of one project."""

    embedder: EmbeddingCapability
    vector_store: VectorStore
    keyword_store: KeywordStore
    state_store: IndexStateStore
    config: dict[str, Any] = field(default_factory=get_full_config)
    chain: Optional[FilterChain] = None
    extractor: Optional[ContentExtractor] = None
    url_extractor: Optional[UrlContentExtractor] = None
    watcher_manager: Any = None


def snapshot_file(path: str) -> Optional[IndexedFileRecord]:
    """Hash and stat a file. None if it vanished or cannot be read."""
    try:
        stat = os.stat(path)
        digest = compute_file_hash(path)
    except OSError as e:
        logger.debug(f"Cannot fingerprint {path}: {e}")
        return None
    return IndexedFileRecord(path=path, content_hash=digest, last_modified=stat.st_mtime, size_bytes=stat.st_size)


class IndexingCoordinator(ABC):
    """
    Lifecycle shared by every source kind.

    Status moves Idle -> Indexing -> Ready | Failed, and back to Indexing on
    the next run. Nothing raises past ``start_indexing``; failures end up in
    ``progress.error``.
    """

    def __init__(self, project_id: str, source: KnowledgeSource, deps: IndexingDependencies):
        self.project_id = project_id
        self.source = source
        self.source_kind = source.source_kind
        self.deps = deps
        self.config = deps.config
        self.state_store = deps.state_store

        indexing = self.config.get("indexing", {})
        self.tracker = ProgressTracker(interval=indexing.get("progress_interval", 10))
        self.threads = max(1, int(indexing.get("concurrent_indexing_threads", 10)))
        self.window = self.threads * 2

        if isinstance(deps.embedder, RetryingEmbedder):
            self.embedder = deps.embedder
        else:
            self.embedder = RetryingEmbedder.from_config(deps.embedder, self.config)
        self.sizing = ChunkSizing.from_config(self.embedder.token_limit(), self.config)
        self.processor = ResourceContentProcessor(deps.extractor or LocalFileContentExtractor(), self.sizing)
        self.indexer = HybridIndexer(
            project_id,
            self.source_kind,
            self.embedder,
            deps.vector_store,
            deps.keyword_store,
            self.state_store,
            batch_size=indexing.get("batch_size", 50),
            on_committed=self._on_committed,
        )

        self._pending_records: dict[str, IndexedFileRecord] = {}
        self._cancel = threading.Event()
        self._run_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._closed = False
        self._executor = ThreadPoolExecutor(
            max_workers=self.threads,
            thread_name_prefix=f"kindex-{self.source_kind}",
        )

    # --- progress ---

    @property
    def progress(self) -> IndexProgress:
        return self.tracker.current

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self.tracker.add_listener(listener)

    def remove_progress_listener(self, listener: ProgressListener) -> None:
        self.tracker.remove_listener(listener)

    @property
    def closed(self) -> bool:
        return self._closed

    # --- lifecycle ---

    def start_indexing(self) -> bool:
        """
        Run one incremental indexing pass.

        Returns:
            True if the run reached Ready
        """
        if self._closed:
            logger.warning(f"Coordinator for {self.project_id}/{self.source_kind} is closed")
            return False
        if not self._run_lock.acquire(blocking=False):
            logger.warning(f"Indexing already running for {self.project_id}/{self.source_kind}")
            return False

        try:
            self.tracker.start()
            self.indexer.reset()
            self._pending_records.clear()
            started = time.time()
            try:
                self._run()
            except Exception as e:
                if self._cancel.is_set():
                    # close() interrupted a pool wait; keep what was queued
                    self._flush_cancelled()
                    self.tracker.fail(CANCELLED)
                    return False
                logger.error(f"Indexing failed for {self.project_id}/{self.source_kind}: {e}")
                self.tracker.fail(str(e))
                return False

            if self._cancel.is_set():
                logger.info(f"Indexing cancelled for {self.project_id}/{self.source_kind}")
                self.tracker.fail(CANCELLED)
                return False

            self.tracker.finish()
            p = self.tracker.current
            logger.info(
                f"Indexed {self.project_id}/{self.source_kind}: {p.processed_files}/{p.total_files} files, "
                f"{p.skipped_files} skipped, {p.segments_indexed} segments in {time.time() - started:.1f}s"
            )
            return True
        finally:
            self._run_lock.release()

    @abstractmethod
    def _run(self) -> None:
        """Perform the run. Raise to fail it."""
        pass

    def start_watching(self, scope: Optional[Iterable[str]] = None) -> bool:
        """Begin live updates. Unsupported source kinds return False."""
        logger.info(f"Watching is not supported for {self.source_kind} sources")
        return False

    def stop_watching(self) -> None:
        pass

    def clear_all(self) -> bool:
        """Remove this source's segments from both stores and forget its state."""
        with self.state_store.transaction():
            ok = self.indexer.clear_source()
            if ok:
                self.state_store.clear_source(self.source_kind)
        self.tracker.reset()
        return ok

    def close(self) -> None:
        """
        Cancel any run, flush what was already queued, release threads.

        Safe to call repeatedly and from another thread mid-run.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._cancel.set()
        self.stop_watching()
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.debug(f"Closed coordinator for {self.project_id}/{self.source_kind}")

    # --- shared pipeline ---

    def _bounded_map(self, fn: Callable[[T], R], items: Iterable[T]) -> Generator[tuple[T, R], None, None]:
        """
        Run ``fn`` over ``items`` on the pool, yielding results in input order.

        At most ``self.window`` tasks are in flight; items are pulled lazily.
        """
        in_flight: deque[tuple[T, Future]] = deque()
        iterator = iter(items)
        exhausted = False
        while True:
            while not exhausted and len(in_flight) < self.window and not self._cancel.is_set():
                try:
                    item = next(iterator)
                except StopIteration:
                    exhausted = True
                    break
                in_flight.append((item, self._executor.submit(fn, item)))
            if not in_flight:
                return
            item, future = in_flight.popleft()
            if self._cancel.is_set():
                future.cancel()
                continue
            yield item, future.result()

    def _on_committed(self, path: str, segment_count: int) -> None:
        record = self._pending_records.pop(path, None)
        if record is not None:
            self.state_store.upsert_record(self.source_kind, record)
        self.tracker.add_segments(segment_count)

    def _index_resource(self, key: str, chunks: Optional[list[Chunk]], record: IndexedFileRecord) -> None:
        """Replace the segments of one resource. Raises on store failures."""
        # Old segments go first, including leftovers of an interrupted run
        if not self.indexer.remove_file(key):
            raise IngestError(f"Failed to remove old segments for {key}: {self.indexer.last_error}")

        if not chunks:
            # Unsupported or empty: remember the hash so it is not re-read
            self.state_store.upsert_record(self.source_kind, record)
            self.tracker.file_done(skipped=True)
            return

        self._pending_records[key] = record
        self.indexer.expect(key, len(chunks))
        for chunk in chunks:
            if not self.indexer.add_to_batch(chunk, key):
                raise BatchCommitError(f"Batch commit failed: {self.indexer.last_error}")
        self.tracker.file_done()

    def _remove_resource(self, key: str) -> None:
        if not self.indexer.remove_file(key):
            raise IngestError(f"Failed to remove segments for {key}: {self.indexer.last_error}")
        self.state_store.remove_record(self.source_kind, key)

    def _finish_batches(self) -> None:
        if not self.indexer.flush_remaining():
            raise BatchCommitError(f"Batch commit failed: {self.indexer.last_error}")

    def _flush_cancelled(self) -> None:
        if not self.indexer.flush_remaining():
            logger.warning(
                f"Dropped queued segments of cancelled run {self.project_id}/{self.source_kind}: "
                f"{self.indexer.last_error}"
            )


class LocalFilesIndexingCoordinator(IndexingCoordinator):
    """Coordinator for folder trees and explicit file lists."""

    def __init__(self, project_id: str, source: KnowledgeSource, deps: IndexingDependencies):
        if not isinstance(source, (FolderSource, FileListSource)):
            raise ConfigurationError(f"Local files coordinator cannot index {type(source).__name__}")
        super().__init__(project_id, source, deps)
        self.chain = deps.chain or build_filter_chain(self.config)
        self._watcher = None

    def _enumerate(self) -> Generator[str, None, None]:
        if isinstance(self.source, FolderSource):
            for root in self.source.roots:
                for path in walk_folder(root, self.chain):
                    yield str(path)
        else:
            for path in iter_file_list(self.source.paths, self.chain):
                yield str(path)

    def _run(self) -> None:
        previous = self.state_store.load_previous_state(self.source_kind)

        # Phase 1: stream candidates and fingerprint them
        current: dict[str, str] = {}
        records: dict[str, IndexedFileRecord] = {}
        for path, record in self._bounded_map(snapshot_file, self._enumerate()):
            if record is None:
                continue
            current[path] = record.content_hash
            records[path] = record
            self.tracker.set_total(len(current))
        if self._cancel.is_set():
            return

        # Phase 2: diff against the last run
        changes = detect_changes(previous, current)
        logger.info(
            f"{self.project_id}/{self.source_kind}: {len(changes.to_add)} added, "
            f"{len(changes.to_update)} updated, {len(changes.to_remove)} removed, {len(current)} total"
        )

        changed = set(changes.to_add) | set(changes.to_update)
        for path in current:
            if path not in changed:
                self.tracker.file_done()

        # Phase 3: apply, holding the project writer lock against the watcher
        with get_project_lock(self.project_id):
            for path in changes.to_remove:
                if self._cancel.is_set():
                    break
                self._remove_resource(path)

            work = changes.to_add + changes.to_update
            for path, chunks in self._bounded_map(self.processor.process_file, work):
                if self._cancel.is_set():
                    break
                self._index_resource(path, chunks, records[path])

            self._finish_batches()

    # --- watching ---

    def start_watching(self, scope: Optional[Iterable[str]] = None) -> bool:
        """
        Watch the folder roots (or ``scope``) for changes.

        Only folder sources are watched; file lists return False.
        """
        if not isinstance(self.source, FolderSource):
            logger.info("Watching is only supported for folder sources")
            return False
        if self._closed:
            return False

        from kindex.watching.handler import FileChangeHandler
        from kindex.watching.watcher import FileWatcher, get_watcher_manager

        roots = [os.path.abspath(r) for r in (scope or self.source.roots)]
        handler = FileChangeHandler(
            project_id=self.project_id,
            source_kind=self.source_kind,
            processor=self.processor,
            embedder=self.embedder,
            vector_store=self.deps.vector_store,
            keyword_store=self.deps.keyword_store,
            state_store=self.state_store,
            chain=self.chain,
            batch_size=self.indexer.batch_size,
        )
        watcher = FileWatcher(
            roots,
            handler,
            self.chain,
            max_workers=self.config.get("watcher", {}).get("max_workers", 2),
        )
        manager = self.deps.watcher_manager or get_watcher_manager()
        manager.start(watcher)
        self._watcher = watcher
        return True

    def stop_watching(self) -> None:
        watcher = self._watcher
        if watcher is None:
            return
        from kindex.watching.watcher import get_watcher_manager

        manager = self.deps.watcher_manager or get_watcher_manager()
        manager.stop_if(watcher)
        self._watcher = None


class UrlIndexingCoordinator(IndexingCoordinator):
    """Coordinator for remote documents. Content hash drives change detection."""

    def __init__(self, project_id: str, source: KnowledgeSource, deps: IndexingDependencies):
        if not isinstance(source, UrlListSource):
            raise ConfigurationError(f"URL coordinator cannot index {type(source).__name__}")
        if deps.url_extractor is None:
            raise ConfigurationError("URL sources need a URL content extractor")
        super().__init__(project_id, source, deps)
        self.url_extractor = deps.url_extractor

    def _fetch(self, url: str) -> Optional[ExtractedUrlContent]:
        try:
            content = self.url_extractor.fetch(url)
        except Exception as e:
            logger.warning(f"Failed to fetch {url}: {e}")
            return None
        if content is None or not content.content or not content.content.strip():
            return None
        return content

    def _run(self) -> None:
        previous = self.state_store.load_previous_state(self.source_kind)
        urls = list(dict.fromkeys(u.strip() for u in self.source.urls if u and u.strip()))
        self.tracker.set_total(len(urls))

        current: dict[str, str] = {}
        fetched: dict[str, ExtractedUrlContent] = {}
        for url, content in self._bounded_map(self._fetch, urls):
            if content is None:
                # Unreachable: keep whatever was indexed before
                if url in previous:
                    current[url] = previous[url]
                self.tracker.file_done(skipped=True)
                continue
            current[url] = compute_text_hash(content.content)
            fetched[url] = content
        if self._cancel.is_set():
            return

        changes = detect_changes(previous, current)
        changed = set(changes.to_add) | set(changes.to_update)
        for url in fetched:
            if url not in changed:
                self.tracker.file_done()

        with get_project_lock(self.project_id):
            for url in changes.to_remove:
                if self._cancel.is_set():
                    break
                self._remove_resource(url)

            for url in changes.to_add + changes.to_update:
                if self._cancel.is_set():
                    break
                content = fetched[url]
                record = IndexedFileRecord(
                    path=url,
                    content_hash=current[url],
                    last_modified=time.time(),
                    size_bytes=len(content.content.encode("utf-8")),
                )
                self._index_resource(url, self.processor.process_web(url, content), record)

            self._finish_batches()
