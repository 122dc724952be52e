"""
Project Indexer

Facade over the coordinators of one project: index every source, in the
foreground or on a daemon thread, watch folders, clear, close.
"""

import threading
from typing import Any, Optional

from kindex.capabilities import EmbeddingCapability, UrlContentExtractor
from kindex.configs import get_full_config, get_logger, get_project_state_dir, setup_logging
from kindex.indexing.coordinator import IndexingCoordinator, IndexingDependencies
from kindex.indexing.factory import create_coordinator
from kindex.indexing.progress import IndexProgress
from kindex.sources import FolderSource, KnowledgeSource, merge_sources
from kindex.state import IndexStateStore

logger = get_logger("indexing.project")

KEYWORD_STORE_FILE = "keywords.json"


class ProjectIndexer:
    """
    All knowledge sources of one project.

    Sources of the same kind are merged so each state namespace has exactly
    one coordinator.
    """

    def __init__(self, project_id: str, sources: list[KnowledgeSource], deps: IndexingDependencies):
        self.project_id = project_id
        self.deps = deps
        self.coordinators: list[IndexingCoordinator] = [
            create_coordinator(project_id, source, deps) for source in merge_sources(sources)
        ]
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self.last_result: Optional[bool] = None

    @classmethod
    def create(
        cls,
        project_id: str,
        sources: list[KnowledgeSource],
        embedder: Optional[EmbeddingCapability] = None,
        url_extractor: Optional[UrlContentExtractor] = None,
        config: Optional[dict[str, Any]] = None,
        db_path: Optional[str] = None,
    ) -> "ProjectIndexer":
        """
        Wire a project with the default ChromaDB and BM25 stores.

        Also applies the ``logging`` config section to the kindex loggers.

        Args:
            project_id: Project identifier
            sources: Knowledge sources
            embedder: Embedding capability (defaults to ChromaDB's MiniLM)
            url_extractor: Needed when a URL source is present
            config: Runtime config (defaults to get_full_config())
            db_path: ChromaDB directory (defaults to <data>/db)
        """
        from kindex.embedding import ChromaDefaultEmbedding
        from kindex.storage import BM25KeywordStore, ChromaVectorStore, get_chroma_client

        config = config if config is not None else get_full_config()
        setup_logging(config=config)
        deps = IndexingDependencies(
            embedder=embedder or ChromaDefaultEmbedding(),
            vector_store=ChromaVectorStore.for_project(get_chroma_client(db_path), project_id),
            keyword_store=BM25KeywordStore(get_project_state_dir(project_id) / KEYWORD_STORE_FILE),
            state_store=IndexStateStore(project_id),
            config=config,
            url_extractor=url_extractor,
        )
        return cls(project_id, sources, deps)

    @property
    def progress(self) -> dict[str, IndexProgress]:
        """Current progress per source kind."""
        return {c.source_kind: c.progress for c in self.coordinators}

    def index_all(self) -> bool:
        """Run every coordinator (all of them, even after a failure)."""
        results = [c.start_indexing() for c in self.coordinators]
        self.last_result = all(results)
        return self.last_result

    def start_background(self) -> bool:
        """
        Run ``index_all`` on a daemon thread.

        Returns:
            False if a background run is already in progress
        """
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return False
            self._thread = threading.Thread(
                target=self._run_background,
                name=f"kindex-project-{self.project_id}",
                daemon=True,
            )
            self._thread.start()
        logger.info(f"Background indexing started for {self.project_id}")
        return True

    def _run_background(self) -> None:
        try:
            self.index_all()
        except Exception as e:
            logger.error(f"Background indexing failed for {self.project_id}: {e}")
            self.last_result = False

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the background run. True if it finished."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        return not thread.is_alive()

    def start_watching(self) -> bool:
        """Watch the project's folder source, replacing any active watcher."""
        for coordinator in self.coordinators:
            if isinstance(coordinator.source, FolderSource):
                return coordinator.start_watching()
        return False

    def stop_watching(self) -> None:
        for coordinator in self.coordinators:
            coordinator.stop_watching()

    def clear_all(self) -> bool:
        """
        Wipe both stores and all state so the next run re-indexes everything.

        When a source cannot be cleared its mappings are kept, so a later
        clear can still find the segments that were left behind.

        Returns:
            True if every source was cleared
        """
        results = [c.clear_all() for c in self.coordinators]
        if not all(results):
            logger.error(f"Could not clear every source of project {self.project_id}, keeping index state")
            return False
        try:
            self.deps.keyword_store.clear()
        except Exception as e:
            logger.error(f"Failed to clear keyword store for {self.project_id}: {e}")
            return False
        self.deps.state_store.clear_project()
        logger.info(f"Cleared index for project {self.project_id}")
        return True

    def close(self) -> None:
        for coordinator in self.coordinators:
            coordinator.close()
        self.wait(timeout=5)
