"""
Pytest fixtures for Kindex tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add project root to path for kindex imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from kindex.capabilities import (  # noqa: E402
    EmbeddingCapability,
    ExtractedUrlContent,
    KeywordStore,
    Segment,
    UrlContentExtractor,
    VectorStore,
)
from kindex.configs import DEFAULT_CONFIG, merge_config  # noqa: E402
from kindex.indexing.coordinator import IndexingDependencies  # noqa: E402
from kindex.state import IndexStateStore  # noqa: E402


# =============================================================================
# Environment
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path_factory, monkeypatch):
    """Point HOME, the data dir and git's global config at throwaway dirs."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("KINDEX_DATA_PATH", str(home / ".kindex"))
    for name in list(os.environ):
        if name.startswith("KINDEX_") and name != "KINDEX_DATA_PATH":
            monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def temp_chroma_client():
    """Create a temporary ChromaDB client for testing."""
    import chromadb
    from chromadb.config import Settings

    with tempfile.TemporaryDirectory() as tmpdir:
        client = chromadb.PersistentClient(
            path=tmpdir,
            settings=Settings(anonymized_telemetry=False),
        )
        yield client


# =============================================================================
# In-memory capabilities
# =============================================================================


class CountingEmbedder(EmbeddingCapability):
    """Deterministic embedder that counts what it was asked to embed."""

    def __init__(self, limit: int = 2048):
        self.limit = limit
        self.batch_calls = 0
        self.embedded_texts: list[str] = []

    def token_limit(self) -> int:
        return self.limit

    def embed(self, text: str) -> list[float]:
        return [float(len(text)), 1.0, 0.5]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls += 1
        self.embedded_texts.extend(texts)
        return [self.embed(t) for t in texts]


class FailingEmbedder(CountingEmbedder):
    """Embedder that fails the first ``failures`` batch calls."""

    def __init__(self, failures: int = 10**6, limit: int = 2048):
        super().__init__(limit)
        self.failures = failures

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls += 1
        if self.batch_calls <= self.failures:
            raise ConnectionError("embedding service unavailable")
        self.embedded_texts.extend(texts)
        return [self.embed(t) for t in texts]


class InMemoryVectorStore(VectorStore):
    def __init__(self):
        self.segments: dict[str, Segment] = {}
        self.fail_on_add = False

    def add(self, segments: list[Segment]) -> None:
        if self.fail_on_add:
            raise RuntimeError("vector store down")
        for segment in segments:
            self.segments[segment.segment_id] = segment

    def remove_all(self, ids: list[str]) -> None:
        for segment_id in ids:
            self.segments.pop(segment_id, None)

    def ids_for(self, file_path: str) -> set[str]:
        return {s.segment_id for s in self.segments.values() if s.metadata.get("file_path") == file_path}


class InMemoryKeywordStore(KeywordStore):
    def __init__(self):
        self.texts: dict[str, str] = {}
        self.fail_on_index = False

    def index(self, segments: list[Segment]) -> None:
        if self.fail_on_index:
            raise RuntimeError("keyword store down")
        for segment in segments:
            self.texts[segment.segment_id] = segment.text

    def remove_all(self, ids: list[str]) -> None:
        for segment_id in ids:
            self.texts.pop(segment_id, None)

    def clear(self) -> None:
        self.texts.clear()


class FakeUrlExtractor(UrlContentExtractor):
    """Serves pages from a dict; missing URLs are unreachable."""

    def __init__(self, pages: dict[str, str] | None = None):
        self.pages = dict(pages or {})
        self.fetched: list[str] = []

    def fetch(self, url: str) -> ExtractedUrlContent | None:
        self.fetched.append(url)
        if url not in self.pages:
            raise ConnectionError(f"cannot reach {url}")
        return ExtractedUrlContent(content=self.pages[url], title=f"Title of {url}", content_type="text/html")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def test_config() -> dict:
    """Runtime config tuned for fast, deterministic tests."""
    return merge_config(
        DEFAULT_CONFIG,
        {
            "indexing": {"batch_size": 3, "progress_interval": 1, "concurrent_indexing_threads": 2},
            "filters": {"global_gitignore": False},
            "embedding": {"retry_attempts": 2, "retry_min_wait": 0, "retry_max_wait": 0},
        },
    )


@pytest.fixture
def embedder() -> CountingEmbedder:
    return CountingEmbedder()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def keyword_store() -> InMemoryKeywordStore:
    return InMemoryKeywordStore()


@pytest.fixture
def state_store(temp_dir: Path) -> IndexStateStore:
    return IndexStateStore("test-project", state_dir=temp_dir / "state")


@pytest.fixture
def source_dir(temp_dir: Path) -> Path:
    """Empty folder used as an indexing root (sibling of the state dir)."""
    path = temp_dir / "src"
    path.mkdir()
    return path


@pytest.fixture
def deps(embedder, vector_store, keyword_store, state_store, test_config) -> IndexingDependencies:
    return IndexingDependencies(
        embedder=embedder,
        vector_store=vector_store,
        keyword_store=keyword_store,
        state_store=state_store,
        config=test_config,
    )


@pytest.fixture
def failing_embedder_cls():
    return FailingEmbedder


@pytest.fixture
def url_extractor_cls():
    return FakeUrlExtractor
