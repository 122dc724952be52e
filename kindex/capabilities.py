"""
Capability Interfaces

Abstract collaborators consumed by the indexing core: the embedding model,
the two stores, and the content extractors. Concrete adapters live in
kindex.embedding, kindex.storage and kindex.ingest.extractor.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Segment:
    """One embedded chunk as written to the stores."""

    segment_id: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    embedding: Optional[list[float]] = None


@dataclass
class ExtractedUrlContent:
    """Text fetched from a remote document."""

    content: str
    title: Optional[str] = None
    content_type: Optional[str] = None


class EmbeddingCapability(ABC):
    """Turns text into vectors."""

    @abstractmethod
    def token_limit(self) -> int:
        """Maximum number of tokens the model accepts per input."""
        pass

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        pass

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts. Override when the model supports batching."""
        return [self.embed(text) for text in texts]


class VectorStore(ABC):
    """Similarity-search store keyed by segment ID."""

    @abstractmethod
    def add(self, segments: list[Segment]) -> None:
        """Write segments (with embeddings) to the store."""
        pass

    @abstractmethod
    def remove_all(self, ids: list[str]) -> None:
        """Delete segments by ID. Unknown IDs are ignored."""
        pass


class KeywordStore(ABC):
    """Lexical-search store keyed by segment ID."""

    @abstractmethod
    def index(self, segments: list[Segment]) -> None:
        """Add segment texts to the keyword index."""
        pass

    @abstractmethod
    def remove_all(self, ids: list[str]) -> None:
        """Delete segments by ID. Unknown IDs are ignored."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Drop every segment."""
        pass


class ContentExtractor(ABC):
    """Extracts text from local files."""

    @abstractmethod
    def extract(self, path: str) -> Optional[str]:
        """Return the text of ``path`` or None when unsupported or unreadable."""
        pass

    def is_line_tracked(self, path: str) -> bool:
        """Whether chunk line numbers map back onto the file."""
        return False


class UrlContentExtractor(ABC):
    """Fetches and renders remote documents."""

    @abstractmethod
    def fetch(self, url: str) -> Optional[ExtractedUrlContent]:
        """Return the document text or None when unreachable or empty."""
        pass
