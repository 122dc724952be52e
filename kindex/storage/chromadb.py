"""
ChromaDB Vector Store

Client and collection management plus the vector-store adapter used by the
hybrid indexer. Embeddings are computed by Kindex, so collections are
created without an embedding function.
"""

import os
import re
from typing import Any, Optional

import chromadb
from chromadb.config import Settings

from kindex.capabilities import Segment, VectorStore
from kindex.configs import get_default_db_path, get_logger
from kindex.exceptions import VectorStoreError

logger = get_logger("storage.chromadb")

COLLECTION_PREFIX = "kindex_"
MAX_COLLECTION_NAME = 63


def get_chroma_client(persist_dir: Optional[str] = None) -> chromadb.PersistentClient:
    """
    Initialize persistent ChromaDB client.

    Args:
        persist_dir: Directory for persistence (defaults to <data>/db)

    Returns:
        ChromaDB PersistentClient instance
    """
    path = os.path.expanduser(persist_dir or get_default_db_path())
    os.makedirs(path, exist_ok=True)
    return chromadb.PersistentClient(
        path=path,
        settings=Settings(anonymized_telemetry=False),
    )


def collection_name_for(project_id: str) -> str:
    """Collection name for a project, within ChromaDB's naming rules."""
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", project_id)
    name = (COLLECTION_PREFIX + cleaned)[:MAX_COLLECTION_NAME]
    name = re.sub(r"[^A-Za-z0-9]+$", "", name)
    return name if len(name) >= 3 else COLLECTION_PREFIX + "default"


def get_or_create_collection(client: chromadb.PersistentClient, name: str) -> chromadb.Collection:
    """
    Get or create a collection with cosine similarity.

    Args:
        client: ChromaDB client
        name: Collection name

    Returns:
        ChromaDB Collection
    """
    return client.get_or_create_collection(
        name=name,
        metadata={"hnsw:space": "cosine"},
        embedding_function=None,
    )


def _clean_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """ChromaDB only accepts non-null scalar metadata values."""
    cleaned = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            cleaned[key] = value
        else:
            cleaned[key] = str(value)
    return cleaned


class ChromaVectorStore(VectorStore):
    """Vector store backed by one ChromaDB collection."""

    def __init__(self, collection: chromadb.Collection):
        self.collection = collection

    @classmethod
    def for_project(cls, client: chromadb.PersistentClient, project_id: str) -> "ChromaVectorStore":
        return cls(get_or_create_collection(client, collection_name_for(project_id)))

    def add(self, segments: list[Segment]) -> None:
        if not segments:
            return
        missing = [s.segment_id for s in segments if s.embedding is None]
        if missing:
            raise VectorStoreError("Segments without embeddings", {"count": len(missing)})
        try:
            self.collection.add(
                ids=[s.segment_id for s in segments],
                embeddings=[s.embedding for s in segments],
                documents=[s.text for s in segments],
                metadatas=[_clean_metadata(s.metadata) for s in segments],
            )
        except Exception as e:
            raise VectorStoreError(f"ChromaDB add failed: {e}", {"count": len(segments)}) from e

    def remove_all(self, ids: list[str]) -> None:
        if not ids:
            return
        try:
            self.collection.delete(ids=list(ids))
        except Exception as e:
            raise VectorStoreError(f"ChromaDB delete failed: {e}", {"count": len(ids)}) from e

    def count(self) -> int:
        return self.collection.count()

    def get_ids(self, where: Optional[dict] = None) -> list[str]:
        """IDs stored in the collection, optionally filtered by metadata."""
        return self.collection.get(where=where, include=[])["ids"]
