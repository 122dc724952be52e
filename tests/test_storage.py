"""
Tests for the ChromaDB vector store and the BM25 keyword store.
"""

import pytest

from kindex.capabilities import Segment
from kindex.exceptions import VectorStoreError
from kindex.storage import (
    BM25KeywordStore,
    ChromaVectorStore,
    collection_name_for,
    get_or_create_collection,
    tokenize_code,
)
from kindex.storage.chromadb import _clean_metadata


def segment(segment_id: str, text: str, vector=None, **metadata) -> Segment:
    return Segment(segment_id, text, metadata, vector if vector is not None else [0.1, 0.2, 0.3])


class TestChromaVectorStore:
    """Tests for the ChromaDB adapter."""

    def test_add_and_remove(self, temp_chroma_client):
        store = ChromaVectorStore.for_project(temp_chroma_client, "test-project")

        store.add([
            segment("s1", "alpha", file_path="/a.md", chunk_index=0),
            segment("s2", "beta", file_path="/b.md", chunk_index=0),
        ])

        assert store.count() == 2
        assert store.get_ids(where={"file_path": "/a.md"}) == ["s1"]

        store.remove_all(["s1", "unknown"])

        assert store.get_ids() == ["s2"]

    def test_empty_operations_are_noops(self, temp_chroma_client):
        store = ChromaVectorStore.for_project(temp_chroma_client, "test-project")

        store.add([])
        store.remove_all([])

        assert store.count() == 0

    def test_segments_need_embeddings(self, temp_chroma_client):
        store = ChromaVectorStore.for_project(temp_chroma_client, "test-project")

        with pytest.raises(VectorStoreError):
            store.add([Segment("s1", "no vector", {})])

    def test_collection_uses_cosine(self, temp_chroma_client):
        collection = get_or_create_collection(temp_chroma_client, "kindex_test")

        assert collection.metadata["hnsw:space"] == "cosine"

    def test_collection_names(self):
        assert collection_name_for("my project/main") == "kindex_my_project_main"
        assert len(collection_name_for("x" * 200)) <= 63
        assert collection_name_for("proj!!") == "kindex_proj"

    def test_clean_metadata(self):
        cleaned = _clean_metadata({"a": None, "b": 1, "c": "x", "d": ["l"], "e": True})

        assert cleaned == {"b": 1, "c": "x", "d": "['l']", "e": True}


class TestBM25KeywordStore:
    """Tests for the keyword store."""

    def test_search_ranks_matching_segment_first(self):
        store = BM25KeywordStore()
        store.index([
            segment("s1", "def calculate_total(items): return sum(items)"),
            segment("s2", "class UserRepository: pass"),
            segment("s3", "README about nothing in particular"),
        ])

        results = store.search("calculateTotal", top_k=2)

        assert results[0]["id"] == "s1"
        assert len(results) == 2

    def test_remove_and_clear(self):
        store = BM25KeywordStore()
        store.index([segment("s1", "alpha"), segment("s2", "beta")])

        store.remove_all(["s1", "missing"])
        assert store.count() == 1
        assert not store.contains("s1")

        store.clear()
        assert store.count() == 0
        assert store.search("beta") == []

    def test_persistence(self, temp_dir):
        path = temp_dir / "keywords.json"
        store = BM25KeywordStore(path)
        store.index([segment("s1", "persistent text", file_path="/a.md")])

        reopened = BM25KeywordStore(path)

        assert reopened.contains("s1")
        assert reopened.search("persistent")[0]["meta"] == {"file_path": "/a.md"}

    def test_corrupt_file_starts_empty(self, temp_dir):
        path = temp_dir / "keywords.json"
        path.write_text("garbage")

        assert BM25KeywordStore(path).count() == 0


class TestTokenizeCode:
    """Tests for code-aware tokenization."""

    def test_splits_code_identifiers(self):
        assert tokenize_code("getUserName(user_id)") == ["get", "user", "name", "user", "id"]

    def test_punctuation_and_case(self):
        assert tokenize_code("Hello, World!") == ["hello", "world"]
