"""
Kindex Storage Layer

Vector store (ChromaDB) and keyword store (BM25) adapters.
"""

from kindex.storage.bm25 import BM25KeywordStore, tokenize_code
from kindex.storage.chromadb import (
    ChromaVectorStore,
    collection_name_for,
    get_chroma_client,
    get_or_create_collection,
)

__all__ = [
    "BM25KeywordStore",
    "tokenize_code",
    "ChromaVectorStore",
    "collection_name_for",
    "get_chroma_client",
    "get_or_create_collection",
]
