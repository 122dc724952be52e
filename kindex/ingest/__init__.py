"""
Kindex Ingestion

Content extraction, chunking, and source walking.
"""

from kindex.ingest.chunker import (
    EXTENSION_TO_LANGUAGE,
    ChunkSizing,
    chunk_text,
    chunk_text_with_line_numbers,
    detect_language,
)
from kindex.ingest.extractor import LocalFileContentExtractor
from kindex.ingest.processor import Chunk, ResourceContentProcessor
from kindex.ingest.walker import (
    compute_file_hash,
    compute_text_hash,
    iter_file_list,
    walk_folder,
    walk_subtree,
)

__all__ = [
    # Walker
    "walk_folder",
    "walk_subtree",
    "iter_file_list",
    "compute_file_hash",
    "compute_text_hash",
    # Chunker
    "ChunkSizing",
    "chunk_text",
    "chunk_text_with_line_numbers",
    "detect_language",
    "EXTENSION_TO_LANGUAGE",
    # Extraction
    "LocalFileContentExtractor",
    # Processing
    "Chunk",
    "ResourceContentProcessor",
]
