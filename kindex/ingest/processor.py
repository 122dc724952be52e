"""
Resource Content Processor

Turns a file or fetched web document into ordered chunks carrying the
metadata stored alongside each segment.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlparse

from kindex.capabilities import ContentExtractor, ExtractedUrlContent
from kindex.configs import get_logger
from kindex.filters.base import file_extension
from kindex.ingest.chunker import ChunkSizing, chunk_text, chunk_text_with_line_numbers, detect_language

logger = get_logger("ingest.processor")


@dataclass
class Chunk:
    """One piece of a resource, in source order."""

    text: str
    chunk_index: int
    metadata: dict[str, Any] = field(default_factory=dict)
    start_line: Optional[int] = None
    end_line: Optional[int] = None


def metadata_path(path: str) -> str:
    """Absolute path with forward slashes, as stored in segment metadata."""
    return os.path.abspath(path).replace(os.sep, "/")


def derive_url_name(url: str, title: Optional[str] = None) -> str:
    """Display name for a URL: its title, else the last path segment, else the host."""
    if title and title.strip():
        return title.strip()
    parsed = urlparse(url)
    segment = parsed.path.rstrip("/").rsplit("/", 1)[-1]
    return segment or parsed.netloc or url


class ResourceContentProcessor:
    """
    Extracts and chunks resources.

    Args:
        extractor: Local file content extractor
        sizing: Chunk window derived from the embedding model
    """

    def __init__(self, extractor: ContentExtractor, sizing: ChunkSizing):
        self.extractor = extractor
        self.sizing = sizing

    def process_file(self, path: str) -> Optional[list[Chunk]]:
        """
        Extract and chunk a local file.

        Returns:
            Chunks in source order, or None when the file has no usable text
        """
        text = self.extractor.extract(path)
        if text is None:
            return None
        return self.chunk_file_text(path, text, self.extractor.is_line_tracked(path))

    def chunk_file_text(self, path: str, text: str, line_tracked: bool) -> list[Chunk]:
        file_name = os.path.basename(path)
        base = {
            "file_path": metadata_path(path),
            "file_name": file_name,
            "extension": file_extension(file_name),
        }
        language = detect_language(path)
        if language is not None:
            base["language"] = language.value

        chunks: list[Chunk] = []
        if line_tracked:
            pieces = chunk_text_with_line_numbers(text, self.sizing.chunk_size, self.sizing.overlap)
            for index, (piece, start_line, end_line) in enumerate(pieces):
                metadata = dict(base, chunk_index=index, start_line=start_line, end_line=end_line)
                chunks.append(Chunk(piece, index, metadata, start_line, end_line))
        else:
            for index, piece in enumerate(chunk_text(text, self.sizing.chunk_size, self.sizing.overlap)):
                chunks.append(Chunk(piece, index, dict(base, chunk_index=index)))

        for chunk in chunks:
            chunk.metadata["chunk_total"] = len(chunks)
        return chunks

    def process_web(self, url: str, content: ExtractedUrlContent) -> list[Chunk]:
        """Chunk fetched web content (no line tracking)."""
        base = {
            "source_type": "url",
            "url": url,
            "title": content.title or "",
            "file_name": derive_url_name(url, content.title),
            "content_type": content.content_type or "",
        }
        pieces = chunk_text(content.content, self.sizing.chunk_size, self.sizing.overlap)
        return [
            Chunk(piece, index, dict(base, chunk_index=index, chunk_total=len(pieces)))
            for index, piece in enumerate(pieces)
        ]
