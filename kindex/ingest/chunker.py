"""
Chunking

Chunk sizing derived from the embedding model's token budget, a sliding
character window, and a line-aware variant that remembers which source
lines each chunk spans.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from langchain_text_splitters import Language

from kindex.configs import CHARS_PER_TOKEN, DEFAULT_TOKEN_LIMIT, get_logger

logger = get_logger("ingest.chunker")

TOKEN_BUDGET_RATIO = 0.8
OVERLAP_RATIO = 0.05
MIN_OVERLAP = 50

DEFAULT_MIN_CHARS = 500
DEFAULT_MAX_CHARS = 4000
DEFAULT_MAX_OVERLAP = 200


# --- Chunk Sizing ---


@dataclass(frozen=True)
class ChunkSizing:
    """Window size and overlap in characters. Overlap is always below size."""

    chunk_size: int
    overlap: int

    @classmethod
    def from_token_limit(
        cls,
        token_limit: int,
        min_chars: int = DEFAULT_MIN_CHARS,
        max_chars: int = DEFAULT_MAX_CHARS,
        max_overlap: int = DEFAULT_MAX_OVERLAP,
    ) -> "ChunkSizing":
        """
        Size chunks to fit the model.

        size = clamp(int(0.8 * token_limit) * CHARS_PER_TOKEN, min_chars, max_chars)
        overlap = clamp(int(0.05 * size), 50, max_overlap), kept below size

        Invalid bounds are logged and replaced, never raised.

        Args:
            token_limit: Model input limit in tokens
            min_chars: Lower bound for the chunk size
            max_chars: Upper bound for the chunk size
            max_overlap: Upper bound for the overlap

        Returns:
            ChunkSizing
        """
        if token_limit <= 0:
            logger.warning(f"Invalid token limit {token_limit}, using {DEFAULT_TOKEN_LIMIT}")
            token_limit = DEFAULT_TOKEN_LIMIT
        if max_chars <= 0:
            logger.warning(f"Invalid max_chars_per_chunk {max_chars}, using {DEFAULT_MAX_CHARS}")
            max_chars = DEFAULT_MAX_CHARS
        if min_chars <= 0:
            logger.warning(f"Invalid min_chars_per_chunk {min_chars}, using {DEFAULT_MIN_CHARS}")
            min_chars = DEFAULT_MIN_CHARS
        if min_chars > max_chars:
            logger.warning(f"min_chars_per_chunk {min_chars} exceeds max {max_chars}, clamping")
            min_chars = max_chars
        if max_overlap < 0:
            max_overlap = 0

        budget = int(token_limit * TOKEN_BUDGET_RATIO) * CHARS_PER_TOKEN
        size = min(max_chars, max(min_chars, budget))

        overlap = min(max_overlap, max(MIN_OVERLAP, int(size * OVERLAP_RATIO)))
        if overlap >= size:
            logger.warning(f"Chunk overlap {overlap} >= chunk size {size}, reducing")
            overlap = size // 2

        return cls(chunk_size=size, overlap=overlap)

    @classmethod
    def from_config(cls, token_limit: int, config: dict[str, Any]) -> "ChunkSizing":
        """Build from the ``indexing`` section of the runtime config."""
        indexing = config.get("indexing", {})
        return cls.from_token_limit(
            token_limit,
            min_chars=indexing.get("min_chars_per_chunk", DEFAULT_MIN_CHARS),
            max_chars=indexing.get("max_chars_per_chunk", DEFAULT_MAX_CHARS),
            max_overlap=indexing.get("max_chunk_overlap", DEFAULT_MAX_OVERLAP),
        )


# --- Splitting ---


def chunk_text(text: str, chunk_size: int, overlap: int) -> list[str]:
    """
    Sliding window over characters.

    Args:
        text: Text to split
        chunk_size: Window size in characters
        overlap: Characters shared by consecutive windows

    Returns:
        Non-blank chunks in source order
    """
    if not text or not text.strip():
        return []
    if len(text) <= chunk_size:
        return [text]

    step = chunk_size - overlap
    if step <= 0:
        logger.warning(f"Chunk size {chunk_size} <= overlap {overlap}, splitting without overlap")
        step = chunk_size

    chunks = []
    start = 0
    length = len(text)
    while start < length:
        end = min(start + chunk_size, length)
        piece = text[start:end]
        if piece.strip():
            chunks.append(piece)
        if end == length:
            break
        start += step
    return chunks


def chunk_text_with_line_numbers(text: str, chunk_size: int, overlap: int) -> list[tuple[str, int, int]]:
    """
    Split on line boundaries, tracking 1-based inclusive line ranges.

    Lines longer than the chunk size are split on their own and keep their
    line number. When a chunk is emitted, its trailing lines that fit in the
    overlap start the next one.

    Returns:
        List of (text, start_line, end_line)
    """
    if not text or not text.strip():
        return []

    chunks: list[tuple[str, int, int]] = []
    current: list[tuple[int, str]] = []
    current_len = 0

    def emit() -> None:
        body = "\n".join(line for _, line in current)
        if body.strip():
            chunks.append((body, current[0][0], current[-1][0]))

    for line_no, line in enumerate(text.split("\n"), start=1):
        if len(line) > chunk_size:
            if current:
                emit()
                current, current_len = [], 0
            for part in chunk_text(line, chunk_size, overlap):
                chunks.append((part, line_no, line_no))
            continue

        added = len(line) + (1 if current else 0)
        if current and current_len + added > chunk_size:
            emit()
            carry: list[tuple[int, str]] = []
            carry_len = 0
            for entry in reversed(current):
                extra = len(entry[1]) + (1 if carry else 0)
                if carry_len + extra > overlap:
                    break
                carry.insert(0, entry)
                carry_len += extra
            current, current_len = carry, carry_len
            added = len(line) + (1 if current else 0)
            if current and current_len + added > chunk_size:
                current, current_len = [], 0
                added = len(line)

        current.append((line_no, line))
        current_len += added

    if current:
        emit()
    return chunks


# --- Language Detection ---

EXTENSION_TO_LANGUAGE: dict[str, Language] = {
    "py": Language.PYTHON,
    "js": Language.JS,
    "jsx": Language.JS,
    "mjs": Language.JS,
    "ts": Language.TS,
    "tsx": Language.TS,
    "java": Language.JAVA,
    "go": Language.GO,
    "rs": Language.RUST,
    "rb": Language.RUBY,
    "php": Language.PHP,
    "cpp": Language.CPP,
    "cc": Language.CPP,
    "cxx": Language.CPP,
    "hpp": Language.CPP,
    "c": Language.C,
    "h": Language.C,
    "cs": Language.CSHARP,
    "swift": Language.SWIFT,
    "kt": Language.KOTLIN,
    "kts": Language.KOTLIN,
    "scala": Language.SCALA,
    "md": Language.MARKDOWN,
    "markdown": Language.MARKDOWN,
    "rst": Language.RST,
    "tex": Language.LATEX,
    "html": Language.HTML,
    "htm": Language.HTML,
    "sol": Language.SOL,
    "lua": Language.LUA,
    "hs": Language.HASKELL,
    "ex": Language.ELIXIR,
    "exs": Language.ELIXIR,
    "proto": Language.PROTO,
}


def detect_language(file_path: str) -> Optional[Language]:
    """
    Detect the language of a file from its extension.

    Args:
        file_path: Path to the file

    Returns:
        Language enum or None if not detected
    """
    return EXTENSION_TO_LANGUAGE.get(Path(file_path).suffix.lower().lstrip("."))
