"""
BM25 Keyword Store

Keyword index over segment texts with code-aware tokenization. Segments are
persisted as JSON; the BM25 index is rebuilt lazily on the next search.
"""

import json
import os
import re
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Optional

from rank_bm25 import BM25Okapi

from kindex.capabilities import KeywordStore, Segment
from kindex.configs import get_logger
from kindex.exceptions import KeywordStoreError

logger = get_logger("storage.bm25")


def tokenize_code(text: str) -> list[str]:
    """
    Tokenize text for BM25, respecting code naming conventions.

    - Splits camelCase: "calculateTotal" -> ["calculate", "total"]
    - Splits snake_case: "calculate_total" -> ["calculate", "total"]
    - Splits on whitespace and punctuation
    - Lowercases all tokens

    Args:
        text: Text to tokenize

    Returns:
        List of tokens
    """
    tokens = []
    words = re.split(r'[\s\.\,\;\:\(\)\[\]\{\}\"\'\`\#\@\!\?\<\>\=\+\-\*\/\\\|\&\^\$\%\~]+', text)
    for word in words:
        if not word:
            continue
        camel_split = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", word)
        tokens.extend(t for t in camel_split.lower().split("_") if t)
    return tokens


class BM25KeywordStore(KeywordStore):
    """
    Keyword store over rank_bm25.

    Args:
        path: JSON file persisting the segments (None keeps them in memory)
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._segments: dict[str, dict[str, Any]] = self._load()
        self._index: Optional[BM25Okapi] = None
        self._doc_ids: list[str] = []
        self._stale = True

    def _load(self) -> dict[str, dict[str, Any]]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable keyword store {self.path}, starting empty: {e}")
            return {}
        return data.get("segments", {}) if isinstance(data, dict) else {}

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        except OSError as e:
            raise KeywordStoreError(f"Cannot write keyword store: {e}", {"path": str(self.path)})
        try:
            with os.fdopen(fd, "w") as f:
                json.dump({"segments": self._segments}, f)
            os.replace(tmp_path, str(self.path))
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def index(self, segments: list[Segment]) -> None:
        if not segments:
            return
        with self._lock:
            for segment in segments:
                self._segments[segment.segment_id] = {"text": segment.text, "meta": segment.metadata}
            self._stale = True
            self._save()

    def remove_all(self, ids: list[str]) -> None:
        with self._lock:
            removed = 0
            for segment_id in ids:
                if self._segments.pop(segment_id, None) is not None:
                    removed += 1
            if removed:
                self._stale = True
                self._save()

    def clear(self) -> None:
        with self._lock:
            self._segments = {}
            self._index = None
            self._doc_ids = []
            self._stale = True
            self._save()

    def count(self) -> int:
        with self._lock:
            return len(self._segments)

    def contains(self, segment_id: str) -> bool:
        with self._lock:
            return segment_id in self._segments

    def _ensure_index(self) -> None:
        if not self._stale:
            return
        start_time = time.time()
        self._doc_ids = list(self._segments)
        if self._doc_ids:
            self._index = BM25Okapi([tokenize_code(self._segments[i]["text"]) for i in self._doc_ids])
        else:
            self._index = None
        self._stale = False
        elapsed = time.time() - start_time
        logger.debug(f"BM25 index built: {len(self._doc_ids)} docs in {elapsed*1000:.1f}ms")

    def search(self, query: str, top_k: int = 50) -> list[dict[str, Any]]:
        """
        Search using BM25 and return scored segments.

        Args:
            query: Search query
            top_k: Number of results to return

        Returns:
            List of {"id", "text", "meta", "bm25_score"} sorted by score
        """
        with self._lock:
            self._ensure_index()
            if self._index is None:
                return []
            scores = self._index.get_scores(tokenize_code(query))
            scored = [
                {"id": doc_id, **self._segments[doc_id], "bm25_score": float(score)}
                for doc_id, score in zip(self._doc_ids, scores)
            ]
        scored.sort(key=lambda x: x["bm25_score"], reverse=True)
        return scored[:top_k]
