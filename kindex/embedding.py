"""
Embedding Capabilities

Token-limit lookup by model name, a retrying wrapper for any embedding
capability, and an adapter over ChromaDB's bundled default embedding model.
"""

from typing import Any, Optional

from chromadb.utils import embedding_functions
from tenacity import RetryError, Retrying, stop_after_attempt, wait_exponential

from kindex.capabilities import EmbeddingCapability
from kindex.configs import DEFAULT_TOKEN_LIMIT, MODEL_TOKEN_LIMITS, get_logger
from kindex.exceptions import EmbeddingError

logger = get_logger("embedding")

DEFAULT_MODEL_NAME = "all-MiniLM-L6-v2"


def resolve_token_limit(model_name: Optional[str]) -> int:
    """
    Input token limit for an embedding model, by name.

    Args:
        model_name: Model identifier (e.g. "nomic-embed-text", "bge-small-en")

    Returns:
        Token limit, DEFAULT_TOKEN_LIMIT for unknown models
    """
    if not model_name:
        return DEFAULT_TOKEN_LIMIT
    name = model_name.lower()
    if "qwen" in name and "embed" in name:
        return 8192
    for needle, limit in MODEL_TOKEN_LIMITS:
        if needle in name:
            return limit
    return DEFAULT_TOKEN_LIMIT


class RetryingEmbedder(EmbeddingCapability):
    """
    Retries transient embedding failures with exponential backoff.

    Raises EmbeddingError once the attempts are exhausted.
    """

    def __init__(
        self,
        inner: EmbeddingCapability,
        attempts: int = 4,
        min_wait: float = 0.15,
        max_wait: float = 5.0,
    ):
        self.inner = inner
        self.attempts = max(1, attempts)
        self.min_wait = min_wait
        self.max_wait = max_wait

    @classmethod
    def from_config(cls, inner: EmbeddingCapability, config: dict[str, Any]) -> "RetryingEmbedder":
        embedding = config.get("embedding", {})
        return cls(
            inner,
            attempts=embedding.get("retry_attempts", 4),
            min_wait=embedding.get("retry_min_wait", 0.15),
            max_wait=embedding.get("retry_max_wait", 5.0),
        )

    def _retrying(self) -> Retrying:
        return Retrying(
            wait=wait_exponential(multiplier=self.min_wait, min=self.min_wait, max=self.max_wait),
            stop=stop_after_attempt(self.attempts),
        )

    def token_limit(self) -> int:
        return self.inner.token_limit()

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        try:
            for attempt in self._retrying():
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.debug(f"Retrying embedding batch (attempt {attempt.retry_state.attempt_number})")
                    vectors = self.inner.embed_batch(texts)
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise EmbeddingError(f"Embedding failed: {cause}", attempts=self.attempts) from cause

        if len(vectors) != len(texts):
            raise EmbeddingError(f"Embedding returned {len(vectors)} vectors for {len(texts)} texts")
        return vectors


class ChromaDefaultEmbedding(EmbeddingCapability):
    """ChromaDB's bundled ONNX MiniLM model (downloaded on first use)."""

    def __init__(self, model_name: str = DEFAULT_MODEL_NAME):
        self.model_name = model_name
        self._function = embedding_functions.DefaultEmbeddingFunction()

    def token_limit(self) -> int:
        return resolve_token_limit(self.model_name)

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [[float(x) for x in vector] for vector in self._function(texts)]
