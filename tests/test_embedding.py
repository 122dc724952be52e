"""
Tests for token-limit lookup and the retrying embedder.
"""

import pytest

from kindex.embedding import RetryingEmbedder, resolve_token_limit
from kindex.exceptions import EmbeddingError


class TestResolveTokenLimit:
    """Tests for model-name based token limits."""

    @pytest.mark.parametrize(
        "model_name,expected",
        [
            ("nomic-embed-text", 8192),
            ("mxbai-embed-large", 512),
            ("BAAI/bge-small-en", 512),
            ("all-MiniLM-L6-v2", 512),
            ("text-embedding-3-small", 8191),
            ("qwen3-embedding", 8192),
            ("some-unknown-model", 2048),
            (None, 2048),
        ],
    )
    def test_lookup(self, model_name, expected):
        assert resolve_token_limit(model_name) == expected


class TestRetryingEmbedder:
    """Tests for retry and failure reporting."""

    def test_passes_through(self, embedder):
        retrying = RetryingEmbedder(embedder, attempts=3, min_wait=0, max_wait=0)

        assert retrying.embed_batch(["ab", "abcd"]) == [[2.0, 1.0, 0.5], [4.0, 1.0, 0.5]]
        assert retrying.embed("abc") == [3.0, 1.0, 0.5]
        assert retrying.token_limit() == 2048

    def test_recovers_from_transient_failure(self, failing_embedder_cls):
        inner = failing_embedder_cls(failures=2)
        retrying = RetryingEmbedder(inner, attempts=3, min_wait=0, max_wait=0)

        assert retrying.embed_batch(["x"]) == [[1.0, 1.0, 0.5]]
        assert inner.batch_calls == 3

    def test_exhausted_attempts_raise(self, failing_embedder_cls):
        inner = failing_embedder_cls()
        retrying = RetryingEmbedder(inner, attempts=2, min_wait=0, max_wait=0)

        with pytest.raises(EmbeddingError) as exc_info:
            retrying.embed_batch(["x"])

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert inner.batch_calls == 2

    def test_vector_count_mismatch(self, embedder, monkeypatch):
        monkeypatch.setattr(embedder, "embed_batch", lambda texts: [])
        retrying = RetryingEmbedder(embedder, attempts=1, min_wait=0, max_wait=0)

        with pytest.raises(EmbeddingError):
            retrying.embed_batch(["x", "y"])

    def test_from_config(self, embedder, test_config):
        retrying = RetryingEmbedder.from_config(embedder, test_config)

        assert retrying.attempts == 2
        assert retrying.inner is embedder
