"""
Kindex Exception Hierarchy

Centralized exception classes for structured error handling across the codebase.
All Kindex-specific exceptions inherit from KindexError.

Usage:
    from kindex.exceptions import KindexError, EmbeddingError

    try:
        indexer.flush()
    except EmbeddingError as e:
        logger.error(f"Embedding failed: {e}")
"""


class KindexError(Exception):
    """Base exception for all Kindex errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(KindexError):
    """Error in Kindex configuration."""

    pass


class UnsupportedSourceError(ConfigurationError):
    """Knowledge source variant has no coordinator."""

    pass


# =============================================================================
# Storage Errors
# =============================================================================


class StorageError(KindexError):
    """Base class for storage-related errors."""

    pass


class StateError(StorageError):
    """Index state could not be read or written."""

    pass


class VectorStoreError(StorageError):
    """Error writing to or deleting from the vector store."""

    pass


class KeywordStoreError(StorageError):
    """Error writing to or deleting from the keyword store."""

    pass


# =============================================================================
# Ingest Errors
# =============================================================================


class IngestError(KindexError):
    """Base class for ingestion errors."""

    pass


class EmbeddingError(IngestError):
    """Embedding capability failed after retries."""

    def __init__(self, message: str, attempts: int | None = None):
        details = {}
        if attempts is not None:
            details["attempts"] = attempts
        super().__init__(message, details)
        self.attempts = attempts


class BatchCommitError(IngestError):
    """A batch could not be committed to both stores."""

    def __init__(self, message: str, batch_size: int | None = None):
        details = {}
        if batch_size is not None:
            details["batch_size"] = batch_size
        super().__init__(message, details)
        self.batch_size = batch_size


# =============================================================================
# Watcher Errors
# =============================================================================


class WatcherError(KindexError):
    """File watcher could not be started."""

    pass
