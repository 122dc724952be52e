"""
Kindex Indexing

Hybrid (vector + keyword) indexing, per-source coordinators and progress.
"""

from kindex.indexing.coordinator import (
    IndexingCoordinator,
    IndexingDependencies,
    LocalFilesIndexingCoordinator,
    UrlIndexingCoordinator,
    snapshot_file,
)
from kindex.indexing.factory import create_coordinator
from kindex.indexing.hybrid import HybridIndexer, make_segment_id
from kindex.indexing.progress import IndexProgress, IndexStatus, ProgressTracker
from kindex.indexing.project import ProjectIndexer

__all__ = [
    "IndexingCoordinator",
    "IndexingDependencies",
    "LocalFilesIndexingCoordinator",
    "UrlIndexingCoordinator",
    "snapshot_file",
    "create_coordinator",
    "HybridIndexer",
    "make_segment_id",
    "IndexProgress",
    "IndexStatus",
    "ProgressTracker",
    "ProjectIndexer",
]
