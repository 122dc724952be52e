"""
Coordinator Factory

Binds each knowledge-source variant to its coordinator.
"""

from kindex.exceptions import UnsupportedSourceError
from kindex.indexing.coordinator import (
    IndexingCoordinator,
    IndexingDependencies,
    LocalFilesIndexingCoordinator,
    UrlIndexingCoordinator,
)
from kindex.sources import FileListSource, FolderSource, KnowledgeSource, UrlListSource


def create_coordinator(
    project_id: str,
    source: KnowledgeSource,
    deps: IndexingDependencies,
) -> IndexingCoordinator:
    """
    Create the coordinator for a knowledge source.

    Raises:
        UnsupportedSourceError: Source is not one of the known variants
    """
    if isinstance(source, (FolderSource, FileListSource)):
        return LocalFilesIndexingCoordinator(project_id, source, deps)
    if isinstance(source, UrlListSource):
        return UrlIndexingCoordinator(project_id, source, deps)
    raise UnsupportedSourceError(f"No coordinator for {type(source).__name__}")
