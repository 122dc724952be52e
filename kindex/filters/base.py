"""
Filter Chain

Ordered predicates deciding whether a path may be indexed. Filters run by
ascending priority and the chain stops at the first one that excludes.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from kindex.configs import get_logger

logger = get_logger("filters.chain")


@dataclass(frozen=True)
class FilterContext:
    """Everything a filter needs to know about one path under a source root."""

    root_path: str
    relative_path: str
    file_name: str
    extension: str
    project_types: frozenset[str] = frozenset()
    metadata: dict[str, Any] = field(default_factory=dict)


def to_relative(path: str, root: str) -> str:
    """Path of ``path`` below ``root`` with forward slashes ("" for the root)."""
    rel = os.path.relpath(os.path.abspath(path), os.path.abspath(root))
    if rel == ".":
        return ""
    return rel.replace(os.sep, "/")


def is_within(path: str, root: str) -> bool:
    """True when ``path`` is ``root`` or lies below it."""
    path = os.path.abspath(path)
    root = os.path.abspath(root)
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


def file_extension(file_name: str) -> str:
    """Lowercase extension without the dot ("" when there is none)."""
    _, ext = os.path.splitext(file_name)
    return ext[1:].lower()


class IndexingFilter(ABC):
    """A single exclusion rule in the chain."""

    name: str = "filter"
    priority: int = 100

    @abstractmethod
    def should_exclude(self, path: str, is_directory: bool, context: FilterContext) -> bool:
        """
        Decide whether ``path`` must be left out of the index.

        Args:
            path: Absolute path being evaluated
            is_directory: Whether the path is a directory
            context: Per-path context built by the chain

        Returns:
            True to exclude
        """
        pass

    def invalidate(self) -> None:
        """Drop any cached discovery state."""
        pass


class FilterChain:
    """
    Runs filters by ascending priority, short-circuiting on the first exclusion.

    The source root itself is never excluded. A filter that raises is logged
    and treated as not excluding.
    """

    def __init__(
        self,
        filters: Iterable[IndexingFilter],
        project_type_resolver: Optional[Callable[[str], frozenset[str]]] = None,
    ):
        self.filters = sorted(filters, key=lambda f: f.priority)
        self._resolve_project_types = project_type_resolver

    def build_context(self, path: str, root: str) -> FilterContext:
        """Create the FilterContext for ``path`` below ``root``."""
        file_name = os.path.basename(os.path.abspath(path))
        project_types: frozenset[str] = frozenset()
        if self._resolve_project_types is not None:
            project_types = self._resolve_project_types(os.path.abspath(root))
        return FilterContext(
            root_path=os.path.abspath(root),
            relative_path=to_relative(path, root),
            file_name=file_name,
            extension=file_extension(file_name),
            project_types=project_types,
        )

    def get_exclusion_reason(self, path: str, is_directory: bool, root: str) -> Optional[str]:
        """
        Name of the first filter that excludes ``path``.

        Args:
            path: Path to evaluate
            is_directory: Whether the path is a directory
            root: Source root the path belongs to

        Returns:
            Filter name, or None when the path is indexable
        """
        if os.path.abspath(path) == os.path.abspath(root):
            return None

        context = self.build_context(path, root)
        for indexing_filter in self.filters:
            try:
                if indexing_filter.should_exclude(path, is_directory, context):
                    return indexing_filter.name
            except Exception as e:
                logger.debug(f"Filter {indexing_filter.name} failed on {path}: {e}")
        return None

    def should_exclude(self, path: str, is_directory: bool, root: str) -> bool:
        """True when any filter excludes ``path``."""
        reason = self.get_exclusion_reason(path, is_directory, root)
        if reason is not None:
            logger.debug(f"Excluded by {reason}: {path}")
            return True
        return False

    def invalidate(self) -> None:
        """Drop cached ignore rules and project-type detections."""
        for indexing_filter in self.filters:
            indexing_filter.invalidate()

    def is_indexable(self, path: str, root: str) -> bool:
        """
        Check a file together with every directory between it and the root.

        Used for paths that did not come from a pruned walk (watch events,
        explicit file lists).
        """
        if not is_within(path, root):
            return False

        rel = to_relative(path, root)
        if not rel:
            return True

        parts = rel.split("/")
        current = os.path.abspath(root)
        for part in parts[:-1]:
            current = os.path.join(current, part)
            if self.should_exclude(current, True, root):
                return False
        return not self.should_exclude(path, os.path.isdir(path), root)
