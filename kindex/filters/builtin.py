"""
Built-in Filters

Binary/junk files, hidden entries, oversized files and user regexes, plus
assembly of the default chain from runtime configuration.
"""

import os
import re
from typing import Any, Iterable, Optional

from kindex.configs import BINARY_EXTENSIONS, EXCLUDED_FILE_NAMES, MAX_FILE_BYTES, get_full_config, get_logger
from kindex.filters.base import FilterChain, FilterContext, IndexingFilter
from kindex.filters.gitignore import GitignoreFilter
from kindex.filters.project_type import ProjectTypeFilter

logger = get_logger("filters.builtin")


class BinaryFileFilter(IndexingFilter):
    """Files with binary extensions and well-known junk names."""

    name = "binary"
    priority = 20

    def __init__(
        self,
        binary_extensions: Optional[Iterable[str]] = None,
        excluded_names: Optional[Iterable[str]] = None,
    ):
        self.binary_extensions = frozenset(binary_extensions) if binary_extensions is not None else BINARY_EXTENSIONS
        self.excluded_names = frozenset(excluded_names) if excluded_names is not None else EXCLUDED_FILE_NAMES

    def should_exclude(self, path: str, is_directory: bool, context: FilterContext) -> bool:
        if is_directory:
            return False
        return context.extension in self.binary_extensions or context.file_name in self.excluded_names


class HiddenFileFilter(IndexingFilter):
    """Dot-files and dot-directories."""

    name = "hidden"
    priority = 21

    def should_exclude(self, path: str, is_directory: bool, context: FilterContext) -> bool:
        return context.file_name.startswith(".")


class FileSizeFilter(IndexingFilter):
    """Files over a byte threshold. Unstattable files are excluded too."""

    name = "file_size"
    priority = 30

    def __init__(self, max_bytes: int = MAX_FILE_BYTES):
        if max_bytes <= 0:
            logger.warning(f"Invalid max_file_bytes={max_bytes}, using {MAX_FILE_BYTES}")
            max_bytes = MAX_FILE_BYTES
        self.max_bytes = max_bytes

    def should_exclude(self, path: str, is_directory: bool, context: FilterContext) -> bool:
        if is_directory:
            return False
        try:
            return os.path.getsize(path) > self.max_bytes
        except OSError:
            return True


class CustomPatternFilter(IndexingFilter):
    """User regexes searched in the path relative to the source root."""

    name = "custom"
    priority = 100

    def __init__(self, patterns: Iterable[str]):
        self.patterns: list[re.Pattern] = []
        for pattern in patterns:
            try:
                self.patterns.append(re.compile(pattern))
            except re.error as e:
                logger.warning(f"Ignoring invalid custom exclude {pattern!r}: {e}")

    def should_exclude(self, path: str, is_directory: bool, context: FilterContext) -> bool:
        return any(p.search(context.relative_path) for p in self.patterns)


def build_filter_chain(config: Optional[dict[str, Any]] = None) -> FilterChain:
    """
    Assemble the default filter chain.

    Args:
        config: Full runtime config (defaults to get_full_config())

    Returns:
        FilterChain with the enabled built-in filters
    """
    config = config if config is not None else get_full_config()
    filter_config = config.get("filters", {})
    indexing_config = config.get("indexing", {})

    filters: list[IndexingFilter] = []
    resolver = None

    if filter_config.get("gitignore", True):
        filters.append(GitignoreFilter(include_global=filter_config.get("global_gitignore", True)))
    if filter_config.get("binary", True):
        filters.append(BinaryFileFilter())
    if filter_config.get("hidden", True):
        filters.append(HiddenFileFilter())
    if filter_config.get("file_size", True):
        filters.append(FileSizeFilter(indexing_config.get("max_file_bytes", MAX_FILE_BYTES)))
    if filter_config.get("project_type", True):
        project_filter = ProjectTypeFilter()
        resolver = project_filter.detector.detect
        filters.append(project_filter)
    custom_excludes = filter_config.get("custom_excludes") or []
    if filter_config.get("custom", True) and custom_excludes:
        filters.append(CustomPatternFilter(custom_excludes))

    chain = FilterChain(filters, project_type_resolver=resolver)
    logger.debug(f"Filter chain: {[f.name for f in chain.filters]}")
    return chain
