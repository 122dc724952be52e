"""
Kindex Filters

Decide which paths under a knowledge source may be indexed.
"""

from kindex.filters.base import FilterChain, FilterContext, IndexingFilter
from kindex.filters.builtin import (
    BinaryFileFilter,
    CustomPatternFilter,
    FileSizeFilter,
    HiddenFileFilter,
    build_filter_chain,
)
from kindex.filters.gitignore import GitignoreFilter, GitignoreParser, GitignoreRule
from kindex.filters.project_type import ProjectTypeDetector, ProjectTypeFilter

__all__ = [
    "FilterChain",
    "FilterContext",
    "IndexingFilter",
    "BinaryFileFilter",
    "CustomPatternFilter",
    "FileSizeFilter",
    "HiddenFileFilter",
    "build_filter_chain",
    "GitignoreFilter",
    "GitignoreParser",
    "GitignoreRule",
    "ProjectTypeDetector",
    "ProjectTypeFilter",
]
