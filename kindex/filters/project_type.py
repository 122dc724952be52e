"""
Project Type Detection

Recognizes build ecosystems from marker files in a source root and
excludes their dependency and output directories. A polyglot root carries
several tags and gets the union of their exclusions.
"""

import fnmatch
import os
import threading
from typing import Optional

from kindex.configs import COMMON_EXCLUDES, PROJECT_TYPES, get_logger
from kindex.filters.base import FilterContext, IndexingFilter
from kindex.filters.gitignore import GitignoreRule, parse_rules

logger = get_logger("filters.project_type")


class ProjectTypeDetector:
    """Marker-file detection, cached per root."""

    def __init__(self, project_types: Optional[dict[str, dict[str, tuple[str, ...]]]] = None):
        self.project_types = project_types if project_types is not None else PROJECT_TYPES
        self._cache: dict[str, frozenset[str]] = {}
        self._lock = threading.Lock()

    def detect(self, root: str) -> frozenset[str]:
        """
        Ecosystem tags whose markers exist directly in ``root``.

        Args:
            root: Source root directory

        Returns:
            Frozen set of tags such as {"python", "node"}
        """
        root = os.path.abspath(root)
        with self._lock:
            cached = self._cache.get(root)
        if cached is not None:
            return cached

        try:
            entries = set(os.listdir(root))
        except OSError:
            entries = set()

        tags = set()
        for tag, ecosystem in self.project_types.items():
            for marker in ecosystem["markers"]:
                if any(ch in marker for ch in "*?["):
                    found = any(fnmatch.fnmatch(entry, marker) for entry in entries)
                else:
                    found = marker in entries
                if found:
                    tags.add(tag)
                    break

        detected = frozenset(tags)
        if detected:
            logger.debug(f"Detected project types {sorted(detected)} in {root}")
        with self._lock:
            self._cache[root] = detected
        return detected

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


class ProjectTypeFilter(IndexingFilter):
    """Common VCS/IDE clutter plus ecosystem output and dependency folders."""

    name = "project_type"
    priority = 50

    def __init__(self, detector: Optional[ProjectTypeDetector] = None):
        self.detector = detector or ProjectTypeDetector()
        # Patterns are matched against the path relative to the source root
        self._common_rules = parse_rules(COMMON_EXCLUDES, "")
        self._rules_by_type: dict[str, list[GitignoreRule]] = {
            tag: parse_rules(ecosystem["excludes"], "") for tag, ecosystem in self.detector.project_types.items()
        }

    def rules_for(self, project_types: frozenset[str]) -> list[GitignoreRule]:
        rules = list(self._common_rules)
        for tag in sorted(project_types):
            rules.extend(self._rules_by_type.get(tag, []))
        return rules

    def invalidate(self) -> None:
        self.detector.clear()

    def should_exclude(self, path: str, is_directory: bool, context: FilterContext) -> bool:
        project_types = context.project_types or self.detector.detect(context.root_path)
        for rule in self.rules_for(project_types):
            if rule.matches(context.relative_path, is_directory):
                return True
        return False
