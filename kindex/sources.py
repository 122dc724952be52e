"""
Knowledge Sources

The closed set of knowledge-source configurations a project can hold.
Each variant maps to one state namespace ("folders", "files", "urls").
"""

from dataclasses import dataclass
from typing import Any, Union

from kindex.exceptions import ConfigurationError

FOLDERS = "folders"
FILES = "files"
URLS = "urls"


@dataclass(frozen=True)
class FolderSource:
    """One or more directory trees indexed recursively."""

    roots: tuple[str, ...]

    source_kind = FOLDERS

    def __post_init__(self):
        object.__setattr__(self, "roots", tuple(self.roots))

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.source_kind, "roots": list(self.roots)}


@dataclass(frozen=True)
class FileListSource:
    """An explicit list of files."""

    paths: tuple[str, ...]

    source_kind = FILES

    def __post_init__(self):
        object.__setattr__(self, "paths", tuple(self.paths))

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.source_kind, "paths": list(self.paths)}


@dataclass(frozen=True)
class UrlListSource:
    """Remote documents fetched through a URL content extractor."""

    urls: tuple[str, ...]

    source_kind = URLS

    def __post_init__(self):
        object.__setattr__(self, "urls", tuple(self.urls))

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.source_kind, "urls": list(self.urls)}


KnowledgeSource = Union[FolderSource, FileListSource, UrlListSource]


def merge_sources(sources: list[KnowledgeSource]) -> list[KnowledgeSource]:
    """
    Fold sources of the same kind into one, since each kind owns a single
    state namespace per project. Order of first appearance is kept.
    """
    entries: dict[type, list[str]] = {}
    for source in sources:
        if isinstance(source, FolderSource):
            entries.setdefault(FolderSource, []).extend(source.roots)
        elif isinstance(source, FileListSource):
            entries.setdefault(FileListSource, []).extend(source.paths)
        elif isinstance(source, UrlListSource):
            entries.setdefault(UrlListSource, []).extend(source.urls)
        else:
            raise ConfigurationError(f"Unknown knowledge source: {source!r}")

    merged: list[KnowledgeSource] = []
    for kind, values in entries.items():
        merged.append(kind(tuple(dict.fromkeys(values))))
    return merged


def source_from_dict(data: dict[str, Any]) -> KnowledgeSource:
    """
    Rebuild a knowledge source from its ``to_dict`` form.

    Raises:
        ConfigurationError: Unknown or malformed source kind
    """
    kind = data.get("kind")
    if kind == FOLDERS:
        return FolderSource(roots=tuple(data.get("roots", ())))
    if kind == FILES:
        return FileListSource(paths=tuple(data.get("paths", ())))
    if kind == URLS:
        return UrlListSource(urls=tuple(data.get("urls", ())))
    raise ConfigurationError(f"Unknown knowledge source kind: {kind!r}", {"data": data})
