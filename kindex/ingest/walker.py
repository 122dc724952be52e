"""
Source Walker

Streams indexable files out of folders and explicit file lists, pruning
excluded directories in place, and fingerprints file content for delta sync.
"""

import hashlib
import os
from pathlib import Path
from typing import Generator, Iterable

from kindex.configs import get_logger
from kindex.filters.base import FilterChain

logger = get_logger("ingest.walker")


def walk_folder(root_path: str, chain: FilterChain) -> Generator[Path, None, None]:
    """
    Walk a folder yielding files the chain lets through.

    Directories excluded by the chain are not descended into. Entries are
    visited in sorted order so runs are reproducible.

    Args:
        root_path: Root directory to walk
        chain: Filter chain deciding exclusions

    Yields:
        Absolute Path objects for each indexable file
    """
    root = os.path.abspath(root_path)
    if not os.path.isdir(root):
        logger.warning(f"Folder source does not exist: {root}")
        return

    for dirpath, dirnames, filenames in os.walk(root):
        # Filter out excluded directories (in-place modification)
        dirnames[:] = sorted(d for d in dirnames if not chain.should_exclude(os.path.join(dirpath, d), True, root))

        for filename in sorted(filenames):
            file_path = os.path.join(dirpath, filename)
            if not os.path.isfile(file_path):
                continue
            if chain.should_exclude(file_path, False, root):
                continue
            yield Path(file_path)


def iter_file_list(paths: Iterable[str], chain: FilterChain) -> Generator[Path, None, None]:
    """
    Yield the existing, indexable files of an explicit list.

    Each file is filtered with its own directory as the source root.
    """
    seen: set[str] = set()
    for raw in paths:
        file_path = os.path.abspath(os.path.expanduser(raw))
        if file_path in seen:
            continue
        seen.add(file_path)

        if not os.path.isfile(file_path):
            logger.debug(f"Listed file missing: {file_path}")
            continue
        if chain.should_exclude(file_path, False, os.path.dirname(file_path)):
            continue
        yield Path(file_path)


def walk_subtree(directory: str, root_path: str, chain: FilterChain) -> Generator[Path, None, None]:
    """
    Walk a directory below ``root_path``, applying the chain relative to the root.

    Used when a new directory appears under a watched root.
    """
    if not chain.is_indexable(directory, root_path):
        return
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(
            d for d in dirnames if not chain.should_exclude(os.path.join(dirpath, d), True, root_path)
        )
        for filename in sorted(filenames):
            file_path = os.path.join(dirpath, filename)
            if os.path.isfile(file_path) and not chain.should_exclude(file_path, False, root_path):
                yield Path(file_path)


def compute_file_hash(file_path: Path) -> str:
    """
    Compute MD5 hash of a file for delta sync.

    Args:
        file_path: Path to the file

    Returns:
        MD5 hash as hex string
    """
    hasher = hashlib.md5()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def compute_text_hash(text: str) -> str:
    """MD5 of UTF-8 encoded text (used for fetched URL content)."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()
