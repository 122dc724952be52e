"""
Kindex Runtime Configuration

Runtime defaults and configuration merging logic.
Combines defaults, YAML config, and environment variables.
"""

import copy
import os
from typing import Any, Callable

from kindex.configs.constants import MAX_FILE_BYTES
from kindex.configs.logging import get_logger
from kindex.configs.yaml_config import load_yaml_config

logger = get_logger("configs.runtime")

# --- Default Runtime Configuration ---

DEFAULT_CONFIG: dict[str, Any] = {
    "indexing": {
        "max_file_bytes": MAX_FILE_BYTES,
        "batch_size": 50,
        "progress_interval": 10,
        "concurrent_indexing_threads": 10,
        "min_chars_per_chunk": 500,
        "max_chars_per_chunk": 4000,
        "max_chunk_overlap": 200,
    },
    "filters": {
        "gitignore": True,
        "global_gitignore": True,
        "binary": True,
        "hidden": True,
        "file_size": True,
        "project_type": True,
        "custom": True,
        "custom_excludes": [],
    },
    "embedding": {
        "retry_attempts": 4,
        "retry_min_wait": 0.15,
        "retry_max_wait": 5.0,
    },
    "watcher": {
        "max_workers": 2,
    },
    "logging": {
        "debug": False,
        "file": "",
    },
}


def parse_flag(raw: str) -> bool:
    """Parse a boolean environment value."""
    value = raw.strip().lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {raw!r}")


# env var -> (section, key, parser)
ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "KINDEX_MAX_FILE_BYTES": ("indexing", "max_file_bytes", int),
    "KINDEX_BATCH_SIZE": ("indexing", "batch_size", int),
    "KINDEX_INDEXING_THREADS": ("indexing", "concurrent_indexing_threads", int),
    "KINDEX_MAX_CHARS_PER_CHUNK": ("indexing", "max_chars_per_chunk", int),
    "KINDEX_CHUNK_OVERLAP": ("indexing", "max_chunk_overlap", int),
    "KINDEX_DEBUG": ("logging", "debug", parse_flag),
    "KINDEX_LOG_FILE": ("logging", "file", str),
}


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Merge known sections of ``override`` into a copy of ``base``.

    Unknown top-level sections are ignored; inside a known section only keys
    present in the defaults are taken.

    Args:
        base: Configuration with the complete key set
        override: Partial configuration (e.g. parsed YAML)

    Returns:
        New merged configuration dictionary
    """
    merged = copy.deepcopy(base)
    for section, values in override.items():
        if section not in merged or not isinstance(values, dict):
            continue
        for key, value in values.items():
            if key in merged[section] and value is not None:
                merged[section][key] = value
    return merged


def get_full_config() -> dict[str, Any]:
    """
    Get full configuration merged from defaults, YAML, and environment.

    Priority (highest wins):
    1. Environment variables
    2. YAML config file
    3. DEFAULT_CONFIG

    Returns:
        Merged configuration dictionary
    """
    config = merge_config(DEFAULT_CONFIG, load_yaml_config())

    for env_var, (section, key, cast) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_var)
        if not raw:
            continue
        try:
            config[section][key] = cast(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid {env_var}={raw!r}")

    return config
