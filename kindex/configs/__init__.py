"""
Kindex Configuration Module

Re-exports commonly used functions for cleaner imports across the codebase.
"""

# Logging (most commonly used)
from kindex.configs.logging import get_logger, setup_logging

# Paths
from kindex.configs.paths import (
    ensure_data_dir,
    get_data_path,
    get_default_db_path,
    get_project_state_dir,
)

# Constants
from kindex.configs.constants import (
    BINARY_EXTENSIONS,
    CHARS_PER_TOKEN,
    COMMON_EXCLUDES,
    DEFAULT_TOKEN_LIMIT,
    DOCUMENT_EXTENSIONS,
    EXCLUDED_FILE_NAMES,
    MAX_FILE_BYTES,
    MODEL_TOKEN_LIMITS,
    PROJECT_TYPES,
    TEXT_EXTENSIONS,
)

# YAML config
from kindex.configs.yaml_config import (
    DEFAULT_CONFIG_YAML,
    create_default_config,
    get_config_path,
    load_yaml_config,
    save_yaml_config,
)

# Runtime
from kindex.configs.runtime import DEFAULT_CONFIG, get_full_config, merge_config

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Paths
    "get_data_path",
    "ensure_data_dir",
    "get_default_db_path",
    "get_project_state_dir",
    # Constants
    "BINARY_EXTENSIONS",
    "CHARS_PER_TOKEN",
    "COMMON_EXCLUDES",
    "DEFAULT_TOKEN_LIMIT",
    "DOCUMENT_EXTENSIONS",
    "EXCLUDED_FILE_NAMES",
    "MAX_FILE_BYTES",
    "MODEL_TOKEN_LIMITS",
    "PROJECT_TYPES",
    "TEXT_EXTENSIONS",
    # YAML config
    "DEFAULT_CONFIG_YAML",
    "get_config_path",
    "load_yaml_config",
    "save_yaml_config",
    "create_default_config",
    # Runtime
    "DEFAULT_CONFIG",
    "get_full_config",
    "merge_config",
]
