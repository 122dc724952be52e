"""
Kindex YAML Configuration

Loading, saving, and defaults for <data>/config.yaml.
"""

from pathlib import Path

import yaml

from kindex.configs.logging import get_logger
from kindex.configs.paths import ensure_data_dir, get_data_path

logger = get_logger("configs.yaml")

# --- Default Config Template ---

DEFAULT_CONFIG_YAML = """\
# Kindex Configuration
# Edit this file to customize indexing behavior.

indexing:
  # Files larger than this are never indexed
  max_file_bytes: 5000000
  # Chunks embedded per batch flush
  batch_size: 50
  # Progress events every N processed files
  progress_interval: 10
  # Worker threads for hashing and extraction
  concurrent_indexing_threads: 10
  # Chunk size bounds in characters (actual size follows the model token limit)
  min_chars_per_chunk: 500
  max_chars_per_chunk: 4000
  max_chunk_overlap: 200

filters:
  gitignore: true
  # Also read ~/.gitignore, ~/.config/git/ignore and core.excludesfile
  global_gitignore: true
  binary: true
  hidden: true
  file_size: true
  project_type: true
  custom: true
  # Regular expressions matched against paths relative to the source root
  custom_excludes:
    # - "^docs/generated/"

embedding:
  retry_attempts: 4
  retry_min_wait: 0.15
  retry_max_wait: 5.0

watcher:
  max_workers: 2

logging:
  debug: false
  # Also write logs to this file (empty: stderr only)
  file: ""
"""


def get_config_path() -> Path:
    """Get the path to config.yaml."""
    return get_data_path() / "config.yaml"


def load_yaml_config() -> dict:
    """
    Load configuration from <data>/config.yaml.

    Returns:
        Configuration dictionary (empty if file doesn't exist or is invalid)
    """
    config_path = get_config_path()
    if not config_path.exists():
        return {}

    try:
        loaded = yaml.safe_load(config_path.read_text())
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring unreadable config {config_path}: {e}")
        return {}

    if not isinstance(loaded, dict):
        return {}
    return loaded


def save_yaml_config(config: dict) -> bool:
    """
    Save configuration to <data>/config.yaml.

    Args:
        config: Configuration dictionary to save

    Returns:
        True if successful
    """
    ensure_data_dir()
    try:
        content = yaml.safe_dump(config, default_flow_style=False, sort_keys=False)
        get_config_path().write_text(content)
        return True
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to save config: {e}")
        return False


def create_default_config() -> bool:
    """
    Create default config.yaml if it doesn't exist.

    Returns:
        True if file was created, False if it already exists
    """
    config_path = get_config_path()
    if config_path.exists():
        return False

    ensure_data_dir()
    config_path.write_text(DEFAULT_CONFIG_YAML)
    return True
