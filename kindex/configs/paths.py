"""
Kindex Data Paths

Manages the data directory and the per-project storage locations.
"""

import os
import re
from pathlib import Path

DEFAULT_DATA_PATH = Path.home() / ".kindex"


def get_data_path() -> Path:
    """Get the Kindex data directory path.

    KINDEX_DATA_PATH overrides the default of ~/.kindex.

    Returns:
        Path to the data directory
    """
    override = os.environ.get("KINDEX_DATA_PATH")
    if override:
        return Path(os.path.expanduser(override))
    return DEFAULT_DATA_PATH


def ensure_data_dir() -> Path:
    """Ensure the data directory exists.

    Returns:
        Path to data directory
    """
    data_path = get_data_path()
    data_path.mkdir(parents=True, exist_ok=True)
    return data_path


def safe_project_dirname(project_id: str) -> str:
    """Map a project ID onto a directory name that is valid on every platform."""
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", project_id).strip("._")
    return cleaned or "default"


def get_project_state_dir(project_id: str) -> Path:
    """Directory holding the durable index state of one project."""
    return get_data_path() / "projects" / safe_project_dirname(project_id)


def get_default_db_path() -> str:
    """Get the default ChromaDB persistence directory (<data>/db)."""
    return str(get_data_path() / "db")
