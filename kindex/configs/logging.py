"""
Kindex Logging Configuration

All kindex loggers live under the "kindex" namespace. ``setup_logging`` is
applied from the ``logging`` config section (KINDEX_DEBUG and
KINDEX_LOG_FILE override it) when a project is wired up, and quiets the
chatty loggers of the storage and watcher libraries.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Optional

LOG_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that drown kindex output at INFO
NOISY_LOGGERS = ("chromadb", "httpx", "urllib3", "watchdog")
TELEMETRY_LOGGER = "chromadb.telemetry.product.posthog"

_applied: Optional[tuple[bool, str]] = None


def setup_logging(
    debug: Optional[bool] = None,
    log_file: Optional[str] = None,
    config: Optional[dict[str, Any]] = None,
) -> logging.Logger:
    """
    Configure the kindex logger tree.

    Args:
        debug: Enable debug level. Defaults to ``logging.debug`` of the config.
        log_file: Also log to this file. Defaults to ``logging.file`` of the
                  config; empty means stderr only.
        config: Runtime config (defaults to get_full_config())

    Returns:
        Root logger for kindex
    """
    global _applied

    if debug is None or log_file is None:
        if config is None:
            from kindex.configs.runtime import get_full_config

            config = get_full_config()
        settings = config.get("logging", {})
        if debug is None:
            debug = bool(settings.get("debug", False))
        if log_file is None:
            log_file = settings.get("file") or ""

    logger = logging.getLogger("kindex")
    if _applied == (debug, log_file) and logger.handlers:
        return logger

    level = logging.DEBUG if debug else logging.INFO
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    logger.setLevel(level)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    # With a log file, stderr only carries warnings
    stderr_handler.setLevel(logging.WARNING if log_file else level)
    logger.addHandler(stderr_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    library_level = logging.DEBUG if debug else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
    logging.getLogger(TELEMETRY_LOGGER).setLevel(logging.CRITICAL)

    _applied = (debug, log_file)
    logger.debug(f"Logging configured (debug={debug}, file={log_file or 'none'})")
    return logger


def get_logger(component: str) -> logging.Logger:
    """
    Get a logger for a specific component.

    Args:
        component: Component name (e.g., "filters.gitignore", "indexing.hybrid")

    Returns:
        Logger instance for the component
    """
    return logging.getLogger(f"kindex.{component}")
