"""
Configuration module for the pathtree system.
This module handles environment variables and system-wide settings that are not part of the domain model.
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_FILE = "pathtree.db"


def get_database_path() -> Path:
    """
    Retrieve the SQLite database location from environment variables.

    Returns:
        The path from PATHTREE_DB. Defaults to "pathtree.db" in the working directory.
    """
    return Path(os.environ.get("PATHTREE_DB", DEFAULT_DATABASE_FILE))


def get_log_level() -> int:
    """
    Retrieve the logging level from environment variables.

    Returns:
        The numeric level named by PATHTREE_LOG_LEVEL. Defaults to INFO.
    """
    name = os.environ.get("PATHTREE_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        logger.warning(f"Unknown PATHTREE_LOG_LEVEL {name!r}, using INFO.")
        return logging.INFO
    return level
