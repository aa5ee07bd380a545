"""Storage factory for creating post stores.

Provides creation of storage backends based on arguments or environment
variables.
"""

import logging
import os
from typing import Optional

from ..config import DEFAULT_DB_PATH
from .base import PostStore, StorageConfig
from .memory import MemoryPostStore
from .sqlite_storage import SQLitePostStore

logger = logging.getLogger(__name__)


def get_storage_type() -> str:
    """Detect the storage type from the ``AUTOPOST_STORAGE`` environment variable.

    Returns:
        Storage type string: 'memory' or 'sqlite'
    """
    return os.environ.get("AUTOPOST_STORAGE", "sqlite").strip().lower() or "sqlite"


def create_post_store(
    backend_type: Optional[str] = None,
    db_path: Optional[str] = None,
    auto_migrate: bool = True,
    **extra: object,
) -> PostStore:
    """Create a post store instance.

    Args:
        backend_type: Type of storage ('sqlite', 'memory'). Read from the environment if None.
        db_path: File path for the SQLite database. Defaults to ``AUTOPOST_DB_PATH``.
        auto_migrate: Whether to run migrations on initialization.
        **extra: Additional backend-specific configuration.

    Returns:
        PostStore instance.

    Raises:
        ValueError: If backend_type is unknown.

    Example:
        # Explicit SQLite
        store = create_post_store("sqlite", db_path="./data/autopost.db")

        # Throwaway store for a dry run
        store = create_post_store("memory")
    """
    if backend_type is None:
        backend_type = get_storage_type()

    if db_path is None:
        db_path = os.environ.get("AUTOPOST_DB_PATH", DEFAULT_DB_PATH)

    if backend_type == "sqlite":
        logger.info(f"Creating SQLite storage at {db_path}")
        config = StorageConfig(backend_type=backend_type, db_path=db_path, auto_migrate=auto_migrate, extra=dict(extra))
        return SQLitePostStore(config)

    elif backend_type == "memory":
        logger.info("Creating in-memory storage")
        return MemoryPostStore()

    else:
        raise ValueError(f"Unknown storage backend type: {backend_type}")
