"""Persistence layer for generated posts and site settings.

Usage:
    from autopost.persistence import create_post_store, SQLiteSettingsStore

    # SQLite store (default)
    store = create_post_store("sqlite", db_path="./data/autopost.db")
    settings = SQLiteSettingsStore(store)

    # In-memory store for dry runs and tests
    store = create_post_store("memory")
"""

from .base import PostStore, SettingsStore, StaticSettingsStore, StorageConfig
from .factory import create_post_store, get_storage_type
from .memory import MemoryPostStore
from .models import Post, PostCreate, PostStatus, SiteSettings
from .sqlite_storage import SQLitePostStore, SQLiteSettingsStore

__all__ = [
    # Base classes
    "PostStore",
    "SettingsStore",
    "StaticSettingsStore",
    "StorageConfig",
    # Factory
    "create_post_store",
    "get_storage_type",
    # Models
    "Post",
    "PostCreate",
    "PostStatus",
    "SiteSettings",
    # Implementations
    "MemoryPostStore",
    "SQLitePostStore",
    "SQLiteSettingsStore",
]
