"""Abstract base classes for the post and settings stores.

This module defines the API contract the pipeline relies on.
"""

import abc
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .models import Post, PostCreate, PostStatus, SiteSettings


@dataclass
class StorageConfig:
    """Configuration for storage backends.

    Attributes:
        backend_type: Type of storage backend (sqlite or memory).
        db_path: File path for the SQLite database.
        auto_migrate: Whether to auto-run migrations on init.
        extra: Additional backend-specific configuration.
    """

    backend_type: str = "sqlite"
    db_path: Optional[str] = None
    auto_migrate: bool = True
    extra: Dict[str, Any] = field(default_factory=dict)


class PostStore(abc.ABC):
    """Storage for generated posts.

    ``create`` either succeeds atomically or raises; a slug that already
    exists raises ``DuplicateSlugError``.
    """

    @abc.abstractmethod
    def initialize(self) -> None:
        """Create tables/schemas if they don't exist and run pending migrations."""
        pass

    @abc.abstractmethod
    def close(self) -> None:
        """Close the store and release resources."""
        pass

    @abc.abstractmethod
    def get_by_slug(self, slug: str) -> Optional[Post]:
        """Get a post by slug.

        Args:
            slug: The post slug.

        Returns:
            Post or None if not found.
        """
        pass

    @abc.abstractmethod
    def create(self, post: PostCreate) -> str:
        """Persist a new post.

        Args:
            post: The post data.

        Returns:
            The new post's ID.

        Raises:
            DuplicateSlugError: If a post with the same slug exists.
        """
        pass

    @abc.abstractmethod
    def list_by_status(self, statuses: Sequence[PostStatus]) -> List[Post]:
        """List posts whose status is one of ``statuses``, newest first."""
        pass

    @abc.abstractmethod
    def list_published(self) -> List[Post]:
        """List published posts, newest first."""
        pass

    @abc.abstractmethod
    def health_check(self) -> bool:
        """Check if the store is healthy.

        Returns:
            True if healthy, False otherwise.
        """
        pass


class SettingsStore(abc.ABC):
    """Read-only source of admin-editable generation defaults."""

    @abc.abstractmethod
    def get(self) -> SiteSettings:
        """Return the current settings; missing fields are None."""
        pass


class StaticSettingsStore(SettingsStore):
    """Settings store backed by a fixed ``SiteSettings`` value."""

    def __init__(self, settings: Optional[SiteSettings] = None):
        self.settings = settings or SiteSettings()

    def get(self) -> SiteSettings:
        return self.settings
