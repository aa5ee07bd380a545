"""In-memory post store, for tests and dry runs."""

import logging
import threading
import uuid
from typing import Dict, List, Optional, Sequence

from ..errors import DuplicateSlugError
from ..utils import now_utc
from .base import PostStore
from .models import Post, PostCreate, PostStatus

logger = logging.getLogger(__name__)


class MemoryPostStore(PostStore):
    """Thread-safe dict of posts keyed by slug."""

    def __init__(self) -> None:
        self._posts: Dict[str, Post] = {}
        self._lock = threading.Lock()

    def initialize(self) -> None:
        pass

    def close(self) -> None:
        pass

    def get_by_slug(self, slug: str) -> Optional[Post]:
        with self._lock:
            return self._posts.get(slug)

    def create(self, post: PostCreate) -> str:
        now = now_utc()
        stored = Post(id=str(uuid.uuid4()), created_at=now, updated_at=now, **post.model_dump())
        with self._lock:
            if post.slug in self._posts:
                raise DuplicateSlugError(f"Post with slug '{post.slug}' already exists")
            self._posts[post.slug] = stored
        logger.debug(f"Stored post {stored.id} ({post.slug})")
        return stored.id

    def list_by_status(self, statuses: Sequence[PostStatus]) -> List[Post]:
        wanted = {PostStatus(s) for s in statuses}
        with self._lock:
            posts = [p for p in self._posts.values() if p.status in wanted]
        return sorted(posts, key=lambda p: p.created_at, reverse=True)

    def list_published(self) -> List[Post]:
        return self.list_by_status([PostStatus.PUBLISHED])

    def health_check(self) -> bool:
        return True
