"""SQLite storage backend implementation.

Provides a file-based persistence layer for posts and site settings.
"""

import json
import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Generator, List, Optional, Sequence

from ..config import DEFAULT_DB_PATH
from ..errors import DuplicateSlugError
from ..utils import now_utc
from .base import PostStore, SettingsStore, StorageConfig
from .models import Post, PostCreate, PostStatus, SiteSettings

logger = logging.getLogger(__name__)


# Schema version for migrations
SCHEMA_VERSION = 1

_SETTINGS_COLUMNS = (
    "content_topics",
    "ai_tone",
    "min_word_count",
    "max_word_count",
    "include_setup_steps",
    "sponsor_enabled",
    "sponsor_text",
    "sponsor_link",
    "internal_link",
)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLitePostStore(PostStore):
    """SQLite-based post store.

    Thread-safe implementation using thread-local connections.
    """

    def __init__(self, config: StorageConfig):
        """Initialize SQLite storage.

        Args:
            config: Storage configuration.
        """
        self.config = config
        self.db_path = config.db_path or DEFAULT_DB_PATH
        self._local = threading.local()
        self._lock = threading.RLock()
        self._initialized = False

        if config.auto_migrate:
            self.initialize()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            self._local.connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def _cursor(self) -> Generator[sqlite3.Cursor, None, None]:
        """Context manager for database cursor."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def initialize(self) -> None:
        """Initialize the database schema."""
        with self._lock:
            if self._initialized:
                return

            with self._cursor() as cursor:
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS schema_version (
                        version INTEGER PRIMARY KEY,
                        applied_at TEXT NOT NULL
                    )
                """
                )

                cursor.execute("SELECT MAX(version) FROM schema_version")
                row = cursor.fetchone()
                current_version = row[0] if row and row[0] else 0

                if current_version < SCHEMA_VERSION:
                    self._run_migrations(cursor, current_version)

            self._initialized = True
            logger.info(f"SQLite storage initialized at {self.db_path}")

    def _run_migrations(self, cursor: sqlite3.Cursor, from_version: int) -> None:
        """Run database migrations."""
        if from_version < 1:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS posts (
                    id TEXT PRIMARY KEY,
                    slug TEXT NOT NULL UNIQUE,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    excerpt TEXT NOT NULL DEFAULT '',
                    cover_image TEXT,
                    og_image TEXT,
                    author TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'draft',
                    meta_description TEXT NOT NULL DEFAULT '',
                    meta_keywords TEXT NOT NULL DEFAULT '[]',
                    tags TEXT NOT NULL DEFAULT '[]',
                    category TEXT NOT NULL DEFAULT '',
                    reading_time TEXT NOT NULL DEFAULT '',
                    generated_by TEXT,
                    human_edited INTEGER NOT NULL DEFAULT 0,
                    quality_score REAL,
                    scheduled_for TEXT,
                    published_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """
            )

            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_posts_status
                ON posts(status)
            """
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS site_settings (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    content_topics TEXT,
                    ai_tone TEXT,
                    min_word_count INTEGER,
                    max_word_count INTEGER,
                    include_setup_steps INTEGER,
                    sponsor_enabled INTEGER,
                    sponsor_text TEXT,
                    sponsor_link TEXT,
                    internal_link TEXT,
                    updated_at TEXT NOT NULL
                )
            """
            )

            cursor.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (1, now_utc().isoformat()),
            )

            logger.info("Applied SQLite migration version 1")

    def close(self) -> None:
        """Close the database connection."""
        if getattr(self._local, "connection", None):
            self._local.connection.close()
            self._local.connection = None

    def _row_to_post(self, row: sqlite3.Row) -> Post:
        """Convert a database row to a Post."""
        return Post(
            id=row["id"],
            slug=row["slug"],
            title=row["title"],
            content=row["content"],
            excerpt=row["excerpt"],
            cover_image=row["cover_image"],
            og_image=row["og_image"],
            author=row["author"],
            status=PostStatus(row["status"]),
            meta_description=row["meta_description"],
            meta_keywords=json.loads(row["meta_keywords"]),
            tags=json.loads(row["tags"]),
            category=row["category"],
            reading_time=row["reading_time"],
            generated_by=row["generated_by"],
            human_edited=bool(row["human_edited"]),
            quality_score=row["quality_score"],
            scheduled_for=_parse_datetime(row["scheduled_for"]),
            published_at=_parse_datetime(row["published_at"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # === Post Operations ===

    def create(self, post: PostCreate) -> str:
        """Create a new post."""
        post_id = str(uuid.uuid4())
        now = now_utc().isoformat()

        try:
            with self._cursor() as cursor:
                cursor.execute(
                    """
                    INSERT INTO posts (
                        id, slug, title, content, excerpt, cover_image, og_image, author,
                        status, meta_description, meta_keywords, tags, category, reading_time,
                        generated_by, human_edited, quality_score, scheduled_for, published_at,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        post_id,
                        post.slug,
                        post.title,
                        post.content,
                        post.excerpt,
                        post.cover_image,
                        post.og_image,
                        post.author,
                        post.status.value,
                        post.meta_description,
                        json.dumps(post.meta_keywords),
                        json.dumps(post.tags),
                        post.category,
                        post.reading_time,
                        post.generated_by,
                        int(post.human_edited),
                        post.quality_score,
                        post.scheduled_for.isoformat() if post.scheduled_for else None,
                        post.published_at.isoformat() if post.published_at else None,
                        now,
                        now,
                    ),
                )
        except sqlite3.IntegrityError as e:
            if "slug" in str(e):
                raise DuplicateSlugError(f"Post with slug '{post.slug}' already exists") from e
            raise

        logger.info(f"Created post {post_id} ({post.slug})")
        return post_id

    def get_by_slug(self, slug: str) -> Optional[Post]:
        """Get a post by slug."""
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM posts WHERE slug = ?", (slug,))
            row = cursor.fetchone()
            if row:
                return self._row_to_post(row)
            return None

    def list_by_status(self, statuses: Sequence[PostStatus]) -> List[Post]:
        """List posts with any of the given statuses, newest first."""
        values = [PostStatus(s).value for s in statuses]
        if not values:
            return []
        placeholders = ", ".join("?" for _ in values)
        with self._cursor() as cursor:
            cursor.execute(
                f"SELECT * FROM posts WHERE status IN ({placeholders}) ORDER BY created_at DESC, rowid DESC",
                values,
            )
            return [self._row_to_post(row) for row in cursor.fetchall()]

    def list_published(self) -> List[Post]:
        """List published posts, newest first."""
        return self.list_by_status([PostStatus.PUBLISHED])

    # === Health Check ===

    def health_check(self) -> bool:
        """Check if the storage backend is healthy."""
        try:
            with self._cursor() as cursor:
                cursor.execute("SELECT 1")
                return cursor.fetchone() is not None
        except sqlite3.Error as e:
            logger.error(f"SQLite health check failed: {e}")
            return False


class SQLiteSettingsStore(SettingsStore):
    """Single-row ``site_settings`` table sharing the post store's database."""

    def __init__(self, storage: SQLitePostStore):
        self.storage = storage

    def get(self) -> SiteSettings:
        with self.storage._cursor() as cursor:
            cursor.execute("SELECT * FROM site_settings WHERE id = 1")
            row = cursor.fetchone()
        if not row:
            return SiteSettings()

        values: dict = {}
        for column in _SETTINGS_COLUMNS:
            value: Any = row[column]
            if value is None:
                continue
            if column == "content_topics":
                value = json.loads(value)
            elif column in ("include_setup_steps", "sponsor_enabled"):
                value = bool(value)
            values[column] = value
        return SiteSettings(**values)

    def save(self, settings: SiteSettings) -> None:
        """Replace the stored settings row."""
        data = settings.model_dump()
        params = []
        for column in _SETTINGS_COLUMNS:
            value = data[column]
            if column == "content_topics" and value is not None:
                value = json.dumps(value)
            elif isinstance(value, bool):
                value = int(value)
            params.append(value)

        with self.storage._cursor() as cursor:
            cursor.execute(
                f"""
                INSERT OR REPLACE INTO site_settings (id, {', '.join(_SETTINGS_COLUMNS)}, updated_at)
                VALUES (1, {', '.join('?' for _ in _SETTINGS_COLUMNS)}, ?)
            """,
                (*params, now_utc().isoformat()),
            )
        logger.info("Site settings saved")
