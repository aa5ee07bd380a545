"""Tests for the persistence layer."""

import shutil
import tempfile
from datetime import datetime, timezone

import pytest

from autopost.errors import DuplicateSlugError
from autopost.persistence import (
    MemoryPostStore,
    PostCreate,
    PostStatus,
    SiteSettings,
    SQLitePostStore,
    SQLiteSettingsStore,
    StaticSettingsStore,
    StorageConfig,
    create_post_store,
    get_storage_type,
)


@pytest.fixture
def temp_storage_dir():
    """Create a temporary directory for storage."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def sqlite_storage(temp_storage_dir):
    """Create a SQLite post store in a temporary directory."""
    config = StorageConfig(
        backend_type="sqlite",
        db_path=f"{temp_storage_dir}/test.db",
        auto_migrate=True,
    )
    storage = SQLitePostStore(config)
    yield storage
    storage.close()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, temp_storage_dir):
    """Each post store backend."""
    if request.param == "memory":
        yield MemoryPostStore()
        return
    storage = create_post_store("sqlite", db_path=f"{temp_storage_dir}/param.db")
    yield storage
    storage.close()


def make_post(slug: str = "automate-weekly-report", status: PostStatus = PostStatus.DRAFT, **kwargs) -> PostCreate:
    """Build a post input."""
    data = dict(
        slug=slug,
        title=kwargs.pop("title", "How to Automate Your Weekly Report"),
        content="## Part one\n\nBody text.",
        excerpt="Body text.",
        author="Site Author",
        status=status,
        meta_description="Save an hour.",
        meta_keywords=["ChatGPT", "reports"],
        tags=["ChatGPT", "AI Tools"],
        category="AI Tools",
        reading_time="3 min read",
        generated_by="gpt-4o-mini",
        quality_score=9.5,
    )
    data.update(kwargs)
    return PostCreate(**data)


class TestPersistenceModels:
    """Tests for persistence models."""

    def test_post_status_enum(self):
        """Test PostStatus enum values."""
        assert PostStatus.DRAFT.value == "draft"
        assert PostStatus.APPROVED.value == "approved"
        assert PostStatus.SCHEDULED.value == "scheduled"
        assert PostStatus.PUBLISHED.value == "published"
        assert PostStatus.REJECTED.value == "rejected"

    def test_post_create_defaults(self):
        """Test PostCreate default values."""
        post = PostCreate(slug="s", title="T", content="C", author="A")
        assert post.status == PostStatus.DRAFT
        assert post.tags == []
        assert post.human_edited is False
        assert post.scheduled_for is None

    def test_site_settings_all_optional(self):
        """Test that SiteSettings needs no fields."""
        settings = SiteSettings()
        assert settings.min_word_count is None
        assert settings.content_topics is None


class TestStorageFactory:
    """Tests for the storage factory."""

    def test_get_storage_type_default(self, monkeypatch):
        """Test default storage type."""
        monkeypatch.delenv("AUTOPOST_STORAGE", raising=False)
        assert get_storage_type() == "sqlite"

    def test_get_storage_type_memory(self, monkeypatch):
        """Test storage type from the environment."""
        monkeypatch.setenv("AUTOPOST_STORAGE", "Memory")
        assert get_storage_type() == "memory"

    def test_create_sqlite_storage(self, temp_storage_dir):
        """Test creating SQLite storage."""
        storage = create_post_store("sqlite", db_path=f"{temp_storage_dir}/factory.db")
        assert isinstance(storage, SQLitePostStore)
        assert storage.health_check() is True
        storage.close()

    def test_create_sqlite_from_env_path(self, temp_storage_dir, monkeypatch):
        """Test that the database path falls back to AUTOPOST_DB_PATH."""
        monkeypatch.setenv("AUTOPOST_DB_PATH", f"{temp_storage_dir}/nested/env.db")
        storage = create_post_store("sqlite")
        assert storage.db_path == f"{temp_storage_dir}/nested/env.db"
        storage.close()

    def test_create_memory_storage(self):
        """Test creating in-memory storage."""
        assert isinstance(create_post_store("memory"), MemoryPostStore)

    def test_create_storage_unknown_backend(self):
        """Test that unknown backends raise."""
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_post_store("postgres")


class TestPostStore:
    """Contract tests run against every backend."""

    def test_create_and_get(self, store):
        """Test creating and fetching a post."""
        post_id = store.create(make_post())
        post = store.get_by_slug("automate-weekly-report")

        assert post is not None
        assert post.id == post_id
        assert post.status == PostStatus.DRAFT
        assert post.tags == ["ChatGPT", "AI Tools"]
        assert post.quality_score == 9.5
        assert post.created_at is not None

    def test_get_missing(self, store):
        """Test fetching an unknown slug."""
        assert store.get_by_slug("nope") is None

    def test_duplicate_slug(self, store):
        """Test that a duplicate slug raises DuplicateSlugError."""
        store.create(make_post())
        with pytest.raises(DuplicateSlugError):
            store.create(make_post(title="Another title"))

    def test_list_by_status(self, store):
        """Test status filtering."""
        store.create(make_post("a", PostStatus.DRAFT))
        store.create(make_post("b", PostStatus.PUBLISHED))
        store.create(make_post("c", PostStatus.SCHEDULED))

        slugs = {p.slug for p in store.list_by_status([PostStatus.DRAFT, PostStatus.SCHEDULED])}
        assert slugs == {"a", "c"}
        assert [p.slug for p in store.list_published()] == ["b"]
        assert store.list_by_status([]) == []

    def test_scheduled_for_round_trips(self, store):
        """Test that timezone-aware timestamps are preserved."""
        when = datetime(2026, 1, 2, 9, 30, tzinfo=timezone.utc)
        store.create(make_post(scheduled_for=when))
        assert store.get_by_slug("automate-weekly-report").scheduled_for == when

    def test_health_check(self, store):
        """Test health check."""
        assert store.health_check() is True


class TestSQLiteStorage:
    """SQLite-specific tests."""

    def test_initialize_is_idempotent(self, sqlite_storage):
        """Test that initialize can run twice."""
        sqlite_storage.initialize()
        assert sqlite_storage.health_check() is True

    def test_persists_across_instances(self, temp_storage_dir):
        """Test that data survives reopening the database."""
        path = f"{temp_storage_dir}/reopen.db"
        first = create_post_store("sqlite", db_path=path)
        first.create(make_post())
        first.close()

        second = create_post_store("sqlite", db_path=path)
        assert second.get_by_slug("automate-weekly-report") is not None
        second.close()

    def test_in_memory_database(self):
        """Test the :memory: path."""
        storage = create_post_store("sqlite", db_path=":memory:")
        storage.create(make_post())
        assert storage.get_by_slug("automate-weekly-report") is not None
        storage.close()


class TestSettingsStores:
    """Tests for settings stores."""

    def test_empty_settings(self, sqlite_storage):
        """Test that an empty table yields empty settings."""
        assert SQLiteSettingsStore(sqlite_storage).get() == SiteSettings()

    def test_save_and_get(self, sqlite_storage):
        """Test saving and loading settings."""
        settings_store = SQLiteSettingsStore(sqlite_storage)
        settings = SiteSettings(
            content_topics=["Gemini", "Notion"],
            ai_tone="direct",
            min_word_count=600,
            max_word_count=900,
            include_setup_steps=False,
            sponsor_enabled=True,
            sponsor_text="Sponsored by Acme",
        )
        settings_store.save(settings)

        loaded = settings_store.get()
        assert loaded == settings
        assert loaded.include_setup_steps is False

    def test_save_replaces_row(self, sqlite_storage):
        """Test that saving twice keeps a single row."""
        settings_store = SQLiteSettingsStore(sqlite_storage)
        settings_store.save(SiteSettings(ai_tone="first"))
        settings_store.save(SiteSettings(ai_tone="second"))
        assert settings_store.get().ai_tone == "second"

    def test_static_settings(self):
        """Test the fixed-value settings store."""
        assert StaticSettingsStore().get() == SiteSettings()
        assert StaticSettingsStore(SiteSettings(ai_tone="x")).get().ai_tone == "x"
