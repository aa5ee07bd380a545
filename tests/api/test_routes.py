"""Tests for the API routes."""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from autopost.api.app import create_app
from autopost.api.dependencies import (
    get_admin_token,
    reset_dependencies,
    set_admin_token,
    set_orchestrator,
    set_post_store,
    set_rate_limiter,
)
from autopost.errors import ConfigurationMissingError, TransientModelError
from autopost.orchestrator import GenerationOrchestrator
from autopost.persistence import MemoryPostStore, PostCreate, PostStatus
from autopost.rate_limit import SlidingWindowRateLimiter

TOKEN = "s3cret-admin-token"
HEADERS = {"x-admin-token": TOKEN}


class TestAPIRoutes:
    """Tests for the generate and health routes."""

    @pytest.fixture
    def store(self):
        """In-memory post store wired into the app."""
        store = MemoryPostStore()
        set_post_store(store)
        set_admin_token(TOKEN)
        set_rate_limiter(SlidingWindowRateLimiter(limit=5, window_seconds=3600))
        yield store
        reset_dependencies()

    @pytest.fixture
    def wire(self, store, make_runner, config):
        """Install an orchestrator around a scripted client."""

        def _wire(client):
            orchestrator = GenerationOrchestrator(make_runner(client), post_store=store, config=config)
            set_orchestrator(orchestrator)
            return orchestrator

        return _wire

    @pytest.fixture
    def client(self, store):
        """Create a test client."""
        return TestClient(create_app())

    def test_root_endpoint(self, client):
        """Test the root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["name"] == "Autopost API"
        assert "docs" in data

    def test_health_check(self, client):
        """Test the health check endpoint."""
        response = client.get("/api/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert "timestamp" in data

    def test_health_check_degraded(self, client, store, monkeypatch):
        """Test the health check when the store is unhealthy."""
        monkeypatch.setattr(store, "health_check", lambda: False)
        data = client.get("/api/health").json()
        assert data["status"] == "degraded"
        assert data["database"] == "disconnected"

    def test_generate_requires_token(self, client, wire, make_client):
        """Test that a missing or wrong token is rejected."""
        scripted = make_client()
        wire(scripted)

        assert client.post("/api/generate").status_code == 401
        assert client.post("/api/generate", headers={"x-admin-token": "wrong"}).status_code == 401
        assert scripted.calls == []

    def test_generate_unconfigured_token(self, client, wire, make_client, monkeypatch):
        """Test that an unset admin token rejects every request."""
        wire(make_client())
        set_admin_token(None)
        monkeypatch.delenv("AUTOPOST_ADMIN_TOKEN", raising=False)

        assert get_admin_token() is None
        assert client.post("/api/generate", headers=HEADERS).status_code == 401

    def test_generate_success(self, client, wire, make_client, make_response, good_body, store):
        """Test a manual-topic run that saves a draft."""
        scripted = make_client([make_response(good_body)])
        wire(scripted)

        response = client.post("/api/generate", json={"topic": "Automate your weekly report"}, headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["slug"] == "automate-weekly-report-chatgpt"
        assert data["attempts"] == 1
        assert data["quality_score"] == 10.0
        assert data["warnings"] == []

        saved = store.get_by_slug(data["slug"])
        assert saved.id == data["post_id"]
        assert saved.status == PostStatus.DRAFT
        assert [c.mode for c in scripted.calls] == ["complete"]

    def test_generate_without_body_discovers(self, client, wire, make_client, make_response, good_body):
        """Test that an empty body triggers autonomous discovery."""
        scripted = make_client(['[{"title": "Gemini in Docs"}]', '{"researchContext": "ctx"}', make_response(good_body)])
        wire(scripted)

        response = client.post("/api/generate", headers=HEADERS)

        assert response.status_code == 200
        assert [c.mode for c in scripted.calls] == ["search", "search", "complete"]

    def test_generate_excludes_published(self, client, wire, make_client, make_response, good_body, store):
        """Test that published slugs are passed to discovery."""
        store.create(PostCreate(slug="already-live", title="Already live", content="x", author="a", status=PostStatus.PUBLISHED))
        scripted = make_client(['[{"title": "Fresh topic"}]', "{}", make_response(good_body)])
        wire(scripted)

        client.post("/api/generate", headers=HEADERS)

        assert "already-live" in scripted.calls[0].prompt

    def test_generate_rejected_returns_report(self, client, wire, make_client):
        """Test that a failed run returns 422 with the diagnostic report."""
        wire(make_client(handler=lambda call: TransientModelError("503 unavailable")))

        response = client.post("/api/generate", json={"topic": "Anything"}, headers=HEADERS)

        assert response.status_code == 422
        data = response.json()
        assert data["error"].startswith("Generation failed at stage 'generating'")
        assert data["report"]["stage"] == "generating"
        assert data["report"]["attempts"] == 3

    def test_generate_rate_limited(self, client, wire, make_client, make_response, good_body):
        """Test that the sixth request in the window gets 429."""
        set_rate_limiter(SlidingWindowRateLimiter(limit=1, window_seconds=3600))
        wire(make_client([make_response(good_body)]))

        first = client.post("/api/generate", json={"topic": "One"}, headers=HEADERS)
        second = client.post("/api/generate", json={"topic": "Two"}, headers=HEADERS)

        assert first.status_code == 200
        assert second.status_code == 429

    def test_rate_limit_is_per_client_ip(self, client, wire, make_client, make_response, good_body):
        """Test that forwarded client addresses get separate windows."""
        set_rate_limiter(SlidingWindowRateLimiter(limit=1, window_seconds=3600))
        wire(make_client([make_response(good_body, slug="first-post"), make_response(good_body, slug="second-post")]))

        first = client.post("/api/generate", json={"topic": "One"}, headers={**HEADERS, "x-forwarded-for": "10.0.0.1"})
        second = client.post(
            "/api/generate", json={"topic": "Two"}, headers={**HEADERS, "x-forwarded-for": "10.0.0.2, 10.0.0.9"}
        )

        assert first.status_code == 200
        assert second.status_code == 200

    def test_generate_not_configured(self, client, make_client):
        """Test that a missing model credential maps to a 500 with a fixed message."""
        orchestrator = Mock()
        orchestrator.build_request.side_effect = ConfigurationMissingError("OPENAI_API_KEY is not set")
        set_orchestrator(orchestrator)

        response = client.post("/api/generate", headers=HEADERS)

        assert response.status_code == 500
        assert response.json() == {"error": "AI service not configured"}

    def test_generate_unexpected_error(self, store):
        """Test that unexpected errors map to a generic 500."""
        orchestrator = Mock()
        orchestrator.build_request.side_effect = RuntimeError("boom")
        set_orchestrator(orchestrator)
        client = TestClient(create_app(), raise_server_exceptions=False)

        response = client.post("/api/generate", headers=HEADERS)

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate content"}
