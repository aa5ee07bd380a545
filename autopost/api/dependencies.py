"""Dependency injection for the API layer.

This module provides the post store, orchestrator, rate limiter and admin
token used by the routes. Each can be replaced for testing.
"""

import os
from typing import Generator, Optional

from ..config import PipelineConfig
from ..llm import ChatModelClient
from ..orchestrator import GenerationOrchestrator
from ..persistence import PostStore, SQLitePostStore, SQLiteSettingsStore, create_post_store
from ..rate_limit import GENERATE_LIMIT, GENERATE_WINDOW_SECONDS, SlidingWindowRateLimiter

# Global instances (can be replaced for testing)
_post_store: Optional[PostStore] = None
_orchestrator: Optional[GenerationOrchestrator] = None
_rate_limiter: Optional[SlidingWindowRateLimiter] = None
_admin_token: Optional[str] = None


def get_post_store() -> Generator[PostStore, None, None]:
    """Get the post store instance.

    This is a FastAPI dependency that provides the store.
    """
    global _post_store
    if _post_store is None:
        _post_store = create_post_store()
    yield _post_store


def get_orchestrator() -> GenerationOrchestrator:
    """Get the orchestrator, building it from the environment on first use.

    Raises:
        ConfigurationMissingError: If no model credential is configured.
    """
    global _orchestrator, _post_store
    if _orchestrator is None:
        if _post_store is None:
            _post_store = create_post_store()
        settings_store = SQLiteSettingsStore(_post_store) if isinstance(_post_store, SQLitePostStore) else None
        _orchestrator = GenerationOrchestrator.from_client(
            ChatModelClient(),
            PipelineConfig.from_env(),
            post_store=_post_store,
            settings_store=settings_store,
        )
    return _orchestrator


def get_rate_limiter() -> SlidingWindowRateLimiter:
    """Get the generation rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = SlidingWindowRateLimiter(GENERATE_LIMIT, GENERATE_WINDOW_SECONDS)
    return _rate_limiter


def get_admin_token() -> Optional[str]:
    """Admin token required by the generate route (``AUTOPOST_ADMIN_TOKEN``)."""
    return _admin_token if _admin_token is not None else os.environ.get("AUTOPOST_ADMIN_TOKEN")


def set_post_store(store: PostStore) -> None:
    """Set the post store instance (for testing)."""
    global _post_store
    _post_store = store


def set_orchestrator(orchestrator: GenerationOrchestrator) -> None:
    """Set the orchestrator instance (for testing)."""
    global _orchestrator
    _orchestrator = orchestrator


def set_rate_limiter(limiter: SlidingWindowRateLimiter) -> None:
    """Set the rate limiter instance (for testing)."""
    global _rate_limiter
    _rate_limiter = limiter


def set_admin_token(token: Optional[str]) -> None:
    """Set the admin token (for testing)."""
    global _admin_token
    _admin_token = token


def reset_dependencies() -> None:
    """Reset all dependencies to None (for testing)."""
    global _post_store, _orchestrator, _rate_limiter, _admin_token
    if _post_store:
        _post_store.close()
        _post_store = None
    _orchestrator = None
    _rate_limiter = None
    _admin_token = None
