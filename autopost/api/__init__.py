"""HTTP trigger for the content pipeline."""

from .app import create_app
from .dependencies import get_orchestrator, get_post_store, get_rate_limiter
from .routes import router

__all__ = [
    "create_app",
    "router",
    "get_orchestrator",
    "get_post_store",
    "get_rate_limiter",
]
