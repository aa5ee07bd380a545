"""FastAPI application factory for the autopost trigger API."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..errors import ConfigurationMissingError
from .routes import router

logger = logging.getLogger(__name__)


def create_app(
    title: str = "Autopost API",
    description: str = "HTTP trigger for the autonomous content pipeline",
    version: str = "0.1.0",
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        title: API title for OpenAPI docs.
        description: API description for OpenAPI docs.
        version: API version.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title=title,
        description=description,
        version=version,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )

    app.include_router(router)

    @app.get("/", tags=["root"])
    async def root() -> dict:
        """Root endpoint with API information."""
        return {"name": title, "version": version, "docs": "/docs"}

    @app.exception_handler(ConfigurationMissingError)
    async def configuration_missing_handler(request: Request, exc: ConfigurationMissingError):
        """Report an unconfigured model backend."""
        logger.error(f"Pipeline not configured: {exc}")
        return JSONResponse(status_code=500, content={"error": "AI service not configured"})

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.error(f"Unhandled exception: {type(exc).__name__}: {exc}")
        return JSONResponse(status_code=500, content={"error": "Failed to generate content"})

    logger.info(f"Created FastAPI app: {title} v{version}")
    return app
