"""API routes for triggering the content pipeline.

This module defines the HTTP trigger for a pipeline run and a health check.
"""

import hmac
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..errors import PipelineRunError
from ..models import ValidationIssue
from ..orchestrator import GenerationOrchestrator, save_post
from ..persistence import PostStore
from ..rate_limit import SlidingWindowRateLimiter
from .dependencies import get_admin_token, get_orchestrator, get_post_store, get_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["pipeline"])


class GenerateBody(BaseModel):
    """Optional body for the generate route."""

    topic: Optional[str] = None


class GenerateResponse(BaseModel):
    """Summary of the draft created by a run."""

    success: bool = True
    post_id: str
    slug: str
    title: str
    quality_score: float
    attempts: int
    scheduled_for: Optional[datetime] = None
    warnings: List[ValidationIssue] = []


def client_ip(request: Request) -> str:
    """First ``X-Forwarded-For`` hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def require_admin(x_admin_token: Optional[str] = Header(None, description="Admin token")) -> None:
    """Reject requests without the configured admin token."""
    expected = get_admin_token()
    if not expected or not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def enforce_rate_limit(request: Request, limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter)) -> None:
    """Per-client-IP sliding window limit."""
    ip = client_ip(request)
    if not limiter.check(ip):
        logger.warning(f"Rate limit exceeded for {ip}")
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")


@router.post(
    "/generate",
    response_model=GenerateResponse,
    summary="Run the content pipeline",
    description="Discover (or take) a topic, generate, score, validate and save a draft post.",
    dependencies=[Depends(require_admin), Depends(enforce_rate_limit)],
)
def generate(
    body: Optional[GenerateBody] = Body(None),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    store: PostStore = Depends(get_post_store),
):
    """Run the pipeline once and save the resulting draft."""
    manual_topic = body.topic if body else None
    request = orchestrator.build_request(manual_topic)

    try:
        post = orchestrator.run(request)
    except PipelineRunError as e:
        return JSONResponse(
            status_code=422,
            content={"error": str(e), "report": e.report.model_dump(mode="json")},
        )

    post_id, post = save_post(store, post)
    logger.info(f"Saved draft {post_id} ({post.slug})")
    return GenerateResponse(
        post_id=post_id,
        slug=post.slug,
        title=post.title,
        quality_score=post.quality_score,
        attempts=post.attempts,
        scheduled_for=post.scheduled_for,
        warnings=post.warnings,
    )


@router.get(
    "/health",
    summary="Health check",
    description="Check if the API and its post store are healthy.",
)
def health_check(store: PostStore = Depends(get_post_store)) -> dict:
    """Health check endpoint."""
    healthy = store.health_check()
    return {
        "status": "healthy" if healthy else "degraded",
        "database": "connected" if healthy else "disconnected",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
