"""Autopost package: autonomous blog content pipeline.

Requires Python 3.9 or higher.
"""

from .config import PipelineConfig, ProductPromo
from .discovery import TopicDiscovery, TopicResearcher, build_research_context, discover_and_research
from .errors import (
    AutopostError,
    ConfigurationMissingError,
    DuplicateSlugError,
    FatalModelError,
    GenerationFailedError,
    ModelError,
    ModelFallbackError,
    ParseFailure,
    PipelineRunError,
    QualityRejectedError,
    QuotaExceededError,
    TransientModelError,
    ValidationRejectedError,
)
from .fallback import ModelFallbackRunner, ModelRunResult
from .generator import StructuredGenerator, parse_generation_output
from .llm import ChatModelClient, LanguageModelClient, ModelOptions, classify_model_error
from .models import (
    CandidateTopic,
    GeneratedPost,
    GenerationOutput,
    GenerationReport,
    GenerationRequest,
    QualityCheck,
    RunStage,
    Severity,
    SinglePassResult,
    TopicResearch,
    ValidationIssue,
    ValidationResult,
)
from .orchestrator import (
    GenerationOrchestrator,
    build_exclusion_list,
    resolve_generation_request,
    resolve_slug,
    save_post,
)
from .persistence import (
    MemoryPostStore,
    Post,
    PostCreate,
    PostStatus,
    PostStore,
    SettingsStore,
    SiteSettings,
    SQLitePostStore,
    SQLiteSettingsStore,
    StaticSettingsStore,
    create_post_store,
)
from .quality import check_content_quality
from .rate_limit import SlidingWindowRateLimiter
from .sanitize import sanitize_content
from .utils import slugify, trim_to_word_boundary
from .validation import validate_post

# Metrics and Observability
from .metrics import get_tracer, track_pipeline_run, traced

__all__ = [
    # Config
    "PipelineConfig",
    "ProductPromo",
    # Model client
    "LanguageModelClient",
    "ChatModelClient",
    "ModelOptions",
    "classify_model_error",
    "ModelFallbackRunner",
    "ModelRunResult",
    # Pipeline stages
    "TopicDiscovery",
    "TopicResearcher",
    "build_research_context",
    "discover_and_research",
    "StructuredGenerator",
    "parse_generation_output",
    "sanitize_content",
    "check_content_quality",
    "validate_post",
    "GenerationOrchestrator",
    "build_exclusion_list",
    "resolve_generation_request",
    "resolve_slug",
    "save_post",
    # Models
    "CandidateTopic",
    "TopicResearch",
    "GenerationRequest",
    "SinglePassResult",
    "GenerationOutput",
    "QualityCheck",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "RunStage",
    "GenerationReport",
    "GeneratedPost",
    # Errors
    "AutopostError",
    "ConfigurationMissingError",
    "ModelError",
    "QuotaExceededError",
    "TransientModelError",
    "FatalModelError",
    "ModelFallbackError",
    "ParseFailure",
    "DuplicateSlugError",
    "PipelineRunError",
    "GenerationFailedError",
    "QualityRejectedError",
    "ValidationRejectedError",
    # Persistence Layer
    "PostStore",
    "SettingsStore",
    "StaticSettingsStore",
    "MemoryPostStore",
    "SQLitePostStore",
    "SQLiteSettingsStore",
    "create_post_store",
    "Post",
    "PostCreate",
    "PostStatus",
    "SiteSettings",
    # Utils
    "SlidingWindowRateLimiter",
    "slugify",
    "trim_to_word_boundary",
    # Metrics and Observability
    "get_tracer",
    "traced",
    "track_pipeline_run",
]
