"""Prometheus metrics and OpenTelemetry tracing for the content pipeline.

Usage:
    from autopost.metrics import track_pipeline_run, record_quality_check

    with track_pipeline_run(mode="autonomous") as outcome:
        ...
        outcome["status"] = "done"
"""

import logging
import time
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Dict, Generator, Optional

from opentelemetry import trace
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# ============================================================================
# Prometheus Metrics Definitions
# ============================================================================

pipeline_runs_total = Counter(
    "autopost_pipeline_runs_total",
    "Total number of pipeline runs by outcome",
    ["mode", "status"],
)

pipeline_run_duration_seconds = Histogram(
    "autopost_pipeline_run_duration_seconds",
    "Pipeline run duration in seconds",
    ["status"],
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800),
)

generation_attempts_total = Counter(
    "autopost_generation_attempts_total",
    "Total number of generation attempts",
    ["outcome"],  # generated, parse_failed, model_failed
)

model_calls_total = Counter(
    "autopost_model_calls_total",
    "Total number of language model calls",
    ["model", "outcome"],  # success, quota, transient, fatal
)

fallback_topics_total = Counter(
    "autopost_fallback_topics_total",
    "Times discovery or research degraded to fallback data",
    ["stage"],
)

quality_checks_total = Counter(
    "autopost_quality_checks_total",
    "Total number of quality checks",
    ["passed"],
)

quality_score = Histogram(
    "autopost_quality_score",
    "Distribution of rubric scores",
    buckets=(0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10),
)

validation_issues_total = Counter(
    "autopost_validation_issues_total",
    "Total number of pre-publish validation issues",
    ["rule", "severity"],
)

# ============================================================================
# OpenTelemetry Tracing
# ============================================================================

_tracer: Optional[Any] = None


def get_tracer(name: str = "autopost") -> Any:
    """Get or create an OpenTelemetry tracer.

    Without a configured SDK the API returns a no-op tracer.
    """
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(name)
    return _tracer


# ============================================================================
# Instrumentation Helpers
# ============================================================================


@contextmanager
def track_pipeline_run(mode: str = "autonomous") -> Generator[Dict[str, str], None, None]:
    """Context manager to track a pipeline run.

    The caller sets ``outcome["status"]`` before leaving the block; an
    exception raised before a status was set records the run as failed.

    Args:
        mode: "autonomous" or "manual".
    """
    tracer = get_tracer()
    start_time = time.time()
    outcome = {"status": "unknown"}

    try:
        with tracer.start_as_current_span("pipeline.run", attributes={"pipeline.mode": mode}) as span:
            yield outcome
            span.set_attribute("pipeline.status", outcome["status"])
    except Exception as e:
        if outcome["status"] == "unknown":
            outcome["status"] = f"failed:{type(e).__name__}"
        raise
    finally:
        duration = time.time() - start_time
        status = outcome["status"].split(":", 1)[0]
        pipeline_runs_total.labels(mode=mode, status=status).inc()
        pipeline_run_duration_seconds.labels(status=status).observe(duration)


def record_model_call(model: str, outcome: str) -> None:
    """Record one language model call outcome."""
    model_calls_total.labels(model=model, outcome=outcome).inc()


def record_generation_attempt(outcome: str) -> None:
    """Record one generation attempt outcome."""
    generation_attempts_total.labels(outcome=outcome).inc()


def record_fallback(stage: str) -> None:
    """Record discovery/research degrading to fallback data."""
    fallback_topics_total.labels(stage=stage).inc()


def record_quality_check(score: float, passed: bool) -> None:
    """Record a rubric evaluation."""
    quality_checks_total.labels(passed=str(passed).lower()).inc()
    quality_score.observe(score)


def record_validation_issue(rule: str, severity: str) -> None:
    """Record a pre-publish validation issue."""
    validation_issues_total.labels(rule=rule, severity=severity).inc()


def traced(name: Optional[str] = None, attributes: Optional[dict] = None) -> Callable:
    """Decorator to add tracing to a function.

    Example:
        @traced("discovery.discover")
        def discover(...):
            ...
    """

    def decorator(func: Callable) -> Callable:
        span_name = name or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            tracer = get_tracer()
            with tracer.start_as_current_span(span_name, attributes=attributes or {}):
                return func(*args, **kwargs)

        return wrapper

    return decorator
