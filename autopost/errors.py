"""Exception taxonomy for the content pipeline."""

from typing import List, Optional

from .models import GenerationReport


class AutopostError(Exception):
    """Base error for the content pipeline."""


class ConfigurationMissingError(AutopostError):
    """A required capability (e.g. a model credential) is not configured."""


class ModelError(AutopostError):
    """A classified failure from a language model call.

    Attributes:
        retry_after: Server-suggested delay in seconds, if any.
    """

    kind = "model"

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class QuotaExceededError(ModelError):
    """The backend reports rate or quota exhaustion for a model."""

    kind = "quota"


class TransientModelError(ModelError):
    """Network or server-side failure that may succeed on retry."""

    kind = "transient"


class FatalModelError(ModelError):
    """A failure retrying cannot fix (auth, bad request, unknown model)."""

    kind = "fatal"


class ModelFallbackError(AutopostError):
    """Every model in the fallback chain failed."""

    def __init__(self, models: List[str], attempts: int, last_error: Optional[BaseException]):
        self.models = list(models)
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"All models failed ({', '.join(self.models)}) after {attempts} attempt(s): {last_error}"
        )


class ParseFailure(AutopostError):
    """Structured output could not be coerced into a result by any repair tier."""


class DuplicateSlugError(AutopostError):
    """A post with the same slug already exists in the store."""


class PipelineRunError(AutopostError):
    """A pipeline run ended without an accepted post.

    Attributes:
        report: Structured diagnostic payload for the operator.
    """

    def __init__(self, report: GenerationReport):
        self.report = report
        super().__init__(report.summary())


class GenerationFailedError(PipelineRunError):
    """Generation raised on every attempt."""


class QualityRejectedError(PipelineRunError):
    """The last attempt still failed the quality rubric."""


class ValidationRejectedError(PipelineRunError):
    """The quality-accepted draft failed pre-publish validation."""
