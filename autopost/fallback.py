"""Ordered model fallback with bounded per-model retries."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt

from .config import BACKOFF_BASE_MS, MAX_RETRIES
from .errors import FatalModelError, ModelError, ModelFallbackError, QuotaExceededError, TransientModelError
from .llm import LanguageModelClient, ModelOptions, classify_model_error
from .metrics import record_model_call

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelRunResult:
    """Text returned by the first successful model."""

    text: str
    model_used: str


class ModelFallbackRunner:
    """Try models in order until one returns non-empty text.

    Per model, up to ``max_retries`` attempts are made through a tenacity
    ``Retrying`` policy. Quota and fatal errors abandon the model immediately;
    transient errors back off for
    ``max(retry_after, 2**attempt * backoff_base_ms)`` before retrying.
    """

    def __init__(
        self,
        client: LanguageModelClient,
        models: Sequence[str],
        max_retries: int = MAX_RETRIES,
        backoff_base_ms: int = BACKOFF_BASE_MS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not models:
            raise ValueError("At least one model is required")
        if max_retries < 1:
            raise ValueError(f"max_retries must be positive, got {max_retries}")
        self.client = client
        self.models: List[str] = list(models)
        self.max_retries = max_retries
        self.backoff_base_ms = backoff_base_ms
        self._sleep = sleep

    def backoff_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Seconds to wait after a transient failure on ``attempt`` (1-based)."""
        backoff = (2**attempt) * self.backoff_base_ms / 1000.0
        return max(retry_after or 0.0, backoff)

    def _call(self, model: str, prompt: str, system_instruction: str, options: ModelOptions) -> str:
        if options.search_grounded:
            return self.client.search_complete(model, prompt, system_instruction, options)
        return self.client.complete(model, prompt, system_instruction, options)

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception()
        return self.backoff_delay(retry_state.attempt_number, getattr(error, "retry_after", None))

    def _retrying(self, model: str) -> Retrying:
        """Per-model retry policy: only transient errors are retried."""

        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            logger.error(f"Attempt {retry_state.attempt_number}/{self.max_retries} ({model}) failed: {error}")
            logger.info(f"Retrying {model} in {retry_state.next_action.sleep:.1f}s...")

        return Retrying(
            stop=stop_after_attempt(self.max_retries),
            retry=retry_if_exception_type(TransientModelError),
            wait=self._wait,
            sleep=self._sleep,
            before_sleep=log_retry,
            reraise=True,
        )

    def run(self, prompt: str, system_instruction: str = "", options: Optional[ModelOptions] = None) -> ModelRunResult:
        """Run the prompt against the fallback chain.

        Args:
            prompt: User prompt (must not be empty).
            system_instruction: System/persona instruction.
            options: Generation options; set ``json_mode`` for structured output.

        Returns:
            ModelRunResult with the text and the model that produced it.

        Raises:
            ValueError: If the prompt is empty.
            ModelFallbackError: If every model exhausts its attempts.
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be empty")
        options = options or ModelOptions()

        last_error: Optional[BaseException] = None
        total_attempts = 0

        def attempt(model: str) -> str:
            nonlocal total_attempts
            total_attempts += 1
            try:
                text = self._call(model, prompt, system_instruction, options)
                if not text or not text.strip():
                    raise TransientModelError(f"Empty response from {model}")
            except Exception as e:
                error = classify_model_error(e)
                record_model_call(model, error.kind)
                raise error
            return text

        for model in self.models:
            logger.info(f"Trying model: {model}")
            try:
                text = self._retrying(model)(attempt, model)
            except QuotaExceededError as e:
                last_error = e
                logger.warning(f"Model {model} quota exhausted, trying next model...")
                continue
            except FatalModelError as e:
                last_error = e
                logger.error(f"Model {model} failed permanently, trying next model: {e}")
                continue
            except ModelError as e:
                last_error = e
                logger.error(f"Model {model} failed after {self.max_retries} attempt(s): {e}")
                continue

            record_model_call(model, "success")
            logger.info(f"Success with model: {model}")
            return ModelRunResult(text=text, model_used=model)

        logger.error(f"All models failed after {total_attempts} attempt(s): {last_error}")
        raise ModelFallbackError(self.models, total_attempts, last_error)
