"""Language model client capability.

The pipeline talks to text-generation backends only through
:class:`LanguageModelClient`. A client exposes two modes:

1. ``complete`` - plain completion (optionally JSON mode)
2. ``search_complete`` - completion grounded in live web search results

Clients raise classified :class:`~autopost.errors.ModelError` subclasses so
the fallback runner can decide between skipping a model and retrying it.

Example:
    client = ChatModelClient()
    text = client.complete("gpt-4o-mini", "Write a haiku", "You are a poet", ModelOptions())
"""

import logging
import os
import re
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import openai
from cachetools import TTLCache
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI
from tavily import TavilyClient

from .config import (
    GENERATION_MAX_TOKENS,
    GENERATION_TEMPERATURE,
    MODEL_TIMEOUT_SECONDS,
    SEARCH_CACHE_SIZE,
    SEARCH_CACHE_TTL_SECONDS,
)
from .errors import (
    ConfigurationMissingError,
    FatalModelError,
    ModelError,
    QuotaExceededError,
    TransientModelError,
)

logger = logging.getLogger(__name__)

_RETRY_IN_PATTERN = re.compile(r"retry in ([\d.]+)\s*s", re.IGNORECASE)
_QUOTA_MARKERS = ("429", "quota", "limit: 0", "rate limit", "rate_limit", "resource_exhausted")
_TRANSIENT_MARKERS = ("timeout", "timed out", "connection", "503", "502", "500", "overloaded", "unavailable")


@dataclass(frozen=True)
class ModelOptions:
    """Per-call generation options.

    Attributes:
        temperature: Sampling temperature.
        max_output_tokens: Output token cap.
        json_mode: Ask the backend for a JSON object response.
        search_grounded: Ground the call in live web search results.
        search_query: Query for the search step (defaults to the prompt head).
    """

    temperature: float = GENERATION_TEMPERATURE
    max_output_tokens: int = GENERATION_MAX_TOKENS
    json_mode: bool = False
    search_grounded: bool = False
    search_query: Optional[str] = None


class LanguageModelClient(ABC):
    """Base class for text-generation backends.

    Subclasses return raw response text or raise a classified ModelError.
    """

    name: str = ""

    @abstractmethod
    def complete(self, model: str, prompt: str, system_instruction: str, options: ModelOptions) -> str:
        """Run a plain completion.

        Args:
            model: Backend model identifier.
            prompt: User prompt (must not be empty).
            system_instruction: System/persona instruction.
            options: Generation options.

        Returns:
            Raw response text.

        Raises:
            ModelError: Classified as quota, transient, or fatal.
        """
        pass

    @abstractmethod
    def search_complete(self, model: str, prompt: str, system_instruction: str, options: ModelOptions) -> str:
        """Run a completion grounded in web search results.

        Args and return value are as for :meth:`complete`.
        """
        pass


def parse_retry_after(exc: BaseException) -> Optional[float]:
    """Extract a server-suggested retry delay in seconds, if the error carries one."""
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if headers is not None:
        value = headers.get("retry-after")
        if value:
            try:
                return float(value)
            except ValueError:
                logger.debug(f"Ignoring non-numeric retry-after header: {value!r}")

    match = _RETRY_IN_PATTERN.search(str(exc))
    if match:
        return float(match.group(1))
    return None


def classify_model_error(exc: BaseException) -> ModelError:
    """Map a backend exception onto the quota / transient / fatal taxonomy.

    Args:
        exc: The exception raised by the backend SDK.

    Returns:
        A ModelError subclass instance chained to the original exception.
    """
    if isinstance(exc, ModelError):
        return exc

    message = f"{type(exc).__name__}: {exc}"
    retry_after = parse_retry_after(exc)

    if isinstance(exc, openai.RateLimitError):
        classified: ModelError = QuotaExceededError(message, retry_after)
    elif isinstance(exc, (openai.APIConnectionError, openai.InternalServerError)):
        classified = TransientModelError(message, retry_after)
    elif isinstance(
        exc,
        (
            openai.AuthenticationError,
            openai.PermissionDeniedError,
            openai.NotFoundError,
            openai.BadRequestError,
        ),
    ):
        classified = FatalModelError(message, retry_after)
    else:
        lowered = str(exc).lower()
        if any(marker in lowered for marker in _QUOTA_MARKERS):
            classified = QuotaExceededError(message, retry_after)
        elif any(marker in lowered for marker in _TRANSIENT_MARKERS):
            classified = TransientModelError(message, retry_after)
        else:
            # Unknown failures get the bounded retry treatment
            classified = TransientModelError(message, retry_after)

    classified.__cause__ = exc
    return classified


def _response_text(content: Any) -> str:
    """Flatten a chat message content payload into text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: List[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return str(content or "")


class ChatModelClient(LanguageModelClient):
    """LangChain/OpenAI chat backend with Tavily search grounding.

    Note:
        Search grounding needs TAVILY_API_KEY. Without it, search-grounded
        calls degrade to plain completion and a warning is logged.
    """

    name = "openai"
    env_key = "OPENAI_API_KEY"
    search_env_key = "TAVILY_API_KEY"

    def __init__(
        self,
        api_key: Optional[str] = None,
        search_api_key: Optional[str] = None,
        timeout: float = MODEL_TIMEOUT_SECONDS,
        max_search_results: int = 5,
        search_cache_ttl: float = SEARCH_CACHE_TTL_SECONDS,
        timer: Callable[[], float] = time.monotonic,
    ):
        """Initialize the client.

        Args:
            api_key: OpenAI-compatible API key. Defaults to OPENAI_API_KEY.
            search_api_key: Tavily API key. Defaults to TAVILY_API_KEY.
            timeout: Per-request timeout in seconds.
            max_search_results: Results fetched for each grounding search.
            search_cache_ttl: Seconds a query's search results are reused.
            timer: Clock for cache expiry.

        Raises:
            ConfigurationMissingError: If no model credential is available.
        """
        self.api_key = api_key or os.environ.get(self.env_key)
        if not self.api_key:
            raise ConfigurationMissingError(f"{self.env_key} is not set")
        self.search_api_key = search_api_key or os.environ.get(self.search_env_key)
        self.timeout = timeout
        self.max_search_results = max_search_results
        self._search_cache: TTLCache = TTLCache(maxsize=SEARCH_CACHE_SIZE, ttl=search_cache_ttl, timer=timer)
        self._search_lock = threading.Lock()

    def get_llm(self, model: str, options: ModelOptions) -> Any:
        """Get a configured chat model for one call.

        SDK-level retries are disabled; retry policy belongs to the fallback runner.
        """
        llm = ChatOpenAI(
            model=model,
            temperature=options.temperature,
            max_tokens=options.max_output_tokens,
            timeout=self.timeout,
            max_retries=0,
            api_key=self.api_key,
        )
        if options.json_mode:
            return llm.bind(response_format={"type": "json_object"})
        return llm

    def _invoke(self, model: str, prompt: str, system_instruction: str, options: ModelOptions) -> str:
        template = ChatPromptTemplate.from_messages(
            [
                ("system", "{system_instruction}"),
                ("human", "{prompt}"),
            ]
        )
        chain = template | self.get_llm(model, options)
        try:
            response = chain.invoke({"system_instruction": system_instruction, "prompt": prompt})
        except Exception as e:
            raise classify_model_error(e) from e
        return _response_text(getattr(response, "content", response))

    def complete(self, model: str, prompt: str, system_instruction: str, options: ModelOptions) -> str:
        return self._invoke(model, prompt, system_instruction, options)

    def search(self, query: str) -> str:
        """Run a web search and render the results as a grounding block.

        Returns an empty string when search is unavailable or fails.
        """
        with self._search_lock:
            cached = self._search_cache.get(query)
        if cached is not None:
            return cached

        if not self.search_api_key:
            logger.warning(f"Warning: {self.search_env_key} not set, search grounding disabled")
            return ""

        try:
            client = TavilyClient(api_key=self.search_api_key)
            response = client.search(query=query, max_results=self.max_search_results)
        except Exception as e:
            # Search is an enrichment; the model call still proceeds ungrounded
            logger.error(f"Error running grounding search: {type(e).__name__}: {e}")
            return ""

        lines = []
        for i, result in enumerate(response.get("results", []), 1):
            title = result.get("title", "")
            url = result.get("url", "")
            content = (result.get("content", "") or "")[:500]
            lines.append(f"[{i}] {title} ({url})\n{content}")

        grounding = "\n\n".join(lines)
        with self._search_lock:
            self._search_cache[query] = grounding
        logger.info(f"Grounding search returned {len(lines)} results for: {query[:80]}")
        return grounding

    def search_complete(self, model: str, prompt: str, system_instruction: str, options: ModelOptions) -> str:
        query = options.search_query or prompt.strip().splitlines()[0][:300]
        grounding = self.search(query)
        if grounding:
            prompt = f"WEB SEARCH RESULTS (current, use these as your source of truth):\n\n{grounding}\n\n---\n\n{prompt}"
        return self._invoke(model, prompt, system_instruction, options)
