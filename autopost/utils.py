"""Utility functions for the content pipeline."""

import json
import math
import re
import time
from datetime import datetime, timezone
from typing import Any, Iterable, List

from slugify import slugify as python_slugify

# Characters that must not dangle at the end of a truncated string
_DANGLING = " \t\n,;:-–—/&|([{"
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_FENCE_OPEN = re.compile(r"^\s*```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```\s*$")


def slugify(text: str, max_length: int = 60) -> str:
    """Convert text to a lowercase, hyphenated, URL-friendly slug.

    Args:
        text: The text to convert to a slug.
        max_length: Maximum slug length; truncation happens at a hyphen.

    Returns:
        A URL-friendly slug version of the text.
    """
    return python_slugify(text, max_length=max_length, word_boundary=True)


def trim_to_word_boundary(text: str, max_length: int) -> str:
    """Truncate text to at most ``max_length`` characters without splitting a word.

    If the text fits it is returned stripped. Otherwise the cut backtracks to
    the last space, provided that space lies within the last 40% of the
    allowed length; failing that the cut is hard. Trailing punctuation that
    would dangle (commas, hyphens, colons, semicolons) is removed.

    Args:
        text: The text to truncate.
        max_length: Maximum number of characters in the result.

    Returns:
        The truncated text, never longer than ``max_length``.
    """
    if max_length <= 0:
        return ""
    text = " ".join((text or "").split())
    if len(text) <= max_length:
        return text.rstrip(_DANGLING)

    cut = text[:max_length]
    if text[max_length] != " ":
        boundary = cut.rfind(" ")
        if boundary >= int(max_length * 0.6):
            cut = cut[:boundary]
    return cut.rstrip(_DANGLING)


def word_count(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


def reading_time(text: str, words_per_minute: int = 200) -> str:
    """Estimate reading time, e.g. ``"3 min read"``."""
    minutes = max(1, math.ceil(word_count(text) / words_per_minute))
    return f"{minutes} min read"


def plain_text(markdown: str) -> str:
    """Strip the most common markdown markers and collapse whitespace."""
    text = re.sub(r"\[([^\]]*)\]\([^)]*\)", r"\1", markdown)
    text = re.sub(r"[#*`>_]", " ", text)
    return " ".join(text.split())


def clean_json_text(raw: str, opening: str = "{") -> str:
    """Normalize LLM output into a parseable JSON string.

    Strips markdown fence wrappers, extracts the outermost object (or array
    when ``opening`` is ``"["``), drops control characters other than
    newline, carriage return and tab, and removes trailing commas before a
    closing bracket.

    Args:
        raw: The raw model response.
        opening: ``"{"`` to extract an object, ``"["`` to extract an array.

    Returns:
        The cleaned JSON candidate string (may still be invalid JSON).
    """
    closing = "}" if opening == "{" else "]"
    cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", raw or "")).strip()

    start = cleaned.find(opening)
    end = cleaned.rfind(closing)
    if start != -1 and end > start:
        cleaned = cleaned[start : end + 1]

    cleaned = _CONTROL_CHARS.sub(" ", cleaned)
    cleaned = _TRAILING_COMMA.sub(r"\1", cleaned)
    return cleaned


def load_json(raw: str, opening: str = "{") -> Any:
    """Clean and parse LLM JSON output.

    Raises:
        json.JSONDecodeError: If the cleaned text is still not valid JSON.
    """
    # strict=False tolerates raw newlines/tabs inside strings
    return json.loads(clean_json_text(raw, opening), strict=False)


def coerce_str_list(value: Any, limit: int = 0) -> List[str]:
    """Coerce a JSON value into a list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = [v for v in re.split(r"\s*,\s*", value)]
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        items = [value]
    result = [str(item).strip() for item in items if item is not None and str(item).strip()]
    return result[:limit] if limit else result


def now_utc() -> datetime:
    """Current timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def epoch_millis() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)
