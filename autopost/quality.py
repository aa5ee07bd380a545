"""Deterministic quality rubric for generated article bodies.

The rubric starts from ``QUALITY_SCALE_MAX`` and subtracts a fixed weight
per failed check. Hard issues always block a pass; soft findings only cost
points and surface as suggestions. A body passes when the score reaches
``QUALITY_PASS_THRESHOLD`` and no hard issue was found.
"""

import logging
import re
from typing import Dict, List

from .config import DEFAULT_MIN_WORDS, QUALITY_PASS_THRESHOLD, QUALITY_SCALE_MAX
from .models import QualityCheck
from .utils import word_count

logger = logging.getLogger(__name__)

# Deductions on the 0-10 scale
RUBRIC_WEIGHTS: Dict[str, float] = {
    "word_count": 3.0,
    "headers": 2.0,
    "links": 1.0,
    "code_examples": 1.0,
    "duplicate_sentences": 3.0,
    "generic_intro": 2.0,
    "call_to_action": 0.5,
}

MIN_SECTION_HEADERS = 2
MAX_DUPLICATE_RATIO = 0.10
INTRO_WINDOW = 200
MIN_SENTENCE_CHARS = 10

GENERIC_INTRO_PHRASES = [
    "in today's rapidly evolving",
    "in the rapidly evolving",
    "in today's digital world",
    "in today's world",
    "in today's fast-paced",
    "in the ever-changing",
    "artificial intelligence is transforming",
    "it goes without saying",
    "without further ado",
    "buckle up",
    "fasten your seatbelt",
    "are you ready?",
    "in this article",
    "in this blog post",
    "let's dive in",
]

CALL_TO_ACTION_VERBS = ("try", "build", "share", "subscribe")

_HEADER = re.compile(r"^#{2,3}\s+\S", re.MULTILINE)
_LINK = re.compile(r"\[[^\]]+\]\([^)\s]+\)")
_FENCE = re.compile(r"^\s*```", re.MULTILINE)
_MENTIONS_CODE = re.compile(r"\b(?:code|examples?)\b")
_CTA = re.compile(r"\b(?:" + "|".join(CALL_TO_ACTION_VERBS) + r")\b")


def split_sentences(text: str) -> List[str]:
    """Split on ``.!?`` and keep normalized fragments longer than 10 characters."""
    sentences = []
    for fragment in re.split(r"[.!?]+", text):
        normalized = " ".join(fragment.lower().split())
        if len(normalized) > MIN_SENTENCE_CHARS:
            sentences.append(normalized)
    return sentences


def duplicate_ratio(text: str) -> float:
    """Share of sentences that repeat an earlier sentence (0.0 when there are none)."""
    sentences = split_sentences(text)
    if not sentences:
        return 0.0
    return 1.0 - len(set(sentences)) / len(sentences)


def _normalize_quotes(text: str) -> str:
    return text.replace("’", "'").replace("‘", "'")


def check_content_quality(content: str, min_words: int = DEFAULT_MIN_WORDS) -> QualityCheck:
    """Score a body against the rubric.

    Args:
        content: The markdown body.
        min_words: Minimum acceptable word count.

    Returns:
        QualityCheck with score, pass flag, hard issues and soft suggestions.
    """
    issues: List[str] = []
    suggestions: List[str] = []
    score = QUALITY_SCALE_MAX
    lower = _normalize_quotes(content.lower())

    words = word_count(content)
    if words < min_words:
        score -= RUBRIC_WEIGHTS["word_count"]
        issues.append(f"Too short: {words} words (need at least {min_words})")

    headers = len(_HEADER.findall(content))
    if headers < MIN_SECTION_HEADERS:
        score -= RUBRIC_WEIGHTS["headers"]
        issues.append(f"Only {headers} section headers (need at least {MIN_SECTION_HEADERS} ## or ### headings)")

    if not _LINK.search(content):
        score -= RUBRIC_WEIGHTS["links"]
        suggestions.append("Add at least one markdown link (official tool site or related post)")

    if not _FENCE.search(content) and _MENTIONS_CODE.search(lower):
        score -= RUBRIC_WEIGHTS["code_examples"]
        suggestions.append("Mentions code or examples but shows none; include a concrete example")

    ratio = duplicate_ratio(content)
    if ratio > MAX_DUPLICATE_RATIO:
        score -= RUBRIC_WEIGHTS["duplicate_sentences"]
        issues.append(f"Repetitive content: {ratio:.0%} of sentences are duplicates")

    intro = lower[:INTRO_WINDOW]
    for phrase in GENERIC_INTRO_PHRASES:
        if phrase in intro:
            score -= RUBRIC_WEIGHTS["generic_intro"]
            issues.append(f"Generic AI-style intro phrase: \"{phrase}\"")
            break

    if not _CTA.search(lower):
        score -= RUBRIC_WEIGHTS["call_to_action"]
        suggestions.append(f"End with a call to action ({', '.join(CALL_TO_ACTION_VERBS)})")

    score = max(0.0, min(QUALITY_SCALE_MAX, round(score, 2)))
    passed = score >= QUALITY_PASS_THRESHOLD and not issues

    logger.debug(f"Quality score {score}/{QUALITY_SCALE_MAX} (passed={passed}, issues={len(issues)})")
    return QualityCheck(score=score, passed=passed, issues=issues, suggestions=suggestions)
