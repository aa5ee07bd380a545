"""Pre-publish validation for generated posts.

Catches the failure modes that slip past the quality rubric: truncated
titles, leaked UI text, broken code fences and missing conclusions.
Errors block publishing; warnings are recorded on the draft.
"""

import logging
import re
from typing import List, Optional

from .metrics import record_validation_issue
from .models import Severity, ValidationIssue, ValidationResult
from .utils import word_count

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 10
MAX_TITLE_LENGTH = 70
MIN_BODY_WORDS = 300
MIN_SECTIONS = 2
MAX_FENCE_INFO_LENGTH = 100
MAX_META_LENGTH = 160
CONCLUSION_WINDOW = 6

UI_STRINGS = [
    "Copy to clipboard",
    "Copied!",
    "Sign in",
    "Sign up",
    "Log in",
    "Subscribe now",
    "Loading...",
    "Page not found",
    "404",
    "Accept cookies",
    "Manage preferences",
    "Suggested follow-ups",
    "Sources 1",
    "Sources 2",
    "Read more...",
    "Continue reading",
]

CONCLUSION_PHRASES = [
    "bottom line",
    "takeaway",
    "wrap up",
    "wrapping up",
    "conclusion",
    "final thought",
    "next step",
    "try it",
    "give it a shot",
    "start with",
    "get started",
    "what will you",
    "your turn",
]

# Evidence the reader can act on
_ACTIONABLE = [
    re.compile(r"\bhow to\b|\bstep \d+\b|\bhere'?s how\b", re.IGNORECASE),
    re.compile(r"^\s*\d+\.\s+\S", re.MULTILINE),
    re.compile(r"\b(?:npm|pnpm|yarn|pip|brew) (?:install|add|run)\b|\bnpx \w"),
    re.compile(r"^```[^\n]*\n(?:(?!^```)[\s\S])*?\b(?:const|let|function|def|class|interface|import)\b", re.MULTILINE),
]

_TRUNCATED_TITLE = re.compile(r"(?:\.\.\.|…|\b(?:a|an|the|and|or|of|to|for|with|in|on|your|how))$", re.IGNORECASE)
_SECTION = re.compile(r"^##\s+\S", re.MULTILINE)
_FENCE_LINE = re.compile(r"^\s*```(.*)$")


def _issue(issues: List[ValidationIssue], rule: str, message: str, severity: Severity) -> None:
    issues.append(ValidationIssue(rule=rule, message=message, severity=severity))


def _check_fences(body: str, issues: List[ValidationIssue]) -> None:
    """Walk fence lines, pairing openers with closers."""
    lines = body.split("\n")
    fence_count = 0
    open_at: Optional[int] = None
    broken = set()

    for index, line in enumerate(lines):
        match = _FENCE_LINE.match(line)
        if not match:
            continue
        fence_count += 1
        info = match.group(1).strip()
        if open_at is None:
            open_at = index
            if len(info) > MAX_FENCE_INFO_LENGTH:
                broken.add("Code fence language tag is unreasonably long (content leaked into the fence line)")
            continue
        if not any(l.strip() for l in lines[open_at + 1 : index]):
            broken.add("Empty or doubled code fence")
        open_at = None

    if re.search(r"^\s*Copy\s*$", body, re.MULTILINE):
        broken.add("Stray 'Copy' button label")

    for message in sorted(broken):
        _issue(issues, "broken-code-block", message, Severity.ERROR)

    if fence_count % 2:
        _issue(issues, "unmatched-fence", f"Odd number of code fences ({fence_count})", Severity.ERROR)


def _has_conclusion(body: str, internal_link: str) -> bool:
    tail = [line for line in body.split("\n") if line.strip()][-CONCLUSION_WINDOW:]
    text = "\n".join(tail).lower()
    if internal_link and f"]({internal_link.lower()}" in text:
        return True
    return any(phrase in text for phrase in CONCLUSION_PHRASES)


def validate_post(
    body: str,
    title: str,
    excerpt: Optional[str] = None,
    meta_description: Optional[str] = None,
    internal_link: str = "/blog",
) -> ValidationResult:
    """Validate a post before it is stored as a draft.

    Args:
        body: Sanitized markdown body.
        title: Post title.
        excerpt: Optional excerpt, checked for UI leftovers.
        meta_description: Optional meta description.
        internal_link: Site-internal link that counts as a closing call to action.

    Returns:
        ValidationResult; ``passed`` is False iff any error-severity issue exists.
    """
    issues: List[ValidationIssue] = []
    title = (title or "").strip()
    body = body or ""

    # Title
    if len(title) < MIN_TITLE_LENGTH:
        _issue(issues, "title-incomplete", f"Title too short ({len(title)} chars): \"{title}\"", Severity.ERROR)
    elif _TRUNCATED_TITLE.search(title):
        _issue(issues, "title-truncated", f"Title looks cut off: \"{title}\"", Severity.ERROR)
    if len(title) > MAX_TITLE_LENGTH:
        _issue(issues, "title-too-long", f"Title is {len(title)} chars (max {MAX_TITLE_LENGTH})", Severity.WARNING)

    # Body length
    words = word_count(body)
    if words < MIN_BODY_WORDS:
        _issue(issues, "body-too-short", f"Body has {words} words (min {MIN_BODY_WORDS})", Severity.ERROR)

    # UI leftovers
    haystacks = [body, excerpt or "", meta_description or ""]
    for ui in UI_STRINGS:
        pattern = re.compile(r"(?<![\w/])" + re.escape(ui) + r"(?![\w])")
        if any(pattern.search(text) for text in haystacks):
            _issue(issues, "ui-artifact", f"UI text leaked into content: \"{ui}\"", Severity.ERROR)

    _check_fences(body, issues)

    # Structure
    if not _has_conclusion(body, internal_link):
        _issue(issues, "no-conclusion", "No conclusion or call to action near the end", Severity.WARNING)
    if not any(p.search(body) for p in _ACTIONABLE):
        _issue(issues, "no-actionable-content", "No steps, links or examples the reader can act on", Severity.WARNING)
    sections = len(_SECTION.findall(body))
    if sections < MIN_SECTIONS:
        _issue(issues, "too-few-sections", f"Only {sections} ## sections (min {MIN_SECTIONS})", Severity.WARNING)

    # Meta description
    if meta_description:
        meta = meta_description.strip()
        if len(meta) > MAX_META_LENGTH:
            _issue(issues, "meta-too-long", f"Meta description is {len(meta)} chars (max {MAX_META_LENGTH})", Severity.WARNING)
        if title and meta.lower().startswith(title.lower()):
            _issue(issues, "meta-repeats-title", "Meta description starts with the title", Severity.WARNING)

    for issue in issues:
        record_validation_issue(issue.rule, issue.severity.value)

    passed = not any(i.severity == Severity.ERROR for i in issues)
    if passed:
        logger.debug(f"Validation passed with {len(issues)} warning(s)")
    else:
        logger.warning(f"Validation failed: {', '.join(i.rule for i in issues if i.severity == Severity.ERROR)}")
    return ValidationResult(passed=passed, issues=issues)
