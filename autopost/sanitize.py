"""Content sanitizer for generated article bodies.

Runs on raw model output before scoring and storage. Handles:
- Wrapper fences around the whole body (```markdown ... ```)
- UI leftovers from scraped pages ("Copy" buttons, breadcrumbs, cookie banners)
- Filler phrases the persona prompt forbids
- Malformed code fences ("Copy" labels, doubled fences, missing language tags)
- import/export statements and custom JSX tags that would break rendering

The transform is idempotent: ``sanitize_content(sanitize_content(x)) == sanitize_content(x)``.
"""

import logging
import re
from typing import Callable, List

logger = logging.getLogger(__name__)

_WRAPPER_OPEN = re.compile(r"^\s*```(?:mdx|markdown|md)?[ \t]*\n", re.IGNORECASE)
_WRAPPER_CLOSE = re.compile(r"\n?```\s*$")

# Fenced blocks, matched whole so prose-only transforms can skip them
_CODE_BLOCK = re.compile(r"(^```[^\n]*\n.*?^```[ \t]*$)", re.MULTILINE | re.DOTALL)

UI_ARTIFACT_PATTERNS = [
    # "Copy" / "Copied!" buttons that leak into code blocks
    re.compile(r"^[ \t]*Copy(?: code| to clipboard)?[ \t]*$\n?", re.MULTILINE),
    re.compile(r"^[ \t]*Copied!?[ \t]*$\n?", re.MULTILINE),
    # Navigation breadcrumbs
    re.compile(r"^(?:Home|Docs|API Reference|Getting Started)\s*[›>→/]\s*.+$", re.MULTILINE),
    # Search/assistant panel headers
    re.compile(r"^Sources?\s*\d+\s*$", re.MULTILINE),
    re.compile(r"^Suggested follow-ups?\s*$", re.MULTILINE | re.IGNORECASE),
    # Cookie / consent banners
    re.compile(r"^(?:Accept|Reject|Manage)\s*(?:all\s*)?(?:cookies|preferences)\.?\s*$", re.MULTILINE | re.IGNORECASE),
    # Share buttons
    re.compile(r"^(?:Share|Tweet)\s*(?:on|to)?\s*(?:Twitter|X|LinkedIn|Facebook)?\.?\s*$", re.MULTILINE | re.IGNORECASE),
    # Footers
    re.compile(r"^(?:Read more|Continue reading|See also|Related posts?)(?:\.{3}|\.)?\s*$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^Sign (?:up|in) (?:for|to) .{0,80}$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^(?:Loading\.\.\.|Page not found)\s*$", re.MULTILINE | re.IGNORECASE),
    # Orphan numbered-list markers left from a scraped table of contents
    re.compile(r"^\d+\.\s*$", re.MULTILINE),
    # HTML comments
    re.compile(r"<!--.*?-->", re.DOTALL),
    # Empty links
    re.compile(r"\[\]\([^)]*\)"),
]

FILLER_PATTERNS = [
    re.compile(r"In today['’]s rapidly evolving (?:digital |tech )?landscape[,.]?\s*", re.IGNORECASE),
    re.compile(r"In the ever-changing world of\s*", re.IGNORECASE),
    re.compile(r"In today['’]s digital world[,.]?\s*", re.IGNORECASE),
    re.compile(r"Without further ado[,.]?\s*", re.IGNORECASE),
    re.compile(r"Let['’]s dive (?:right )?in[.!]?\s*", re.IGNORECASE),
    re.compile(r"Buckle up[,.!]?\s*", re.IGNORECASE),
    re.compile(r"Are you ready\?\s*", re.IGNORECASE),
    re.compile(r"Fasten your seatbelts?[,.!]?\s*", re.IGNORECASE),
]

_FENCE_LINE = re.compile(r"^```(.*)$")

# (pattern, language) pairs matched against the start of a bare block
_LANGUAGE_GUESSES = [
    (re.compile(r"(?:import |export |const |let |function |async |interface |type )"), "typescript"),
    (re.compile(r"(?:def |class |from )"), "python"),
    (re.compile(r"(?:<[a-zA-Z]|<!DOCTYPE)"), "html"),
    (re.compile(r"[{\[]\s*\n\s*\""), "json"),
    (re.compile(r"(?:SELECT |INSERT |CREATE |ALTER )", re.IGNORECASE), "sql"),
    (re.compile(r"(?:\$\s|npm |yarn |pnpm |npx |pip |brew |apt |curl )"), "bash"),
]


def _map_prose(text: str, transform: Callable[[str], str]) -> str:
    """Apply ``transform`` to the text outside fenced code blocks."""
    parts = _CODE_BLOCK.split(text)
    # Even indices are prose, odd indices are whole code blocks
    return "".join(transform(part) if i % 2 == 0 else part for i, part in enumerate(parts))


def strip_wrapper(content: str) -> str:
    """Remove fences that wrap the entire body, however deeply nested."""
    while _WRAPPER_OPEN.match(content) and _WRAPPER_CLOSE.search(content):
        content = _WRAPPER_OPEN.sub("", content, count=1)
        content = _WRAPPER_CLOSE.sub("", content, count=1)
    return content


def fix_code_blocks(content: str) -> str:
    """Repair malformed code fences.

    - Removes "Copy" labels right after an opening or before a closing fence
    - Collapses doubled fences (```\\n```ts becomes ```ts)
    - Adds a language tag to bare fences when the content makes it obvious
    """
    out = re.sub(r"^(```[\w+-]*)[ \t]*\n[ \t]*Copy[ \t]*$\n?", r"\1\n", content, flags=re.MULTILINE)
    out = re.sub(r"^[ \t]*Copy[ \t]*\n(```[ \t]*$)", r"\1", out, flags=re.MULTILINE)

    lines = out.split("\n")
    fixed: List[str] = []
    in_block = False
    i = 0
    while i < len(lines):
        line = lines[i]
        match = _FENCE_LINE.match(line)
        if not match:
            fixed.append(line)
            i += 1
            continue
        if in_block:
            in_block = False
            fixed.append(line)
            i += 1
            continue

        if not match.group(1).strip():
            j = i + 1
            while j < len(lines) and not lines[j].strip():
                j += 1
            following = _FENCE_LINE.match(lines[j]) if j < len(lines) else None
            if following and following.group(1).strip():
                # Doubled opener: keep the tagged one
                i = j
                continue
            language = _guess_language("\n".join(lines[i + 1 : i + 3]))
            if language:
                line = f"```{language}"

        in_block = True
        fixed.append(line)
        i += 1
    return "\n".join(fixed)


def _guess_language(head: str) -> str:
    for pattern, language in _LANGUAGE_GUESSES:
        if pattern.match(head):
            return language
    return ""


def strip_module_statements(content: str) -> str:
    """Drop top-level import/export statements outside code blocks."""
    out = re.sub(r"^import\s+.*?;[ \t]*$", "", content, flags=re.MULTILINE)
    return re.sub(r"^export\s+(?:default\s+)?.*?;[ \t]*$", "", out, flags=re.MULTILINE)


def strip_custom_jsx(content: str) -> str:
    """Remove custom JSX components; block components become blockquotes."""
    out = re.sub(r"<[A-Z]\w*\b[^>]*/>", "", content)

    def _to_quote(match: "re.Match[str]") -> str:
        inner = match.group(2).strip()
        return "\n".join(f"> {line}" if line.strip() else ">" for line in inner.split("\n"))

    # Repeat to unwrap nested components
    for _ in range(3):
        out = re.sub(r"<([A-Z]\w*)\b[^>]*>(.*?)</\1>", _to_quote, out, flags=re.DOTALL)
    return out


def strip_filler(content: str) -> str:
    """Remove filler phrases."""
    for pattern in FILLER_PATTERNS:
        content = pattern.sub("", content)
    return content


def _tidy_prose(content: str) -> str:
    out = re.sub(r"(?<=\S)[ \t]{2,}(?=\S)", " ", content)
    return re.sub(r"[ \t]+$", "", out, flags=re.MULTILINE)


def _sanitize_once(raw: str) -> str:
    c = strip_wrapper(raw.replace("\r\n", "\n"))
    c = fix_code_blocks(c)
    c = _map_prose(c, strip_module_statements)
    for pattern in UI_ARTIFACT_PATTERNS:
        c = pattern.sub("", c)
    c = _map_prose(c, strip_filler)
    c = _map_prose(c, strip_custom_jsx)
    c = _map_prose(c, _tidy_prose)
    c = re.sub(r"\n{4,}", "\n\n\n", c)
    return c.strip()


def sanitize_content(raw: str) -> str:
    """Sanitize raw model output. Pure and idempotent.

    Args:
        raw: The generated article body.

    Returns:
        The cleaned markdown body.
    """
    current = raw or ""
    passes = 1
    cleaned = _sanitize_once(current)
    # Loop to a fixed point; every pass either shrinks the text or tags a bare fence
    while cleaned != current:
        current = cleaned
        cleaned = _sanitize_once(current)
        passes += 1
    if passes > 1:
        logger.debug(f"Sanitizer changed the body in {passes - 1} pass(es)")
    return current


def removed_lines(before: str, after: str) -> List[str]:
    """Lines present in ``before`` but missing from ``after`` (for debug logging)."""
    remaining = set(after.split("\n"))
    return [line for line in before.split("\n") if line.strip() and line not in remaining]
