"""Single-pass structured article generation.

One model call produces both the SEO metadata and the article body as a
JSON object. Model output is repaired through three explicit parse tiers:

1. ``try_strict_parse``: clean and parse the JSON object.
2. ``try_regex_extract``: pull ``post_body`` out of broken JSON.
3. ``try_plain_text_fallback``: accept non-JSON output as a markdown body.

Each tier returns a ``ParseOutcome`` instead of raising, so the decision
points are data. Only ``parse_generation_output`` raises ``ParseFailure``.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import MAX_TAGS, META_DESCRIPTION_MAX, SEO_TITLE_MAX, SLUG_MAX, PipelineConfig, ProductPromo
from .errors import ParseFailure
from .fallback import ModelFallbackRunner
from .llm import ModelOptions
from .metrics import get_tracer
from .models import GenerationOutput, GenerationRequest, SinglePassResult
from .utils import clean_json_text, coerce_str_list, plain_text, slugify, trim_to_word_boundary

logger = logging.getLogger(__name__)

SUCCESS = "success"
CONTINUE = "continue"
FATAL = "fatal"

_POST_BODY = re.compile(r'"(?:post_body|body)"\s*:\s*"((?:[^"\\]|\\.)*)"', re.DOTALL)
_POST_BODY_UNTERMINATED = re.compile(r'"(?:post_body|body)"\s*:\s*"((?:[^"\\]|\\.)*)\\?\Z', re.DOTALL)
# Escape cut off at the end of a truncated string
_PARTIAL_ESCAPE = re.compile(r"(?<!\\)((?:\\\\)*)\\u[0-9a-fA-F]{0,3}\Z")
_ESCAPE = re.compile(r"\\(.)", re.DOTALL)
_ESCAPES = {"n": "\n", "t": "\t", "r": "", '"': '"', "\\": "\\", "/": "/"}
_HEADING = re.compile(r"^#{1,3}\s+(.+?)\s*#*\s*$", re.MULTILINE)


@dataclass(frozen=True)
class ParseOutcome:
    """Result of one parse tier: success (with a result), continue, or fatal."""

    status: str
    result: Optional[SinglePassResult] = None
    reason: str = ""

    @classmethod
    def success(cls, result: SinglePassResult) -> "ParseOutcome":
        return cls(SUCCESS, result=result)

    @classmethod
    def next_tier(cls, reason: str) -> "ParseOutcome":
        return cls(CONTINUE, reason=reason)

    @classmethod
    def fatal(cls, reason: str) -> "ParseOutcome":
        return cls(FATAL, reason=reason)


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def topic_tags(topic: str) -> List[str]:
    """Topic words longer than three characters, at most ``MAX_TAGS``."""
    words = [w.strip(".,:;!?\"'()[]") for w in topic.split()]
    return [w for w in words if len(w) > 3][:MAX_TAGS]


def synthesize_metadata(body: str, topic: str) -> SinglePassResult:
    """Build metadata from the body's first heading and the topic string."""
    match = _HEADING.search(body)
    title = (match.group(1).strip() if match else topic.strip()) or "Untitled post"
    return SinglePassResult(
        seo_title=title,
        meta_description=plain_text(_HEADING.sub("", body, count=1))[: META_DESCRIPTION_MAX * 2],
        slug=title,
        tags=topic_tags(topic),
        body=body,
    )


def finalize(result: SinglePassResult) -> SinglePassResult:
    """Apply field limits: word-boundary title/meta, bounded slug, at most five tags."""
    title = trim_to_word_boundary(result.seo_title, SEO_TITLE_MAX)
    return SinglePassResult(
        seo_title=title or result.seo_title[:SEO_TITLE_MAX],
        meta_description=trim_to_word_boundary(result.meta_description, META_DESCRIPTION_MAX),
        slug=slugify(result.slug or title, max_length=SLUG_MAX),
        tags=coerce_str_list(result.tags, limit=MAX_TAGS),
        body=result.body.strip(),
    )


def try_strict_parse(raw: str, topic: str) -> ParseOutcome:
    """Tier 1: clean the text and parse it as a JSON object."""
    try:
        data = json.loads(clean_json_text(raw, opening="{"), strict=False)
    except json.JSONDecodeError as e:
        return ParseOutcome.next_tier(f"invalid JSON: {e}")
    if not isinstance(data, dict):
        return ParseOutcome.next_tier(f"expected a JSON object, got {type(data).__name__}")

    body = str(_pick(data, "post_body", "body", "postBody") or "")
    title = str(_pick(data, "seoTitle", "seo_title", "title") or "")
    if not body.strip():
        return ParseOutcome.next_tier("empty post_body")
    if not title.strip():
        return ParseOutcome.next_tier("empty seoTitle")

    return ParseOutcome.success(
        SinglePassResult(
            seo_title=title,
            meta_description=str(_pick(data, "metaDescription", "meta_description") or ""),
            slug=str(_pick(data, "slug") or ""),
            tags=coerce_str_list(_pick(data, "tags")),
            body=body,
        )
    )


def _decode_json_string(capture: str) -> str:
    """Decode a JSON string literal's contents, tolerating bad escapes."""
    try:
        return json.loads(f'"{capture}"', strict=False)
    except json.JSONDecodeError:
        return _ESCAPE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), capture)


def try_regex_extract(raw: str, topic: str) -> ParseOutcome:
    """Tier 2: extract the ``post_body`` string from malformed JSON.

    A body cut off by the output token limit (no closing quote) is accepted
    up to the end of the text.
    """
    match = _POST_BODY.search(raw)
    if match:
        capture = match.group(1)
    else:
        match = _POST_BODY_UNTERMINATED.search(raw)
        if not match:
            return ParseOutcome.next_tier("no post_body field found")
        logger.warning("post_body is unterminated, using the truncated body")
        capture = _PARTIAL_ESCAPE.sub(r"\1", match.group(1))
    body = _decode_json_string(capture)
    if not body.strip():
        return ParseOutcome.next_tier("extracted post_body is empty")
    return ParseOutcome.success(synthesize_metadata(body, topic))


def try_plain_text_fallback(raw: str, topic: str) -> ParseOutcome:
    """Tier 3: treat output that never attempted JSON as a markdown body."""
    text = re.sub(r"^\s*```(?:json)?[ \t]*\n", "", raw or "").strip()
    if not text:
        return ParseOutcome.fatal("empty response")
    if text.startswith("{"):
        return ParseOutcome.fatal("malformed JSON object could not be repaired")
    return ParseOutcome.success(synthesize_metadata((raw or "").strip(), topic))


PARSE_TIERS = (
    ("strict", try_strict_parse),
    ("regex", try_regex_extract),
    ("plain_text", try_plain_text_fallback),
)


def parse_generation_output(raw: str, topic: str) -> Tuple[SinglePassResult, str]:
    """Run the parse tiers in order.

    Returns:
        The finalized result and the name of the tier that produced it.

    Raises:
        ParseFailure: If no tier produces a result.
    """
    reasons = []
    for name, tier in PARSE_TIERS:
        outcome = tier(raw, topic)
        if outcome.status == SUCCESS and outcome.result is not None:
            if name != "strict":
                logger.warning(f"Structured output repaired by {name} tier ({'; '.join(reasons)})")
            return finalize(outcome.result), name
        reasons.append(f"{name}: {outcome.reason}")
        if outcome.status == FATAL:
            break
    raise ParseFailure(f"Could not parse generation output ({'; '.join(reasons)})")


def select_promo(topic: str, promos: Sequence[ProductPromo]) -> Optional[ProductPromo]:
    """First promo with a trigger keyword contained in the topic (case-insensitive)."""
    lowered = topic.lower()
    for promo in promos:
        if any(keyword.lower() in lowered for keyword in promo.trigger_keywords):
            return promo
    return None


class StructuredGenerator:
    """Generate metadata and body in one JSON-mode model call."""

    def __init__(self, runner: ModelFallbackRunner, config: Optional[PipelineConfig] = None):
        self.runner = runner
        self.config = config or PipelineConfig()

    def build_prompt(
        self,
        topic: str,
        research_context: str,
        request: GenerationRequest,
        feedback: Sequence[str] = (),
        internal_link: Optional[str] = None,
    ) -> str:
        """Assemble the generation prompt.

        Args:
            topic: Article topic.
            research_context: Rendered research block, may be empty.
            request: Word bounds, tone, flags and sponsor details.
            feedback: Issues from the previous attempt to fix.
            internal_link: Link the closing section must include.

        Returns:
            The user prompt.
        """
        internal_link = internal_link or self.config.internal_link
        blocks = [
            f'Write a blog post about: "{topic}"',
            f"LENGTH: {request.min_words}-{request.max_words} words.",
            f"TONE: {request.tone}",
        ]

        if research_context:
            blocks.append(research_context)

        promo = select_promo(topic, self.config.promos)
        if promo:
            blocks.append(
                "PRODUCT MENTION (optional, only where it genuinely helps the reader):\n"
                f"Mention [{promo.name}]({promo.url}) once: {promo.one_liner}"
            )

        if request.sponsor_enabled and request.sponsor_text:
            sponsor = request.sponsor_text
            if request.sponsor_link:
                sponsor = f"{sponsor} ({request.sponsor_link})"
            blocks.append(f"SPONSOR: Add one short, clearly labelled sponsor line: {sponsor}")

        setup = (
            "3. How to use it: numbered, step-by-step setup instructions a beginner can follow"
            if request.include_setup_steps
            else "3. How to use it: a short numbered list of practical ways to apply it"
        )
        blocks.append(
            "STRUCTURE (use ## headings for each part):\n"
            "1. Hook: open with a relatable problem in 1-2 sentences\n"
            "2. What it is: plain-English definition, who it is for and what it replaces\n"
            f"{setup}\n"
            "4. Who benefits: freelancers, small businesses, creators; be specific\n"
            "5. The honest catch: one real limitation or cost\n"
            f"6. Bottom line: one punchy takeaway and a link to a related post on this site ({internal_link})"
        )
        blocks.append(
            "RULES:\n"
            "- No code fences, no JSX components, no import/export lines\n"
            "- Include one external link to the tool's official site\n"
            "- Do not start with a generic intro"
        )

        if feedback:
            blocks.append(
                "The previous draft was rejected. Fix these issues:\n" + "\n".join(f"- {issue}" for issue in feedback)
            )

        blocks.append(
            "Return ONLY a JSON object with these keys:\n"
            '- "seoTitle": title under 60 characters\n'
            '- "metaDescription": under 155 characters\n'
            '- "slug": lowercase-hyphenated URL slug\n'
            '- "tags": 3-5 short tags\n'
            '- "post_body": the full article in markdown (escape newlines as \\n)'
        )
        return "\n\n".join(blocks)

    def generate(
        self,
        topic: str,
        research_context: str,
        request: GenerationRequest,
        feedback: Sequence[str] = (),
        internal_link: Optional[str] = None,
    ) -> GenerationOutput:
        """Generate one article.

        Raises:
            ModelFallbackError: If every model fails.
            ParseFailure: If the output cannot be repaired into a result.
        """
        prompt = self.build_prompt(topic, research_context, request, feedback, internal_link)
        with get_tracer().start_as_current_span("pipeline.generate", attributes={"generate.feedback": len(feedback)}):
            run = self.runner.run(
                prompt,
                self.config.system_prompt,
                ModelOptions(
                    temperature=self.config.generation_temperature,
                    max_output_tokens=self.config.generation_max_tokens,
                    json_mode=True,
                ),
            )
            result, tier = parse_generation_output(run.text, topic)

        logger.info(f"Generated \"{result.seo_title}\" with {run.model_used} ({tier} parse)")
        return GenerationOutput(body=result.body, metadata=result, model_used=run.model_used, parse_tier=tier)
