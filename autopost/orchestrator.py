"""Generation orchestrator: the bounded discover/generate/score/validate loop.

States::

    idle -> discovering -> researching -> generating(k) -> scoring(k)
         -> [generating(k+1) | validating] -> done | rejected

A manual topic skips discovery and research. Generation errors retry
without feedback; quality failures retry with the issue list as feedback;
validation runs once and is terminal. The loop makes at most
``config.max_attempts`` generation calls.
"""

import logging
import random
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote

from .config import EXCERPT_MAX, MAX_TAGS, QUALITY_SCALE_MAX, SLUG_MAX, WORDS_PER_MINUTE, PipelineConfig
from .discovery import TopicDiscovery, TopicResearcher, build_research_context, discover_and_research
from .errors import (
    DuplicateSlugError,
    GenerationFailedError,
    ModelFallbackError,
    ParseFailure,
    QualityRejectedError,
    ValidationRejectedError,
)
from .fallback import ModelFallbackRunner
from .generator import StructuredGenerator
from .llm import LanguageModelClient
from .metrics import get_tracer, record_generation_attempt, record_quality_check, track_pipeline_run, traced
from .models import (
    GeneratedPost,
    GenerationAttempt,
    GenerationReport,
    GenerationRequest,
    QualityCheck,
    RunStage,
    SinglePassResult,
    ValidationResult,
)
from .persistence import PostCreate, PostStatus, PostStore, SettingsStore, SiteSettings, StaticSettingsStore
from .quality import check_content_quality
from .sanitize import removed_lines, sanitize_content
from .utils import epoch_millis, now_utc, plain_text, reading_time, slugify, trim_to_word_boundary
from .validation import validate_post

logger = logging.getLogger(__name__)

QualityChecker = Callable[[str, int], QualityCheck]
Validator = Callable[..., ValidationResult]


# ============================================================================
# Request assembly
# ============================================================================


def resolve_generation_request(
    settings: SiteSettings,
    config: PipelineConfig,
    manual_topic: Optional[str] = None,
    exclude: Sequence[str] = (),
) -> GenerationRequest:
    """Merge stored settings over config defaults, field by field.

    Absent or empty settings fall back to the config value. Word bounds that
    would be inverted after the merge fall back to the config pair.
    """
    min_words = settings.min_word_count or config.min_words
    max_words = settings.max_word_count or config.max_words
    if min_words > max_words:
        logger.warning(
            f"Stored word bounds {min_words}-{max_words} are inverted, using defaults "
            f"{config.min_words}-{config.max_words}"
        )
        min_words, max_words = config.min_words, config.max_words

    return GenerationRequest(
        focus_areas=list(settings.content_topics or config.focus_areas),
        exclude=list(exclude),
        tone=settings.ai_tone or config.tone,
        min_words=min_words,
        max_words=max_words,
        include_setup_steps=True if settings.include_setup_steps is None else settings.include_setup_steps,
        sponsor_enabled=bool(settings.sponsor_enabled),
        sponsor_text=settings.sponsor_text or None,
        sponsor_link=settings.sponsor_link or None,
        manual_topic=(manual_topic or "").strip() or None,
    )


def build_exclusion_list(store: PostStore) -> List[str]:
    """Published slugs plus lower-cased titles of posts still in the editorial queue."""
    exclude = [post.slug for post in store.list_published()]
    queued = store.list_by_status([PostStatus.DRAFT, PostStatus.APPROVED, PostStatus.SCHEDULED])
    exclude.extend(post.title.lower() for post in queued)
    return exclude


# ============================================================================
# Packaging
# ============================================================================


def resolve_tags(keywords: Iterable[str], tag_map: Mapping[str, Sequence[str]], limit: int = MAX_TAGS) -> List[str]:
    """Expand keywords through the tag map, deduplicated in first-seen order."""
    resolved: List[str] = []

    def _add(tag: str) -> None:
        if tag and tag.lower() not in (t.lower() for t in resolved):
            resolved.append(tag)

    for keyword in keywords:
        for key, tags in tag_map.items():
            if key.lower() in keyword.lower():
                for tag in tags:
                    _add(tag)
        _add(keyword.strip())
    return resolved[:limit]


def resolve_category(
    keywords: Sequence[str],
    rules: Sequence[Tuple[Sequence[str], str]],
    default: str,
) -> str:
    """Category of the first rule with a keyword contained in any tag."""
    lowered = [k.lower() for k in keywords]
    for rule_keywords, category in rules:
        if any(rk.lower() in kw for rk in rule_keywords for kw in lowered):
            return category
    return default


def build_og_image_url(site_url: str, title: str, tags: Sequence[str]) -> str:
    """Open Graph image URL rendered by the site's ``/api/og`` endpoint."""
    return f"{site_url.rstrip('/')}/api/og?title={quote(title, safe='')}&tags={quote(','.join(tags[:3]), safe='')}"


def resolve_slug(store: Optional[PostStore], slug: str) -> str:
    """Append ``-{epoch millis}`` when the slug is already taken."""
    if store is not None and store.get_by_slug(slug) is not None:
        unique = f"{slug}-{epoch_millis()}"
        logger.warning(f"Slug collision for '{slug}', using '{unique}'")
        return unique
    return slug


def to_post_create(post: GeneratedPost) -> PostCreate:
    """Map a packaged post onto the storage input model."""
    return PostCreate(
        slug=post.slug,
        title=post.title,
        content=post.content,
        excerpt=post.excerpt,
        cover_image=post.cover_image,
        og_image=post.og_image,
        author=post.author,
        status=PostStatus.DRAFT,
        meta_description=post.meta_description,
        meta_keywords=post.meta_keywords,
        tags=post.tags,
        category=post.category,
        reading_time=post.reading_time,
        generated_by=post.generated_by,
        quality_score=post.quality_score,
        scheduled_for=post.scheduled_for,
    )


@traced("storage.save_post")
def save_post(store: PostStore, post: GeneratedPost) -> Tuple[str, GeneratedPost]:
    """Persist a packaged post.

    A concurrent run may take the slug between the collision check and the
    insert; in that case the insert is retried once with a fresh timestamp
    suffix.

    Returns:
        The new post ID and the post as stored (its slug may have changed).
    """
    try:
        return store.create(to_post_create(post)), post
    except DuplicateSlugError:
        retry = post.model_copy(update={"slug": f"{post.slug}-{epoch_millis()}"})
        logger.warning(f"Slug '{post.slug}' was taken during save, retrying as '{retry.slug}'")
        return store.create(to_post_create(retry)), retry


# ============================================================================
# Orchestrator
# ============================================================================


class GenerationOrchestrator:
    """Drive one pipeline run from topic to packaged draft.

    Args:
        runner: Model fallback runner shared by every stage.
        post_store: Store used for exclusion lists, slug checks and saving.
        settings_store: Source of admin-editable defaults.
        config: Explicit pipeline configuration.
        rng: Random source for topic choice.
        quality_check: Rubric callable ``(body, min_words) -> QualityCheck``.
        validator: Pre-publish validator callable.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        runner: ModelFallbackRunner,
        post_store: Optional[PostStore] = None,
        settings_store: Optional[SettingsStore] = None,
        config: Optional[PipelineConfig] = None,
        rng: Optional[random.Random] = None,
        quality_check: QualityChecker = check_content_quality,
        validator: Validator = validate_post,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.config = config or PipelineConfig()
        self.runner = runner
        self.post_store = post_store
        self.settings_store = settings_store or StaticSettingsStore()
        self.discovery = TopicDiscovery(runner, self.config, rng)
        self.researcher = TopicResearcher(runner, self.config)
        self.generator = StructuredGenerator(runner, self.config)
        self.quality_check = quality_check
        self.validator = validator
        self.clock = clock

    @classmethod
    def from_client(cls, client: LanguageModelClient, config: Optional[PipelineConfig] = None, **kwargs) -> "GenerationOrchestrator":
        """Build an orchestrator whose runner walks ``config.models``."""
        config = config or PipelineConfig()
        runner = ModelFallbackRunner(client, config.models, config.max_retries, config.backoff_base_ms)
        return cls(runner, config=config, **kwargs)

    def build_request(self, manual_topic: Optional[str] = None) -> GenerationRequest:
        """Resolve a request from stored settings and the post store's exclusion list."""
        settings = self.settings_store.get()
        exclude: List[str] = []
        if self.post_store is not None and not manual_topic:
            exclude = build_exclusion_list(self.post_store)
        return resolve_generation_request(settings, self.config, manual_topic, exclude)

    def _internal_link(self) -> str:
        return self.settings_store.get().internal_link or self.config.internal_link

    def _choose_topic(self, request: GenerationRequest) -> Tuple[str, str]:
        """Return (topic, research context) for the run."""
        if request.manual_topic:
            logger.info(f"Manual topic: \"{request.manual_topic}\"")
            return request.manual_topic, ""

        logger.info("Autonomous topic discovery...")
        research = discover_and_research(self.discovery, self.researcher, request.focus_areas, request.exclude)
        return research.topic.title, build_research_context(research)

    def run(self, request: Optional[GenerationRequest] = None) -> GeneratedPost:
        """Run the pipeline once.

        Args:
            request: Run input. Built from the settings store when omitted.

        Returns:
            The packaged draft, ready for ``save_post``.

        Raises:
            GenerationFailedError: Generation raised on the last attempt.
            QualityRejectedError: The last attempt failed the rubric.
            ValidationRejectedError: The quality-accepted draft failed validation.
        """
        request = request or self.build_request()
        mode = "manual" if request.manual_topic else "autonomous"
        internal_link = self._internal_link()
        max_attempts = self.config.max_attempts

        with track_pipeline_run(mode=mode) as outcome:
            topic, research_context = self._choose_topic(request)

            feedback: List[str] = []
            state = GenerationAttempt()
            last_error: Optional[Exception] = None

            for number in range(1, max_attempts + 1):
                logger.info(f"Generating (attempt {number}/{max_attempts}): \"{topic}\"")
                try:
                    output = self.generator.generate(topic, research_context, request, feedback, internal_link)
                except (ParseFailure, ModelFallbackError) as e:
                    kind = "parse_failed" if isinstance(e, ParseFailure) else "model_failed"
                    record_generation_attempt(kind)
                    last_error = e
                    state = GenerationAttempt(number=number, quality=state.quality, model_used=state.model_used)
                    logger.error(f"Generation attempt {number} failed: {e}")
                    continue
                record_generation_attempt("generated")

                body = sanitize_content(output.body)
                dropped = removed_lines(output.body, body)
                if dropped:
                    logger.debug(f"Sanitizer removed {len(dropped)} line(s): {dropped[:5]}")

                with get_tracer().start_as_current_span("pipeline.score"):
                    quality = self.quality_check(body, request.min_words)
                record_quality_check(quality.score, quality.passed)

                state = GenerationAttempt(
                    number=number,
                    result=output.metadata.model_copy(update={"body": body}),
                    quality=quality,
                    model_used=output.model_used,
                    feedback=list(feedback),
                )
                last_error = None

                if quality.passed:
                    logger.info(f"Quality check passed: {quality.score}/{QUALITY_SCALE_MAX}")
                    break

                logger.warning(f"Quality check failed ({quality.score}): {'; '.join(quality.issues)}")
                feedback = list(quality.issues)
            else:
                outcome["status"] = "rejected"
                if last_error is not None:
                    raise GenerationFailedError(self._report(RunStage.GENERATING, state, topic, error=last_error))
                raise QualityRejectedError(self._report(RunStage.SCORING, state, topic))

            result = state.result
            excerpt = trim_to_word_boundary(result.meta_description or plain_text(result.body), EXCERPT_MAX)

            with get_tracer().start_as_current_span("pipeline.validate"):
                validation = self.validator(
                    result.body,
                    result.seo_title,
                    excerpt=excerpt,
                    meta_description=result.meta_description,
                    internal_link=internal_link,
                )

            if not validation.passed:
                outcome["status"] = "rejected"
                raise ValidationRejectedError(
                    self._report(RunStage.VALIDATING, state, topic, validation_issues=validation.issues)
                )

            post = self.package(result, state, topic, excerpt, validation)
            outcome["status"] = "done"

        logger.info(f"Run complete: \"{post.title}\" (score {post.quality_score}, {post.attempts} attempt(s))")
        return post

    def run_and_save(self, request: Optional[GenerationRequest] = None) -> Tuple[str, GeneratedPost]:
        """Run the pipeline and persist the draft.

        Raises:
            ValueError: If the orchestrator has no post store.
        """
        if self.post_store is None:
            raise ValueError("A post store is required to save generated posts")
        post = self.run(request)
        return save_post(self.post_store, post)

    def package(
        self,
        result: SinglePassResult,
        state: GenerationAttempt,
        topic: str,
        excerpt: str,
        validation: ValidationResult,
    ) -> GeneratedPost:
        """Attach derived fields to an accepted result."""
        keywords = result.tags or [topic]
        tags = resolve_tags(keywords, self.config.tag_map)
        og_image = build_og_image_url(self.config.site_url, result.seo_title, tags)
        slug = resolve_slug(self.post_store, result.slug or slugify(result.seo_title, max_length=SLUG_MAX))

        return GeneratedPost(
            slug=slug,
            title=result.seo_title,
            content=result.body,
            excerpt=excerpt,
            meta_description=result.meta_description,
            meta_keywords=list(result.tags),
            tags=tags,
            category=resolve_category(keywords, self.config.category_rules, self.config.default_category),
            reading_time=reading_time(result.body, WORDS_PER_MINUTE),
            cover_image=og_image,
            og_image=og_image,
            author=self.config.author,
            generated_by=state.model_used or "unknown",
            quality_score=state.quality.score if state.quality else 0.0,
            topic=topic,
            attempts=state.number,
            scheduled_for=self.clock() + timedelta(hours=self.config.scheduling_delay_hours),
            warnings=validation.warnings,
        )

    def _report(
        self,
        stage: RunStage,
        state: GenerationAttempt,
        topic: str,
        error: Optional[Exception] = None,
        validation_issues: Optional[list] = None,
    ) -> GenerationReport:
        report = GenerationReport(
            stage=stage,
            attempts=state.number,
            topic=topic,
            last_score=state.quality.score if state.quality else None,
            issues=list(state.quality.issues) if state.quality else [],
            validation_issues=validation_issues or [],
            model_used=state.model_used,
            error=f"{type(error).__name__}: {error}" if error else None,
        )
        logger.error(report.summary())
        return report
