"""Search-grounded topic discovery and research.

Both stages recover locally from every failure: a broken search call, an
unparseable response or an empty result degrades to fallback data instead
of raising, so topic-finding problems never block content creation.
"""

import json
import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .config import DISCOVERY_COUNT, DISCOVERY_TOP_PICKS, EXCLUDE_PROMPT_LIMIT, PipelineConfig
from .fallback import ModelFallbackRunner
from .llm import ModelOptions
from .metrics import get_tracer, record_fallback
from .models import CandidateTopic, TopicResearch
from .utils import coerce_str_list, load_json

logger = logging.getLogger(__name__)

DISCOVERY_SYSTEM_INSTRUCTION = (
    "You are a research assistant for a practical how-to blog. "
    "Use the web search results provided. Return ONLY valid JSON, no markdown fences."
)

RESEARCH_SYSTEM_INSTRUCTION = (
    "You are a meticulous technical researcher. Use the web search results provided. "
    "Be specific and factual. Return ONLY valid JSON, no markdown fences."
)


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    """Return the first present value among snake_case/camelCase key variants."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _topic_from_json(data: Any) -> Optional[CandidateTopic]:
    if not isinstance(data, dict):
        return None
    title = str(_pick(data, "title") or "").strip()
    if not title:
        return None
    return CandidateTopic(
        title=title,
        angle=str(_pick(data, "angle") or "").strip(),
        why_trending=str(_pick(data, "why_trending", "whyTrending") or "").strip(),
        search_query=str(_pick(data, "search_query", "searchQuery") or title).strip(),
    )


def build_discovery_prompt(focus_areas: Sequence[str], count: int, exclude: Sequence[str]) -> str:
    """Build the topic discovery prompt.

    Only the first few excluded titles/slugs are embedded; that is enough to
    steer the model away from repeats without bloating the prompt.
    """
    avoid = ""
    if exclude:
        avoid = f"\nAVOID these topics (already published): {', '.join(list(exclude)[:EXCLUDE_PROMPT_LIMIT])}\n"

    return f"""Search the web for PRACTICAL topics people are talking about this week in: {', '.join(focus_areas)}.

I need topics that answer "How do I actually use this?", NOT trend summaries.

Look for:
- New tools or features readers can try TODAY
- Practical workflows (writing emails, summarizing meetings, automating reports)
- Step-by-step setup guides for newly released products or features
- Real "I tried X and here's what happened" experiences

AVOID:
- Generic trend roundups ("Top 10 AI trends")
- News-only topics with no actionable angle
{avoid}
Return EXACTLY {count} topics as a JSON array. Each topic must have:
- "title": A specific, practical blog post title
- "angle": What the reader will be able to DO after reading
- "whyTrending": Why this is trending right now (1 sentence)
- "searchQuery": A search query to research this topic deeper

Return ONLY the JSON array."""


def build_research_prompt(topic: CandidateTopic) -> str:
    """Build the deep-research prompt for one topic."""
    return f"""Research this topic for a PRACTICAL how-to blog post: "{topic.title}"
Search query: "{topic.search_query}"
Angle: "{topic.angle}"

Find ACTIONABLE information:
- Exact setup steps and settings
- Specific version numbers, prices, limits, or benchmarks
- Common mistakes and how to fix them
- Before/after comparisons showing concrete improvement

Return a JSON object with:
- "keyPoints": 5-8 specific, actionable points (facts and steps, not opinions)
- "recentDevelopments": 3-5 specific releases or changes (with versions and dates)
- "uniqueAngles": 3-4 practical angles most articles miss
- "sources": article titles or URLs you relied on
- "researchContext": a 200-300 word summary focused on WHAT THE READER CAN DO

Return ONLY valid JSON."""


def build_research_context(research: TopicResearch) -> str:
    """Render research into the context block embedded in the generation prompt."""
    sections = [
        "RESEARCH CONTEXT (from real web sources):",
        f"Topic: {research.topic.title}",
    ]
    if research.topic.why_trending:
        sections.append(f"Why it's trending: {research.topic.why_trending}")
    if research.topic.angle:
        sections.append(f"Unique angle to take: {research.topic.angle}")
    sections.append("")
    if research.research_context:
        sections.extend([research.research_context, ""])

    for heading, items in (
        ("Key points discovered:", research.key_points),
        ("Recent developments:", research.recent_developments),
        ("Unique angles most articles miss:", research.unique_angles),
    ):
        if items:
            sections.append(heading)
            sections.extend(f"- {item}" for item in items)
            sections.append("")

    sections.append(
        "IMPORTANT: Write an ORIGINAL post informed by this research. "
        "Do NOT copy or paraphrase any source directly."
    )
    return "\n".join(sections)


class TopicDiscovery:
    """Propose candidate topics with a search-grounded model call."""

    def __init__(
        self,
        runner: ModelFallbackRunner,
        config: Optional[PipelineConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.runner = runner
        self.config = config or PipelineConfig()
        self.rng = rng or random.Random()

    def fallback_topic(self, focus_areas: Sequence[str]) -> CandidateTopic:
        """Pick an evergreen topic with synthesized angle text."""
        focus = focus_areas[0] if focus_areas else "AI Tools"
        if self.config.evergreen_topics:
            title = self.rng.choice(list(self.config.evergreen_topics))
        else:
            title = f"Latest Trends in {focus}"
        return CandidateTopic(
            title=title,
            angle=f"A practical, step-by-step walkthrough of {title.rstrip('?.!')}",
            why_trending=f"Readers interested in {focus} keep looking for hands-on guides like this",
            search_query=f"{title} {datetime.now().year}",
        )

    def discover(
        self,
        focus_areas: Sequence[str],
        desired_count: int = DISCOVERY_COUNT,
        exclude: Sequence[str] = (),
    ) -> List[CandidateTopic]:
        """Discover candidate topics.

        Args:
            focus_areas: Broad themes to search within.
            desired_count: Maximum number of topics to return.
            exclude: Titles/slugs already used.

        Returns:
            Between 1 and ``desired_count`` topics. Never raises.
        """
        desired_count = max(1, desired_count)
        focus_areas = list(focus_areas) or list(self.config.focus_areas)
        logger.info(f"Searching for trending topics in: {', '.join(focus_areas)}")

        with get_tracer().start_as_current_span("pipeline.discover"):
            try:
                result = self.runner.run(
                    build_discovery_prompt(focus_areas, desired_count, exclude),
                    DISCOVERY_SYSTEM_INSTRUCTION,
                    ModelOptions(
                        temperature=self.config.research_temperature,
                        max_output_tokens=self.config.research_max_tokens,
                        search_grounded=True,
                        search_query=f"{' '.join(focus_areas[:3])} new tools how to this week",
                    ),
                )
                data = load_json(result.text, opening="[")
                if isinstance(data, dict):
                    data = _pick(data, "topics", "items") or []
                if not isinstance(data, list):
                    raise ValueError(f"Expected a JSON array of topics, got {type(data).__name__}")

                topics = [t for t in (_topic_from_json(item) for item in data) if t is not None]
                if not topics:
                    raise ValueError("No topics returned")
            except Exception as e:
                # Discovery must never block generation
                logger.error(f"Topic discovery failed, using evergreen fallback: {type(e).__name__}: {e}")
                record_fallback("discovery")
                return [self.fallback_topic(focus_areas)]

        logger.info(f"Discovered {len(topics)} trending topics")
        return topics[:desired_count]

    def choose(self, topics: Sequence[CandidateTopic], top_picks: int = DISCOVERY_TOP_PICKS) -> CandidateTopic:
        """Pick randomly among the top-ranked candidates for variety."""
        if not topics:
            raise ValueError("No topics to choose from")
        picks = list(topics)[: max(1, min(top_picks, len(topics)))]
        return self.rng.choice(picks)


class TopicResearcher:
    """Gather research for one topic with a search-grounded model call."""

    def __init__(self, runner: ModelFallbackRunner, config: Optional[PipelineConfig] = None):
        self.runner = runner
        self.config = config or PipelineConfig()

    @staticmethod
    def fallback_research(topic: CandidateTopic) -> TopicResearch:
        """Angle-only research built from the topic's own fields."""
        return TopicResearch(
            topic=topic,
            unique_angles=[topic.angle] if topic.angle else [],
            research_context=(
                f"Topic: {topic.title}. Angle: {topic.angle or 'practical how-to'}. "
                f"Why trending: {topic.why_trending or 'reader demand'}"
            ),
        )

    def research(self, topic: CandidateTopic) -> TopicResearch:
        """Research a topic. Never raises; degrades to angle-only context."""
        logger.info(f"Researching: \"{topic.title}\"")

        with get_tracer().start_as_current_span("pipeline.research"):
            try:
                result = self.runner.run(
                    build_research_prompt(topic),
                    RESEARCH_SYSTEM_INSTRUCTION,
                    ModelOptions(
                        temperature=self.config.research_temperature,
                        max_output_tokens=self.config.research_max_tokens,
                        search_grounded=True,
                        search_query=topic.search_query or topic.title,
                    ),
                )
                data = load_json(result.text, opening="{")
                if not isinstance(data, dict):
                    raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
            except Exception as e:
                # Research failure only costs context, never the run
                logger.error(f"Research failed, continuing with topic only: {type(e).__name__}: {e}")
                record_fallback("research")
                return self.fallback_research(topic)

        research = TopicResearch(
            topic=topic,
            key_points=coerce_str_list(_pick(data, "key_points", "keyPoints")),
            recent_developments=coerce_str_list(_pick(data, "recent_developments", "recentDevelopments")),
            unique_angles=coerce_str_list(_pick(data, "unique_angles", "uniqueAngles")),
            sources=coerce_str_list(_pick(data, "sources")),
            research_context=str(_pick(data, "research_context", "researchContext") or "").strip(),
        )
        if not research.research_context:
            research.research_context = self.fallback_research(topic).research_context

        logger.info(f"Research complete: {len(research.key_points)} key points found")
        return research


def discover_and_research(
    discovery: TopicDiscovery,
    researcher: TopicResearcher,
    focus_areas: Sequence[str],
    exclude: Sequence[str] = (),
) -> TopicResearch:
    """Discover topics, choose one among the top picks, and research it."""
    topics = discovery.discover(focus_areas, DISCOVERY_COUNT, exclude)
    chosen = discovery.choose(topics)
    logger.info(f"Chosen topic: \"{chosen.title}\" (angle: {chosen.angle})")
    return researcher.research(chosen)


def dump_topics(topics: Sequence[CandidateTopic]) -> str:
    """Render topics as JSON for CLI output."""
    return json.dumps([t.model_dump() for t in topics], indent=2)
