"""Configuration settings for the autopost content pipeline."""

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

# Models to try in order (each has a separate quota)
DEFAULT_MODELS: List[str] = ["gpt-4o-mini", "gpt-4o", "gpt-4.1-mini"]

# Per-model attempt count and exponential backoff base
MAX_RETRIES: int = 3
BACKOFF_BASE_MS: int = 5000

# Generation call settings
GENERATION_TEMPERATURE: float = 0.7
GENERATION_MAX_TOKENS: int = 4096

# Search-grounded discovery/research call settings
RESEARCH_TEMPERATURE: float = 0.4
RESEARCH_MAX_TOKENS: int = 2048

# Request timeout for a single model call, in seconds
MODEL_TIMEOUT_SECONDS: float = 120.0

# Grounding search results are reused for this long, per query
SEARCH_CACHE_TTL_SECONDS: float = 15 * 60
SEARCH_CACHE_SIZE: int = 128

# Number of quality-gated generation attempts per run
MAX_QUALITY_ATTEMPTS: int = 3

# Topic discovery
DISCOVERY_COUNT: int = 5
DISCOVERY_TOP_PICKS: int = 3
EXCLUDE_PROMPT_LIMIT: int = 10

# Quality rubric scale. The pass threshold is on this scale, not a percentage.
QUALITY_SCALE_MAX: float = 10.0
QUALITY_PASS_THRESHOLD: float = 7.0

# SinglePassResult field limits
SEO_TITLE_MAX: int = 60
META_DESCRIPTION_MAX: int = 155
SLUG_MAX: int = 60
EXCERPT_MAX: int = 150
MAX_TAGS: int = 5

# Reading speed used for the reading-time estimate
WORDS_PER_MINUTE: int = 200

# How far in the future a generated draft is scheduled
SCHEDULING_DELAY_HOURS: int = 48

DEFAULT_TONE: str = "friendly and practical, like texting a smart friend a recommendation"
DEFAULT_MIN_WORDS: int = 500
DEFAULT_MAX_WORDS: int = 700

SITE_URL: str = os.environ.get("AUTOPOST_SITE_URL", "https://example.dev")
AUTHOR_NAME: str = os.environ.get("AUTOPOST_AUTHOR", "Site Author")
INTERNAL_LINK: str = "/blog"

DEFAULT_DB_PATH: str = "./data/autopost.db"

# Broad themes that guide topic discovery
DEFAULT_FOCUS_AREAS: List[str] = [
    "AI Tools",
    "Productivity",
    "Business Automation",
    "Content Creation",
    "ChatGPT Tips",
    "Claude AI",
    "Gemini",
    "Freelancer Workflows",
    "Agency Tools",
    "AI for Small Business",
]

# Used when topic discovery fails
EVERGREEN_FALLBACK_TOPICS: List[str] = [
    "How to Use Claude AI to Write Better Emails in Minutes",
    "Perplexity AI vs Google: Which One Should You Actually Use?",
    "How to Automate Your Weekly Report With ChatGPT",
    "Notion AI: Is the $10/Month Upgrade Actually Worth It?",
    "How Freelancers Are Using AI to Win More Clients",
    "The 3 AI Tools Every Small Business Owner Should Know",
    "How to Use Gemini Inside Google Docs (Step by Step)",
    "ChatGPT for Customer Support: Setup Guide for Small Teams",
    "How to Research Any Topic in Under 5 Minutes With AI",
    "Otter.ai: Never Take Meeting Notes Manually Again",
]


@dataclass(frozen=True)
class ProductPromo:
    """A product that may be mentioned when the topic matches its triggers."""

    name: str
    url: str
    one_liner: str
    trigger_keywords: Tuple[str, ...]


DEFAULT_PROMOS: Tuple[ProductPromo, ...] = ()

# Keyword -> tags added when the keyword appears in a tag or topic
TAG_MAP: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        "AI": ("AI Tools", "Artificial Intelligence"),
        "ChatGPT": ("ChatGPT", "AI Tools", "Productivity"),
        "Claude": ("Claude AI", "AI Tools", "Productivity"),
        "Gemini": ("Gemini", "AI Tools", "Google"),
        "Notion": ("Notion AI", "Productivity", "Business"),
        "Perplexity": ("Perplexity AI", "Research", "AI Tools"),
        "Otter": ("Otter.ai", "Meetings", "Productivity"),
        "automation": ("Automation", "Productivity", "Business"),
        "freelancer": ("Freelancing", "Business", "Productivity"),
        "agency": ("Agency", "Business", "AI Tools"),
        "productivity": ("Productivity", "AI Tools"),
        "business": ("Business", "AI Tools"),
        "content": ("Content Creation", "AI Tools"),
    }
)

# First rule whose keywords match a tag wins
CATEGORY_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("ChatGPT", "Claude", "Gemini", "AI", "Perplexity"), "AI Tools"),
    (("productivity", "automation", "workflow", "schedule"), "Productivity"),
    (("freelancer", "agency", "business", "client"), "Business"),
    (("content", "writing", "video", "social"), "Content Creation"),
)

DEFAULT_CATEGORY: str = "AI Tools"

SYSTEM_PROMPT: str = f"""You are {AUTHOR_NAME}, an app developer who writes a practical blog.

YOUR MISSION: Help everyday people (freelancers, business owners, agency operators,
students, and creators) discover and use AI tools that save them real time and money.

NEVER assume technical knowledge. Write as if you're texting a smart friend a recommendation.

CONTENT RULES:
- One specific tool or workflow per post. No listicles.
- Show the reader exactly how to use it in plain English.
- Every post answers: "Who is this for?" and "What does it replace?"
- No code blocks. No jargon. No passive voice.
- Include 1 external link to the tool's official site.
- Include 1 internal link to a related post on this site.
- End with one punchy takeaway sentence.

BANNED PHRASES (never use these):
- "In today's rapidly evolving landscape..."
- "Artificial intelligence is transforming..."
- "It goes without saying..."
- "Game-changer" / "Revolutionary" / "Cutting-edge"

FORMATTING (STRICT):
- Use ONLY standard Markdown: headings, **bold**, *italic*, lists, > blockquotes, [links](url)
- Do NOT use JSX components (<Callout>, <Note>, <Tabs>, etc.)
- Do NOT include import/export statements
- Do NOT include UI elements like "Copy", navigation, or buttons
- Do NOT include HTML comments"""

if not DEFAULT_MODELS:
    raise ValueError("DEFAULT_MODELS must contain at least one model")

if not 0 < DEFAULT_MIN_WORDS <= DEFAULT_MAX_WORDS:
    raise ValueError(
        f"Default word bounds must satisfy 0 < min <= max, got {DEFAULT_MIN_WORDS}-{DEFAULT_MAX_WORDS}"
    )


def _models_from_env() -> List[str]:
    """Resolve the model fallback chain from the environment."""
    models = list(DEFAULT_MODELS)
    configured = os.environ.get("AUTOPOST_MODELS", "")
    if configured.strip():
        models = [m.strip() for m in configured.split(",") if m.strip()]
    primary = os.environ.get("OPENAI_MODEL", "").strip()
    if primary:
        models = [primary] + [m for m in models if m != primary]
    return models


@dataclass(frozen=True)
class PipelineConfig:
    """Explicit configuration threaded through a pipeline run.

    Attributes:
        models: Ordered model fallback chain.
        max_retries: Attempts per model before advancing.
        backoff_base_ms: Base for exponential backoff between attempts.
        max_attempts: Quality-gated generation attempts per run.
        generation_temperature: Temperature for article generation.
        generation_max_tokens: Output token cap for article generation.
        research_temperature: Temperature for discovery/research calls.
        research_max_tokens: Output token cap for discovery/research calls.
        tone: Default writing tone.
        min_words: Default lower word bound.
        max_words: Default upper word bound.
        focus_areas: Default discovery focus areas.
        evergreen_topics: Topics used when discovery fails.
        promos: Promotable products and their trigger keywords.
        tag_map: Keyword to tags expansion table.
        category_rules: Ordered (keywords, category) rules.
        default_category: Category when no rule matches.
        system_prompt: Persona/system instruction for generation.
        site_url: Public site URL used for OG image links.
        author: Author name stored on packaged posts.
        internal_link: Internal link the closing section must include.
        scheduling_delay_hours: Delay before a generated draft is scheduled.
    """

    models: Tuple[str, ...] = tuple(DEFAULT_MODELS)
    max_retries: int = MAX_RETRIES
    backoff_base_ms: int = BACKOFF_BASE_MS
    max_attempts: int = MAX_QUALITY_ATTEMPTS
    generation_temperature: float = GENERATION_TEMPERATURE
    generation_max_tokens: int = GENERATION_MAX_TOKENS
    research_temperature: float = RESEARCH_TEMPERATURE
    research_max_tokens: int = RESEARCH_MAX_TOKENS
    tone: str = DEFAULT_TONE
    min_words: int = DEFAULT_MIN_WORDS
    max_words: int = DEFAULT_MAX_WORDS
    focus_areas: Tuple[str, ...] = tuple(DEFAULT_FOCUS_AREAS)
    evergreen_topics: Tuple[str, ...] = tuple(EVERGREEN_FALLBACK_TOPICS)
    promos: Tuple[ProductPromo, ...] = DEFAULT_PROMOS
    tag_map: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: TAG_MAP)
    category_rules: Tuple[Tuple[Tuple[str, ...], str], ...] = CATEGORY_RULES
    default_category: str = DEFAULT_CATEGORY
    system_prompt: str = SYSTEM_PROMPT
    site_url: str = SITE_URL
    author: str = AUTHOR_NAME
    internal_link: str = INTERNAL_LINK
    scheduling_delay_hours: int = SCHEDULING_DELAY_HOURS

    def __post_init__(self) -> None:
        if not self.models:
            raise ValueError("PipelineConfig.models must not be empty")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be positive, got {self.max_retries}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be positive, got {self.max_attempts}")
        if not 0 < self.min_words <= self.max_words:
            raise ValueError(f"Word bounds must satisfy 0 < min <= max, got {self.min_words}-{self.max_words}")

    @classmethod
    def from_env(cls, max_attempts: Optional[int] = None) -> "PipelineConfig":
        """Build a config from module defaults plus environment overrides."""
        kwargs = {"models": tuple(_models_from_env())}
        if max_attempts is not None:
            kwargs["max_attempts"] = max_attempts
        return cls(**kwargs)
