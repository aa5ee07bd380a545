"""Pydantic models for the content pipeline."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class GenerationRequest(BaseModel):
    """Input to a single pipeline run. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    focus_areas: List[str] = Field(default_factory=list)
    exclude: List[str] = Field(default_factory=list)
    tone: str
    min_words: int = Field(gt=0)
    max_words: int = Field(gt=0)
    include_setup_steps: bool = True
    sponsor_enabled: bool = False
    sponsor_text: Optional[str] = None
    sponsor_link: Optional[str] = None
    manual_topic: Optional[str] = None

    @model_validator(mode="after")
    def _check_word_bounds(self) -> "GenerationRequest":
        if self.min_words > self.max_words:
            raise ValueError(f"min_words ({self.min_words}) must not exceed max_words ({self.max_words})")
        return self


class CandidateTopic(BaseModel):
    """A topic proposed by discovery."""

    title: str
    angle: str = ""
    why_trending: str = ""
    search_query: str = ""


class TopicResearch(BaseModel):
    """Research gathered for one chosen topic. List fields may be empty."""

    topic: CandidateTopic
    key_points: List[str] = Field(default_factory=list)
    recent_developments: List[str] = Field(default_factory=list)
    unique_angles: List[str] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)
    research_context: str = ""


class SinglePassResult(BaseModel):
    """Metadata and body produced by one structured generation call."""

    seo_title: str
    meta_description: str = ""
    slug: str = ""
    tags: List[str] = Field(default_factory=list)
    body: str

    @field_validator("seo_title", "body")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value


class GenerationOutput(BaseModel):
    """What the structured generator returns to the orchestrator."""

    body: str
    metadata: SinglePassResult
    model_used: str
    parse_tier: str


class QualityCheck(BaseModel):
    """Rubric result for a body of text."""

    score: float
    passed: bool
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class Severity(str, Enum):
    """Severity of a validation issue."""

    ERROR = "error"
    WARNING = "warning"


class ValidationIssue(BaseModel):
    """A single pre-publish rule violation."""

    rule: str
    message: str
    severity: Severity


class ValidationResult(BaseModel):
    """Pre-publish validation outcome. Passed iff no error-severity issue."""

    passed: bool
    issues: List[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]


class GenerationAttempt(BaseModel):
    """Loop state carried between generation attempts."""

    number: int = 0
    result: Optional[SinglePassResult] = None
    quality: Optional[QualityCheck] = None
    model_used: Optional[str] = None
    feedback: List[str] = Field(default_factory=list)


class RunStage(str, Enum):
    """Pipeline states."""

    IDLE = "idle"
    DISCOVERING = "discovering"
    RESEARCHING = "researching"
    GENERATING = "generating"
    SCORING = "scoring"
    VALIDATING = "validating"
    DONE = "done"
    REJECTED = "rejected"


class GenerationReport(BaseModel):
    """Diagnostic payload for a failed run."""

    stage: RunStage
    attempts: int
    topic: Optional[str] = None
    last_score: Optional[float] = None
    issues: List[str] = Field(default_factory=list)
    validation_issues: List[ValidationIssue] = Field(default_factory=list)
    model_used: Optional[str] = None
    error: Optional[str] = None

    def summary(self) -> str:
        """Render an operator-facing one-paragraph description."""
        parts = [f"Generation failed at stage '{self.stage.value}' after {self.attempts} attempt(s)"]
        if self.topic:
            parts.append(f"topic: {self.topic}")
        if self.last_score is not None:
            parts.append(f"last score: {self.last_score:.1f}")
        if self.error:
            parts.append(f"error: {self.error}")
        if self.issues:
            parts.append("issues: " + "; ".join(self.issues))
        if self.validation_issues:
            parts.append(
                "validation: " + "; ".join(f"[{i.severity.value}] {i.rule}: {i.message}" for i in self.validation_issues)
            )
        return " | ".join(parts)


class GeneratedPost(BaseModel):
    """Packaged draft handed to the post store."""

    slug: str
    title: str
    content: str
    excerpt: str
    meta_description: str
    meta_keywords: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    category: str
    reading_time: str
    cover_image: Optional[str] = None
    og_image: Optional[str] = None
    author: str
    generated_by: str
    quality_score: float
    topic: str
    attempts: int
    scheduled_for: Optional[datetime] = None
    warnings: List[ValidationIssue] = Field(default_factory=list)
