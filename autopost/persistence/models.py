"""Persistence models for generated posts and site settings."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class PostStatus(str, Enum):
    """Editorial status of a post."""

    DRAFT = "draft"
    APPROVED = "approved"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    REJECTED = "rejected"


class PostCreate(BaseModel):
    """Input model for creating a post.

    Attributes:
        slug: Unique URL slug.
        title: Post title.
        content: Full markdown content.
        excerpt: Short summary for listings.
        cover_image: Cover image URL.
        og_image: Open Graph image URL.
        author: Author display name.
        status: Editorial status; generated posts start as drafts.
        meta_description: SEO meta description.
        meta_keywords: SEO keywords.
        tags: Resolved tags.
        category: Resolved category.
        reading_time: Human-readable reading time estimate.
        generated_by: Model that produced the post.
        human_edited: Whether a person has edited the post.
        quality_score: Rubric score at generation time.
        scheduled_for: When the post should go live.
        published_at: When the post went live.
    """

    slug: str
    title: str
    content: str
    excerpt: str = ""
    cover_image: Optional[str] = None
    og_image: Optional[str] = None
    author: str
    status: PostStatus = PostStatus.DRAFT
    meta_description: str = ""
    meta_keywords: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    category: str = ""
    reading_time: str = ""
    generated_by: Optional[str] = None
    human_edited: bool = False
    quality_score: Optional[float] = None
    scheduled_for: Optional[datetime] = None
    published_at: Optional[datetime] = None


class Post(PostCreate):
    """A persisted post."""

    id: str
    created_at: datetime
    updated_at: datetime


class SiteSettings(BaseModel):
    """Admin-editable generation defaults. Every field is optional."""

    content_topics: Optional[List[str]] = None
    ai_tone: Optional[str] = None
    min_word_count: Optional[int] = None
    max_word_count: Optional[int] = None
    include_setup_steps: Optional[bool] = None
    sponsor_enabled: Optional[bool] = None
    sponsor_text: Optional[str] = None
    sponsor_link: Optional[str] = None
    internal_link: Optional[str] = None
