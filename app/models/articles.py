from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ArticleCategory(str, Enum):
    CYBERSECURITY = "cybersecurity"
    HACKING = "hacking"
    GENERAL = "general"


@dataclass(frozen=True)
class RawArticle:
    """
    Source-native article record, as produced by a source adapter.

    Fields are kept close to what the source delivered: ``published_raw`` is
    the unparsed timestamp string and ``description``/``content`` may still
    contain markup. The record is discarded once it has been assembled into
    a ``NormalizedArticle``.
    """

    source_tag: str
    source_name: str
    title: str
    link: str
    description: str = ""
    content: str = ""
    published_raw: Optional[str] = None
    author: Optional[str] = None
    image_url: Optional[str] = None
    # Unparsed item markup (RSS only); used for enclosure/media:content lookups.
    raw_markup: str = ""
    raw_metadata: Dict[str, Any] = field(default_factory=dict)


class ArticleSections(BaseModel):
    """The four narrative sections plus the model's own short summary."""

    model_config = ConfigDict(frozen=True)

    summary: Optional[str] = None
    what: str
    impact: str
    takeaways: str
    why_this_matters: str


class NormalizedArticle(BaseModel):
    """Canonical pipeline output; immutable once assembled."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    title: str
    summary: str
    source_url: str = Field(alias="sourceUrl")
    source: str
    author: Optional[str] = None
    author_display: str = Field(alias="authorDisplay")
    published_at: datetime = Field(alias="publishedAt")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    category: ArticleCategory
    what: str
    impact: str
    takeaways: str
    why_this_matters: str = Field(alias="whyThisMatters")

    @field_validator("author_display", "what", "impact", "takeaways", "why_this_matters")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value

    def dedupe_key(self) -> str:
        return f"{self.title.lower()}{self.source_url}"


class ArticleQuery(BaseModel):
    """Filter set understood by the persisted storage collaborator."""

    category: Optional[ArticleCategory] = None
    source: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    search_query: Optional[str] = None
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
