from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.articles import ArticleCategory, NormalizedArticle


class NewsListResponse(BaseModel):
    """Response for /api/v1/news (fresh pipeline run)."""

    model_config = ConfigDict(populate_by_name=True)

    items: List[NormalizedArticle]
    total: int
    category: ArticleCategory
    fallback_used: bool = Field(default=False, alias="fallbackUsed")


class NewsArchiveResponse(BaseModel):
    """Paginated response for /api/v1/news/archive (persisted articles)."""

    items: List[NormalizedArticle]
    total: int
    limit: int
    offset: int
    category: Optional[ArticleCategory] = None
