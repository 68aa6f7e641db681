from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.logging import get_logger
from app.models.articles import ArticleCategory, ArticleQuery
from app.models.news_public import NewsArchiveResponse, NewsListResponse
from services.article_storage_service import ArticleStorageService, StorageUnavailableError
from services.news_categorizer import parse_category
from services.news_pipeline_service import NewsPipelineService, build_pipeline

logger = get_logger().bind(module="api.news")

router = APIRouter(
    prefix="/news",
    tags=["news"],
)

_ALLOWED_CATEGORIES = ", ".join(category.value for category in ArticleCategory)


@lru_cache(maxsize=1)
def get_pipeline() -> NewsPipelineService:
    return build_pipeline()


@lru_cache(maxsize=1)
def get_storage() -> ArticleStorageService:
    return ArticleStorageService()


def _category_or_400(value: Optional[str]) -> Optional[ArticleCategory]:
    if value is None or not value.strip():
        return None
    try:
        return parse_category(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid category '{value}'. Allowed: {_ALLOWED_CATEGORIES}.",
        )


@router.get("", response_model=NewsListResponse)
async def get_news(
    category: str = Query(
        ArticleCategory.CYBERSECURITY.value,
        description="Category to ingest: cybersecurity, hacking or general.",
    ),
    pipeline: NewsPipelineService = Depends(get_pipeline),
) -> NewsListResponse:
    resolved = _category_or_400(category) or ArticleCategory.CYBERSECURITY
    result = await pipeline.run_detailed(resolved)
    return NewsListResponse(
        items=result.articles,
        total=len(result.articles),
        category=resolved,
        fallback_used=result.fallback_used,
    )


@router.get("/archive", response_model=NewsArchiveResponse)
async def get_news_archive(
    category: Optional[str] = Query(default=None),
    source: Optional[str] = Query(default=None),
    date_from: Optional[datetime] = Query(default=None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(default=None, alias="dateTo"),
    search_query: Optional[str] = Query(default=None, alias="searchQuery"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    storage: ArticleStorageService = Depends(get_storage),
) -> NewsArchiveResponse:
    resolved = _category_or_400(category)
    query = ArticleQuery(
        category=resolved,
        source=source,
        date_from=date_from,
        date_to=date_to,
        search_query=search_query,
        limit=limit,
        offset=offset,
    )
    try:
        items = await storage.list_articles(query)
    except StorageUnavailableError as exc:
        logger.warning("news_archive_storage_unavailable", error=str(exc))
        raise HTTPException(status_code=503, detail="Article storage is unavailable.")

    return NewsArchiveResponse(
        items=items,
        total=len(items),
        limit=limit,
        offset=offset,
        category=resolved,
    )
