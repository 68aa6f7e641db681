"""
Persisted article storage backed by a Supabase `articles` table.

The supabase client is synchronous, so every call runs in the default
executor. Connectivity and configuration problems surface as
``StorageUnavailableError``.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar
from urllib.parse import urlparse

from supabase import Client, create_client

from app.config import settings
from app.core.logging import get_logger
from app.models.articles import ArticleCategory, ArticleQuery, NormalizedArticle
from services.news_categorizer import determine_category
from services.section_generator import build_sections
from services.text_normalizer import parse_published_at

logger = get_logger().bind(module="article_storage_service")

T = TypeVar("T")

# PostgREST `or=` filter syntax reserves these.
_FILTER_UNSAFE_RE = re.compile(r"[,()%*]")


class StorageUnavailableError(RuntimeError):
    """Storage is not configured or could not be reached."""


def article_to_row(article: NormalizedArticle) -> Dict[str, Any]:
    return {
        "title": article.title,
        "summary": article.summary,
        "source_url": article.source_url,
        "source": article.source,
        "author": article.author,
        "published_at": article.published_at.isoformat(),
        "image_url": article.image_url,
        "category": article.category.value,
        "what": article.what,
        "impact": article.impact,
        "takeaways": article.takeaways,
        "why_this_matters": article.why_this_matters,
        "ai_summary_generated": True,
    }


def row_to_article(row: Dict[str, Any]) -> Optional[NormalizedArticle]:
    """Map one stored row back to the canonical shape; rows without title or URL are skipped."""
    title = (row.get("title") or "").strip()
    source_url = (row.get("source_url") or "").strip()
    if not title or not source_url:
        return None

    summary = (row.get("summary") or "").strip()
    source = (row.get("source") or "").strip() or (urlparse(source_url).hostname or "Unknown source")
    author = (row.get("author") or "").strip() or None

    try:
        category = ArticleCategory(row.get("category"))
    except ValueError:
        category = determine_category(title, summary)

    found = {
        attr: value.strip()
        for attr, value in (
            ("what", row.get("what")),
            ("impact", row.get("impact")),
            ("takeaways", row.get("takeaways")),
            ("why_this_matters", row.get("why_this_matters")),
        )
        if isinstance(value, str) and value.strip()
    }
    sections = build_sections(found)

    published = row.get("published_at")
    if isinstance(published, datetime):
        published_at = published if published.tzinfo else published.replace(tzinfo=timezone.utc)
    else:
        published_at = parse_published_at(published if isinstance(published, str) else None)

    return NormalizedArticle(
        id=str(row.get("id") or source_url),
        title=title,
        summary=summary or title,
        source_url=source_url,
        source=source,
        author=author,
        author_display=author or source,
        published_at=published_at,
        image_url=row.get("image_url") or None,
        category=category,
        what=sections.what,
        impact=sections.impact,
        takeaways=sections.takeaways,
        why_this_matters=sections.why_this_matters,
    )


class ArticleStorageService:
    def __init__(
        self,
        *,
        url: Optional[str] = None,
        key: Optional[str] = None,
        table: Optional[str] = None,
        client: Optional[Client] = None,
    ) -> None:
        self.url = url if url is not None else settings.SUPABASE_URL
        self.key = key if key is not None else settings.SUPABASE_KEY
        self.table = table or settings.SUPABASE_ARTICLES_TABLE
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.url and self.key)

    def _get_client(self) -> Client:
        if self._client is not None:
            return self._client
        if not (self.url and self.key):
            raise StorageUnavailableError("SUPABASE_URL / SUPABASE_KEY are not configured")
        self._client = create_client(self.url, self.key)
        return self._client

    async def _run(self, fn: Callable[[], T], *, operation: str) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except StorageUnavailableError:
            raise
        except Exception as exc:
            logger.warning("article_storage_call_failed", operation=operation, error=str(exc))
            raise StorageUnavailableError(str(exc)) from exc

    def _select(self, query: ArticleQuery) -> List[Dict[str, Any]]:
        q = (
            self._get_client()
            .table(self.table)
            .select("*")
            .order("published_at", desc=True)
            .range(query.offset, query.offset + query.limit - 1)
        )
        if query.category is not None:
            q = q.eq("category", query.category.value)
        if query.source:
            q = q.eq("source", query.source)
        if query.date_from is not None:
            q = q.gte("published_at", query.date_from.isoformat())
        if query.date_to is not None:
            q = q.lte("published_at", query.date_to.isoformat())
        if query.search_query:
            term = _FILTER_UNSAFE_RE.sub(" ", query.search_query).strip()
            if term:
                q = q.or_(f"title.ilike.%{term}%,summary.ilike.%{term}%")
        response = q.execute()
        return list(response.data or [])

    async def list_articles(self, query: ArticleQuery) -> List[NormalizedArticle]:
        rows = await self._run(lambda: self._select(query), operation="list_articles")
        articles: List[NormalizedArticle] = []
        for row in rows:
            try:
                article = row_to_article(row)
            except ValueError as exc:
                logger.warning("article_storage_row_invalid", row_id=row.get("id"), error=str(exc))
                continue
            if article is not None:
                articles.append(article)
        logger.info(
            "article_storage_listed",
            category=query.category.value if query.category else None,
            rows=len(rows),
            articles=len(articles),
        )
        return articles

    async def store_articles(self, articles: Sequence[NormalizedArticle]) -> int:
        if not articles:
            return 0
        rows = [article_to_row(article) for article in articles]

        def _upsert() -> int:
            response = (
                self._get_client()
                .table(self.table)
                .upsert(rows, on_conflict="source_url")
                .execute()
            )
            return len(response.data or rows)

        stored = await self._run(_upsert, operation="store_articles")
        logger.info("article_storage_stored", stored=stored)
        return stored
