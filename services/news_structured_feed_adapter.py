"""
Structured news API adapter (NewsData.io search endpoint).

One GET per category with a category-derived query string. Anything other
than a 200 response carrying ``status == "success"`` is a failure of the
whole adapter and yields an empty list.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import httpx

from app.config import settings
from app.core.logging import get_logger
from app.models.articles import ArticleCategory, RawArticle

logger = get_logger().bind(module="news_structured_feed_adapter")

SEARCH_QUERIES: Mapping[ArticleCategory, str] = {
    ArticleCategory.CYBERSECURITY: "cybersecurity",
    ArticleCategory.HACKING: "hacking",
    ArticleCategory.GENERAL: "technology",
}

# Free-tier placeholder the API puts in `content`.
_PAID_PLAN_MARKER = "ONLY AVAILABLE IN PAID PLANS"


def _first_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str) and item.strip():
                return item.strip()
    return None


def map_result(item: Dict[str, Any]) -> Optional[RawArticle]:
    """Map one ``results[]`` entry; entries without title or link are dropped."""
    if not isinstance(item, dict):
        return None
    title = _first_text(item.get("title"))
    link = _first_text(item.get("link"))
    if not title or not link:
        return None

    content = _first_text(item.get("content")) or ""
    if content.upper().startswith(_PAID_PLAN_MARKER):
        content = ""

    return RawArticle(
        source_tag="newsdata",
        source_name=_first_text(item.get("source_name")) or _first_text(item.get("source_id")) or "NewsData",
        title=title,
        link=link,
        description=_first_text(item.get("description")) or "",
        content=content,
        published_raw=_first_text(item.get("pubDate")),
        author=_first_text(item.get("creator")) or _first_text(item.get("author")),
        image_url=_first_text(item.get("image_url")),
        raw_metadata={"article_id": item.get("article_id"), "source_id": item.get("source_id")},
    )


class StructuredFeedAdapter:
    name = "newsdata"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        page_size: Optional[int] = None,
        language: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.NEWSDATA_API_KEY
        self.base_url = base_url or settings.NEWSDATA_BASE_URL
        self.page_size = page_size or settings.NEWSDATA_PAGE_SIZE
        self.language = language or settings.NEWSDATA_LANGUAGE
        self.timeout_s = timeout_s or settings.NEWS_FETCH_TIMEOUT_S
        self._transport = transport

    def _params(self, category: ArticleCategory) -> Dict[str, Any]:
        return {
            "apikey": self.api_key,
            "q": SEARCH_QUERIES.get(category, SEARCH_QUERIES[ArticleCategory.GENERAL]),
            "language": self.language,
            "size": self.page_size,
        }

    async def fetch(self, category: ArticleCategory) -> List[RawArticle]:
        if not self.api_key:
            logger.warning("news_structured_feed_not_configured", category=category.value)
            return []

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_s,
                transport=self._transport,
                headers={"User-Agent": "cybersimply-news-pipeline/1.0"},
            ) as client:
                response = await client.get(self.base_url, params=self._params(category))
            if response.status_code != 200:
                logger.warning(
                    "news_structured_feed_bad_status",
                    category=category.value,
                    status_code=response.status_code,
                )
                return []
            payload = response.json()
        except Exception as exc:
            logger.warning("news_structured_feed_failed", category=category.value, error=str(exc))
            return []

        if not isinstance(payload, dict) or payload.get("status") != "success":
            logger.warning(
                "news_structured_feed_error_status",
                category=category.value,
                status=payload.get("status") if isinstance(payload, dict) else None,
            )
            return []

        results = payload.get("results")
        if not isinstance(results, list):
            results = []
        articles = [a for a in (map_result(item) for item in results) if a is not None]
        logger.info(
            "news_structured_feed_fetched",
            category=category.value,
            results=len(results),
            articles=len(articles),
        )
        return articles
