"""
RSS feed-set adapter.

All registered feeds are fetched concurrently; each feed is its own failure
domain. A feed is fetched directly first and then through the configured
relay endpoints, first success wins.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence

import httpx

from app.config import settings
from app.core.logging import get_logger
from app.models.articles import ArticleCategory, RawArticle
from app.models.news_sources import FeedSource, get_all_news_sources
from services.feed_transport import TransportError, build_transports, fetch_text
from services.rss_item_extractor import (
    FeedItem,
    FeedItemExtractor,
    extract_first_item,
    get_item_extractor,
    has_item_markers,
)

logger = get_logger().bind(module="news_rss_adapter")

DEGRADED_TITLE = "Cybersecurity News Update"
DEGRADED_DESCRIPTION = "Stay informed about the latest cybersecurity developments."


def _to_raw(item: FeedItem, source: FeedSource) -> Optional[RawArticle]:
    if not item.title.strip() or not item.link.strip():
        return None
    return RawArticle(
        source_tag="rss",
        source_name=source.name,
        title=item.title,
        link=item.link.strip(),
        description=item.description,
        published_raw=item.published,
        author=item.author,
        image_url=item.image_url,
        raw_markup=item.markup,
        raw_metadata={"feed_url": source.url},
    )


def _degraded_raw(item: FeedItem, source: FeedSource) -> RawArticle:
    return RawArticle(
        source_tag="rss-fallback",
        source_name=source.name,
        title=item.title.strip() or DEGRADED_TITLE,
        link=item.link.strip() or source.site_url,
        description=item.description or DEGRADED_DESCRIPTION,
        published_raw=None,
        raw_markup=item.markup,
        raw_metadata={"feed_url": source.url, "degraded": True},
    )


class RSSFeedAdapter:
    name = "rss"

    def __init__(
        self,
        *,
        sources: Optional[Sequence[FeedSource]] = None,
        extractor: Optional[FeedItemExtractor] = None,
        relay_endpoints: Optional[Sequence[str]] = None,
        max_items_per_feed: Optional[int] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._sources = list(sources) if sources is not None else None
        self.extractor = extractor or get_item_extractor(settings.NEWS_RSS_PARSER)
        self.transports = build_transports(
            relay_endpoints if relay_endpoints is not None else settings.NEWS_RELAY_ENDPOINTS
        )
        self.max_items_per_feed = max_items_per_feed or settings.NEWS_RSS_MAX_ITEMS_PER_FEED
        self.timeout_s = timeout_s or settings.NEWS_FETCH_TIMEOUT_S
        self._transport = transport

    @property
    def sources(self) -> List[FeedSource]:
        return self._sources if self._sources is not None else get_all_news_sources()

    async def fetch(self, category: ArticleCategory) -> List[RawArticle]:
        # Feeds are not category-scoped; the categorizer assigns categories later.
        sources = self.sources
        if not sources:
            logger.warning("news_rss_no_sources_configured")
            return []

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_s,
                transport=self._transport,
                headers={"User-Agent": "cybersimply-news-pipeline/1.0"},
            ) as client:
                results = await asyncio.gather(
                    *(self._fetch_feed(client, source) for source in sources),
                    return_exceptions=True,
                )
        except Exception as exc:
            logger.warning("news_rss_fetch_failed", error=str(exc))
            return []

        articles: List[RawArticle] = []
        for source, result in zip(sources, results):
            if isinstance(result, BaseException):
                logger.warning("news_rss_feed_failed", source=source.name, url=source.url, error=str(result))
                continue
            articles.extend(result)

        logger.info(
            "news_rss_fetched",
            feeds=len(sources),
            articles=len(articles),
            parser=self.extractor.name,
        )
        return articles

    async def _fetch_feed(self, client: httpx.AsyncClient, source: FeedSource) -> List[RawArticle]:
        try:
            strategy, payload = await fetch_text(client, source.url, self.transports)
        except TransportError as exc:
            logger.warning(
                "news_rss_feed_failed",
                source=source.name,
                url=source.url,
                attempts=len(exc.errors),
                error=str(exc),
            )
            return []

        logger.debug("news_rss_feed_fetched", source=source.name, strategy=strategy, chars=len(payload))
        try:
            return self.parse_feed(payload, source)
        except Exception as exc:
            logger.warning("news_rss_feed_parse_failed", source=source.name, url=source.url, error=str(exc))
            return []

    def parse_feed(self, payload: str, source: FeedSource) -> List[RawArticle]:
        items = self.extractor.extract(payload)
        articles = [a for a in (_to_raw(item, source) for item in items) if a is not None]

        if not articles and has_item_markers(payload):
            first = extract_first_item(payload)
            if first is not None:
                logger.info("news_rss_degraded_extraction", source=source.name, items_seen=len(items))
                articles = [_degraded_raw(first, source)]

        return articles[: self.max_items_per_feed]
