"""
Unified ingestion pipeline.

    adapters (concurrent) -> assemble (bounded) -> dedupe -> sort
    (fallback set when the sorted list is empty)

``run`` never raises: every failure mode degrades toward a non-empty list.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from app.config import settings, supabase_configured
from app.core.logging import get_logger
from app.core.request_id import get_run_id, with_run_id
from app.models.articles import ArticleCategory, NormalizedArticle, RawArticle
from services.article_assembler import ArticleAssembler
from services.article_storage_service import ArticleStorageService
from services.news_dedupe_service import dedupe_articles, sort_articles_by_date
from services.news_fallback_generator import FallbackGenerator, build_fallback_article
from services.news_rss_adapter import RSSFeedAdapter
from services.news_secondary_feed_adapter import SecondaryFeedAdapter
from services.news_source_adapter import SourceAdapter
from services.news_structured_feed_adapter import StructuredFeedAdapter
from services.openai_service import LanguageModel, OpenAIService

logger = get_logger().bind(module="news_pipeline_service")


@dataclass
class PipelineResult:
    category: ArticleCategory
    articles: List[NormalizedArticle]
    fetched: Dict[str, int] = field(default_factory=dict)
    assembled: int = 0
    dropped: int = 0
    fallback_used: bool = False
    duration_ms: int = 0


class NewsPipelineService:
    def __init__(
        self,
        *,
        adapters: Sequence[SourceAdapter],
        assembler: ArticleAssembler,
        fallback_generator: FallbackGenerator,
        max_concurrency: Optional[int] = None,
    ) -> None:
        # Order matters: dedupe keeps the first occurrence in adapter order.
        self.adapters = list(adapters)
        self.assembler = assembler
        self.fallback_generator = fallback_generator
        self.max_concurrency = max(1, max_concurrency or settings.ASSEMBLY_MAX_CONCURRENCY)

    async def run(self, category: ArticleCategory) -> List[NormalizedArticle]:
        result = await self.run_detailed(category)
        return result.articles

    async def run_detailed(self, category: ArticleCategory) -> PipelineResult:
        started = time.monotonic()
        with with_run_id(get_run_id(), category=category.value):
            logger.info("news_pipeline_started", category=category.value, adapters=len(self.adapters))
            try:
                result = await self._run(category)
            except Exception as exc:
                logger.error("news_pipeline_failed", category=category.value, error=str(exc))
                result = PipelineResult(
                    category=category,
                    articles=await self._fallback(category),
                    fallback_used=True,
                )
            result.duration_ms = int((time.monotonic() - started) * 1000)
            logger.info(
                "news_pipeline_summary",
                category=category.value,
                fetched=result.fetched,
                assembled=result.assembled,
                dropped=result.dropped,
                returned=len(result.articles),
                fallback_used=result.fallback_used,
                duration_ms=result.duration_ms,
            )
            return result

    async def _run(self, category: ArticleCategory) -> PipelineResult:
        fetched, raw_articles = await self._fetch_all(category)

        ingested_at = datetime.now(timezone.utc)
        assembled = await self._assemble_all(raw_articles, ingested_at=ingested_at)
        articles = sort_articles_by_date(dedupe_articles(assembled))

        result = PipelineResult(
            category=category,
            articles=articles,
            fetched=fetched,
            assembled=len(assembled),
            dropped=len(raw_articles) - len(assembled),
        )
        if not articles:
            logger.warning("news_pipeline_fallback_used", category=category.value, raw=len(raw_articles))
            result.articles = await self._fallback(category)
            result.fallback_used = True
        return result

    async def _fetch_all(self, category: ArticleCategory) -> tuple[Dict[str, int], List[RawArticle]]:
        results = await asyncio.gather(
            *(adapter.fetch(category) for adapter in self.adapters),
            return_exceptions=True,
        )
        fetched: Dict[str, int] = {}
        merged: List[RawArticle] = []
        for adapter, outcome in zip(self.adapters, results):
            if isinstance(outcome, BaseException):
                logger.warning("news_pipeline_adapter_failed", adapter=adapter.name, error=str(outcome))
                fetched[adapter.name] = 0
                continue
            fetched[adapter.name] = len(outcome)
            merged.extend(outcome)
        return fetched, merged

    async def _assemble_all(
        self,
        raw_articles: Sequence[RawArticle],
        *,
        ingested_at: datetime,
    ) -> List[NormalizedArticle]:
        sem = asyncio.Semaphore(self.max_concurrency)

        async def _one(raw: RawArticle) -> Optional[NormalizedArticle]:
            async with sem:
                try:
                    return await self.assembler.assemble(raw, ingested_at=ingested_at)
                except Exception as exc:
                    logger.warning(
                        "news_pipeline_article_dropped",
                        source=raw.source_tag,
                        link=raw.link,
                        error=str(exc),
                    )
                    return None

        outcomes = await asyncio.gather(*(_one(raw) for raw in raw_articles))
        return [article for article in outcomes if article is not None]

    async def _fallback(self, category: ArticleCategory) -> List[NormalizedArticle]:
        try:
            return await self.fallback_generator.generate(category)
        except Exception as exc:
            logger.error("news_fallback_generator_failed", category=category.value, error=str(exc))
            now = datetime.now(timezone.utc)
            return [
                build_fallback_article(i, category, now=now)
                for i in range(self.fallback_generator.count)
            ]


def build_pipeline(
    *,
    llm: Optional[LanguageModel] = None,
    storage: Optional[ArticleStorageService] = None,
) -> NewsPipelineService:
    """Wire the production collaborators from settings."""
    if llm is None:
        service = OpenAIService()
        llm = service if service.available else None
    if storage is None and supabase_configured():
        storage = ArticleStorageService()

    return NewsPipelineService(
        adapters=[
            StructuredFeedAdapter(),
            SecondaryFeedAdapter(storage),
            RSSFeedAdapter(),
        ],
        assembler=ArticleAssembler(llm),
        fallback_generator=FallbackGenerator(llm),
    )
