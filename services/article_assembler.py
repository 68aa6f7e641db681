from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

from app.config import settings
from app.core.logging import get_logger
from app.models.articles import ArticleCategory, ArticleSections, NormalizedArticle, RawArticle
from services.chunked_rewriter import ChunkedRewriter
from services.news_categorizer import determine_category
from services.openai_service import LanguageModel
from services.section_generator import SectionGenerator
from services.text_normalizer import clean_text, extract_image_url, parse_published_at, resolve_author

logger = get_logger().bind(module="article_assembler")

_MIN_BODY_CHARS = 10


class MalformedArticleError(ValueError):
    """Raw article lacks a title or a link."""


def make_article_id(source_tag: str) -> str:
    return f"{source_tag}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def default_body_for(title: str) -> str:
    return (
        f"This article discusses {title.lower()}. "
        "Stay informed about the latest developments in cybersecurity and technology."
    )


def _display_name(author: Optional[str], source: str, link: str) -> str:
    for candidate in (author, source, urlparse(link).hostname):
        if candidate and candidate.strip():
            return candidate.strip()
    return "Unknown source"


class ArticleAssembler:
    """
    Runs one raw article through normalization, chunked rewriting, section
    generation and categorization, producing the canonical record.
    """

    def __init__(
        self,
        llm: Optional[LanguageModel],
        *,
        rewriter: Optional[ChunkedRewriter] = None,
        section_generator: Optional[SectionGenerator] = None,
        min_rewrite_chars: Optional[int] = None,
    ) -> None:
        self._llm = llm
        self.rewriter = rewriter or ChunkedRewriter(llm)
        self.section_generator = section_generator or SectionGenerator(llm)
        self.min_rewrite_chars = (
            min_rewrite_chars if min_rewrite_chars is not None else settings.REWRITE_MIN_CHARS
        )

    async def assemble(
        self,
        raw: RawArticle,
        *,
        ingested_at: Optional[datetime] = None,
        category: Optional[ArticleCategory] = None,
        section_defaults: Optional[ArticleSections] = None,
    ) -> NormalizedArticle:
        title = clean_text(raw.title)
        link = (raw.link or "").strip()
        if not title or not link:
            raise MalformedArticleError(f"missing title or link (source={raw.source_tag})")

        description = clean_text(raw.description)
        body = clean_text(raw.content) or description
        if len(body) < _MIN_BODY_CHARS:
            body = default_body_for(title)

        summary = body
        if len(body) > self.min_rewrite_chars:
            summary = await self.rewriter.rewrite(body)

        sections = await self.section_generator.generate(title, summary, defaults=section_defaults)

        author = await resolve_author(
            explicit=raw.author,
            title=title,
            content=raw.content,
            description=raw.description,
            llm=self._llm,
        )

        image_url = extract_image_url(
            explicit=raw.image_url,
            item_markup=raw.raw_markup,
            description=raw.description,
        )

        published_at = parse_published_at(
            raw.published_raw,
            default=ingested_at or datetime.now(timezone.utc),
        )

        return NormalizedArticle(
            id=make_article_id(raw.source_tag),
            title=title,
            summary=summary,
            source_url=link,
            source=raw.source_name,
            author=author,
            author_display=_display_name(author, raw.source_name, link),
            published_at=published_at,
            image_url=image_url,
            category=category or determine_category(title, description),
            what=sections.what,
            impact=sections.impact,
            takeaways=sections.takeaways,
            why_this_matters=sections.why_this_matters,
        )
