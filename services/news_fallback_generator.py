"""
Deterministic article set used when every live source came back empty.

Five evergreen templates are cycled to a fixed count, one hour apart. Each
article still goes through the rewriter and the section generator so it
reads like a live one; with the model unavailable the template's own
narrative fields are kept.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from app.config import settings
from app.core.logging import get_logger
from app.models.articles import ArticleCategory, ArticleSections, NormalizedArticle
from services.article_assembler import make_article_id
from services.chunked_rewriter import ChunkedRewriter
from services.openai_service import LanguageModel
from services.section_generator import SectionGenerator

logger = get_logger().bind(module="news_fallback_generator")


@dataclass(frozen=True)
class FallbackTemplate:
    title: str
    summary: str
    source_url: str
    source: str
    image_url: str
    sections: ArticleSections


FALLBACK_TEMPLATES: Sequence[FallbackTemplate] = (
    FallbackTemplate(
        title="Cybersecurity Best Practices for Everyday Users",
        summary=(
            "Essential security tips to protect your digital life. Learn about password management, "
            "two-factor authentication, and staying safe online."
        ),
        source_url="https://www.cisa.gov/secure-our-world",
        source="CISA",
        image_url="https://images.unsplash.com/photo-1555949963-aa79dcee981c?w=800&h=400&fit=crop&crop=center",
        sections=ArticleSections(
            what=(
                "What happened: Cybersecurity threats are constantly evolving, and it's important "
                "to stay updated with the latest security practices."
            ),
            impact="Impact: Following these practices helps protect your personal data and prevents cyber attacks.",
            takeaways=(
                "Key takeaways: Use strong passwords, enable two-factor authentication, "
                "and stay informed about security threats."
            ),
            why_this_matters=(
                "Why this matters: Understanding cybersecurity helps you stay safe online "
                "and protect your valuable information."
            ),
        ),
    ),
    FallbackTemplate(
        title="How to Protect Your Personal Data Online",
        summary=(
            "Simple steps to safeguard your personal information from cyber threats. "
            "Discover essential privacy tools and techniques."
        ),
        source_url="https://consumer.ftc.gov/identity-theft-and-online-security",
        source="FTC",
        image_url="https://images.unsplash.com/photo-1563013544-824ae1b704d3?w=800&h=400&fit=crop&crop=center",
        sections=ArticleSections(
            what="What happened: Personal data protection is more important than ever as cyber threats continue to increase.",
            impact="Impact: Protecting your data prevents identity theft and keeps your personal information secure.",
            takeaways=(
                "Key takeaways: Be careful with what you share online, use privacy settings, "
                "and monitor your accounts regularly."
            ),
            why_this_matters=(
                "Why this matters: Your personal data is valuable to cybercriminals, "
                "so protecting it is essential for your safety."
            ),
        ),
    ),
    FallbackTemplate(
        title="Understanding Phishing Attacks",
        summary=(
            "Learn how to identify and avoid phishing attempts that target your accounts. "
            "Stay one step ahead of cybercriminals."
        ),
        source_url="https://krebsonsecurity.com/",
        source="KrebsOnSecurity",
        image_url="https://images.unsplash.com/photo-1558494949-ef010cbdcc31?w=800&h=400&fit=crop&crop=center",
        sections=ArticleSections(
            what="What happened: Phishing attacks are becoming more sophisticated and targeting more people than ever before.",
            impact="Impact: Falling for phishing attacks can lead to stolen passwords, financial loss, and identity theft.",
            takeaways="Key takeaways: Never click suspicious links, verify sender identities, and report suspicious emails.",
            why_this_matters=(
                "Why this matters: Phishing is one of the most common cyber threats, "
                "so knowing how to spot it is crucial."
            ),
        ),
    ),
    FallbackTemplate(
        title="Ransomware Protection Strategies",
        summary=(
            "Comprehensive guide to protecting your systems from ransomware attacks. "
            "Learn prevention techniques and recovery methods."
        ),
        source_url="https://www.nist.gov/cyberframework",
        source="NIST",
        image_url="https://images.unsplash.com/photo-1551288049-bebda4e38f71?w=800&h=400&fit=crop&crop=center",
        sections=ArticleSections(
            what=(
                "What happened: Ransomware attacks have increased dramatically, "
                "targeting businesses and individuals worldwide."
            ),
            impact=(
                "Impact: Ransomware can encrypt your files and demand payment, "
                "causing significant financial and data loss."
            ),
            takeaways="Key takeaways: Keep backups, update software regularly, and never pay ransom demands.",
            why_this_matters=(
                "Why this matters: Ransomware can destroy your data and cost thousands of dollars in recovery efforts."
            ),
        ),
    ),
    FallbackTemplate(
        title="Secure Password Management",
        summary=(
            "Best practices for creating and managing strong passwords. "
            "Learn about password managers and multi-factor authentication."
        ),
        source_url="https://haveibeenpwned.com/",
        source="HaveIBeenPwned",
        image_url="https://images.unsplash.com/photo-1596462502278-27bfdc403348?w=800&h=400&fit=crop&crop=center",
        sections=ArticleSections(
            what="What happened: Weak passwords are the leading cause of security breaches and account compromises.",
            impact="Impact: Strong passwords protect your accounts from unauthorized access and data theft.",
            takeaways=(
                "Key takeaways: Use unique passwords, enable 2FA, and check if your accounts have been compromised."
            ),
            why_this_matters="Why this matters: Your passwords are the first line of defense against cyber attacks.",
        ),
    ),
)


def fallback_title(template: FallbackTemplate, index: int) -> str:
    """The first pass over the templates keeps plain titles; later passes get ``- Part N``."""
    size = len(FALLBACK_TEMPLATES)
    if index < size:
        return template.title
    return f"{template.title} - Part {index // size + 1}"


def build_fallback_article(
    index: int,
    category: ArticleCategory,
    *,
    now: datetime,
    summary: Optional[str] = None,
    sections: Optional[ArticleSections] = None,
) -> NormalizedArticle:
    template = FALLBACK_TEMPLATES[index % len(FALLBACK_TEMPLATES)]
    sections = sections or template.sections
    return NormalizedArticle(
        id=make_article_id("fallback"),
        title=fallback_title(template, index),
        summary=summary or template.summary,
        source_url=template.source_url,
        source=template.source,
        author=None,
        author_display=template.source,
        published_at=now - timedelta(hours=index),
        image_url=template.image_url,
        category=category,
        what=sections.what,
        impact=sections.impact,
        takeaways=sections.takeaways,
        why_this_matters=sections.why_this_matters,
    )


class FallbackGenerator:
    def __init__(
        self,
        llm: Optional[LanguageModel],
        *,
        count: Optional[int] = None,
        rewriter: Optional[ChunkedRewriter] = None,
        section_generator: Optional[SectionGenerator] = None,
        max_concurrency: Optional[int] = None,
    ) -> None:
        self.count = count if count is not None else settings.FALLBACK_ARTICLE_COUNT
        if self.count <= 0:
            raise ValueError("fallback article count must be positive")
        self.rewriter = rewriter or ChunkedRewriter(llm)
        self.section_generator = section_generator or SectionGenerator(llm)
        self.max_concurrency = max(1, max_concurrency or settings.ASSEMBLY_MAX_CONCURRENCY)

    async def generate(self, category: ArticleCategory, *, now: Optional[datetime] = None) -> List[NormalizedArticle]:
        now = now or datetime.now(timezone.utc)
        sem = asyncio.Semaphore(self.max_concurrency)

        async def _one(index: int) -> NormalizedArticle:
            async with sem:
                return await self._render(index, category, now=now)

        articles = list(await asyncio.gather(*(_one(i) for i in range(self.count))))
        logger.info("news_fallback_generated", category=category.value, articles=len(articles))
        return articles

    async def _render(
        self,
        index: int,
        category: ArticleCategory,
        *,
        now: datetime,
    ) -> NormalizedArticle:
        template = FALLBACK_TEMPLATES[index % len(FALLBACK_TEMPLATES)]
        try:
            summary = await self.rewriter.rewrite(template.summary)
            sections = await self.section_generator.generate(
                template.title, summary, defaults=template.sections
            )
            return build_fallback_article(index, category, now=now, summary=summary, sections=sections)
        except Exception as exc:
            logger.warning("news_fallback_render_failed", index=index, error=str(exc))
            return build_fallback_article(index, category, now=now)
