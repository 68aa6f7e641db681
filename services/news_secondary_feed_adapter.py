"""
Secondary source: previously persisted articles from the storage collaborator.

When storage cannot be reached (or is not configured) a small hand-authored
set of evergreen articles is returned instead. Every link in that set points
at a real public page.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Protocol, Sequence

from app.core.logging import get_logger
from app.models.articles import ArticleCategory, ArticleQuery, NormalizedArticle, RawArticle
from services.article_storage_service import StorageUnavailableError

logger = get_logger().bind(module="news_secondary_feed_adapter")

FALLBACK_SOURCE_NAME = "CyberSimply"

# (title, description, url)
FALLBACK_ARTICLES: Sequence[tuple[str, str, str]] = (
    (
        "Cybersecurity Best Practices for Everyday Users",
        "Essential security tips to protect your digital life, from software updates to safer browsing habits.",
        "https://www.cisa.gov/secure-our-world",
    ),
    (
        "How to Recognize and Avoid Phishing Scams",
        "Learn how to identify and avoid phishing attempts that target your email, text messages and accounts.",
        "https://consumer.ftc.gov/articles/how-recognize-and-avoid-phishing-scams",
    ),
    (
        "Password Security: Create Strong Passwords",
        "Learn how to create and manage strong passwords to protect your online accounts.",
        "https://www.cisa.gov/secure-our-world/use-strong-passwords",
    ),
    (
        "Multifactor Authentication: Why You Need It",
        "Multifactor authentication adds an extra layer of security to your accounts, even when a password leaks.",
        "https://www.cisa.gov/secure-our-world/turn-mfa",
    ),
    (
        "How to Protect Your Personal Data Online",
        "Simple steps to safeguard your personal information from identity theft and online threats.",
        "https://consumer.ftc.gov/identity-theft-and-online-security",
    ),
)


class ArticleReader(Protocol):
    async def list_articles(self, query: ArticleQuery) -> List[NormalizedArticle]: ...


def stored_to_raw(article: NormalizedArticle) -> RawArticle:
    return RawArticle(
        source_tag="stored",
        source_name=article.source,
        title=article.title,
        link=article.source_url,
        description=article.summary,
        published_raw=article.published_at.isoformat(),
        author=article.author,
        image_url=article.image_url,
        raw_metadata={"stored_id": article.id, "category": article.category.value},
    )


def fallback_articles(*, now: Optional[datetime] = None) -> List[RawArticle]:
    """The hand-authored set, newest first, one day apart."""
    now = now or datetime.now(timezone.utc)
    return [
        RawArticle(
            source_tag="secondary-fallback",
            source_name=FALLBACK_SOURCE_NAME,
            title=title,
            link=url,
            description=description,
            published_raw=(now - timedelta(days=i)).isoformat(),
        )
        for i, (title, description, url) in enumerate(FALLBACK_ARTICLES)
    ]


class SecondaryFeedAdapter:
    name = "secondary"

    def __init__(self, storage: Optional[ArticleReader], *, limit: int = 10) -> None:
        self._storage = storage
        self.limit = limit

    async def fetch(self, category: ArticleCategory) -> List[RawArticle]:
        if self._storage is None:
            logger.info("news_secondary_storage_not_configured", category=category.value)
            return fallback_articles()

        try:
            stored = await self._storage.list_articles(ArticleQuery(category=category, limit=self.limit))
        except StorageUnavailableError as exc:
            logger.warning("news_secondary_storage_unavailable", category=category.value, error=str(exc))
            return fallback_articles()
        except Exception as exc:
            logger.warning("news_secondary_fetch_failed", category=category.value, error=str(exc))
            return []

        articles = [stored_to_raw(article) for article in stored]
        logger.info("news_secondary_fetched", category=category.value, articles=len(articles))
        return articles
