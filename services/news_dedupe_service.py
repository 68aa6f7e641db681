from __future__ import annotations

from typing import Iterable, List, Set

from app.core.logging import get_logger
from app.models.articles import NormalizedArticle

logger = get_logger().bind(module="news_dedupe_service")


def dedupe_articles(articles: Iterable[NormalizedArticle]) -> List[NormalizedArticle]:
    """
    Collapse articles sharing lower-cased title + source URL.
    First occurrence wins; later ones are dropped, not merged.
    """
    seen: Set[str] = set()
    result: List[NormalizedArticle] = []
    dropped = 0
    for article in articles:
        key = article.dedupe_key()
        if key in seen:
            dropped += 1
            continue
        seen.add(key)
        result.append(article)
    if dropped:
        logger.debug("news_dedupe_dropped", dropped=dropped, kept=len(result))
    return result


def sort_articles_by_date(articles: Iterable[NormalizedArticle]) -> List[NormalizedArticle]:
    """Most recent first; ties keep their incoming order."""
    return sorted(articles, key=lambda article: article.published_at, reverse=True)
