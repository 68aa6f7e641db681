# tests/fixtures/__init__.py
"""
Test fixtures for the news pipeline tests.

Factory functions and fakes:
- make_raw_article()
- make_article()
- ScriptedLLM / FailingLLM (language model stand-ins)
- StaticAdapter / ExplodingAdapter (source adapter stand-ins)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from app.models.articles import ArticleCategory, NormalizedArticle, RawArticle
from services.openai_service import LLMUnavailableError


def make_raw_article(
    title: str = "Sample Title",
    link: str = "https://example.com/a",
    *,
    source_tag: str = "rss",
    source_name: str = "Example",
    description: str = "",
    content: str = "",
    published_raw: Optional[str] = "2024-05-01T10:00:00Z",
    author: Optional[str] = None,
    image_url: Optional[str] = None,
    raw_markup: str = "",
) -> RawArticle:
    return RawArticle(
        source_tag=source_tag,
        source_name=source_name,
        title=title,
        link=link,
        description=description,
        content=content,
        published_raw=published_raw,
        author=author,
        image_url=image_url,
        raw_markup=raw_markup,
    )


def make_article(
    title: str = "Sample Title",
    source_url: str = "https://example.com/a",
    *,
    published_at: Optional[datetime] = None,
    category: ArticleCategory = ArticleCategory.GENERAL,
    article_id: str = "test-1",
) -> NormalizedArticle:
    return NormalizedArticle(
        id=article_id,
        title=title,
        summary="Summary text.",
        source_url=source_url,
        source="Example",
        author=None,
        author_display="Example",
        published_at=published_at or datetime(2024, 5, 1, tzinfo=timezone.utc),
        image_url=None,
        category=category,
        what="What happened: something.",
        impact="Impact: some.",
        takeaways="Key takeaways: a few.",
        why_this_matters="Why this matters: reasons.",
    )


class ScriptedLLM:
    """Records every call; replies via ``responder(system_prompt, user_prompt, kwargs)``."""

    def __init__(self, responder: Callable[[str, str, Dict[str, Any]], str]) -> None:
        self._responder = responder
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, system_prompt: str, user_prompt: str, **kwargs: Any) -> str:
        self.calls.append({"system": system_prompt, "user": user_prompt, **kwargs})
        return self._responder(system_prompt, user_prompt, kwargs)

    def calls_for(self, action_type: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c.get("action_type") == action_type]


class FailingLLM:
    """Every call fails the way an unreachable or unconfigured backend does."""

    def __init__(self) -> None:
        self.calls = 0

    async def complete(self, system_prompt: str, user_prompt: str, **kwargs: Any) -> str:
        self.calls += 1
        raise LLMUnavailableError("backend unavailable")


class StaticAdapter:
    def __init__(self, name: str, articles: Sequence[RawArticle]) -> None:
        self.name = name
        self._articles = list(articles)
        self.categories: List[ArticleCategory] = []

    async def fetch(self, category: ArticleCategory) -> List[RawArticle]:
        self.categories.append(category)
        return list(self._articles)


class ExplodingAdapter:
    def __init__(self, name: str = "exploding") -> None:
        self.name = name

    async def fetch(self, category: ArticleCategory) -> List[RawArticle]:
        raise RuntimeError("adapter contract violated")
