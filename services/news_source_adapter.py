from __future__ import annotations

from typing import List, Protocol

from app.models.articles import ArticleCategory, RawArticle


class SourceAdapter(Protocol):
    """
    One source family. ``fetch`` never raises: network, status and parse
    failures are logged by the adapter and reduced to an empty list.
    """

    name: str

    async def fetch(self, category: ArticleCategory) -> List[RawArticle]:
        ...
