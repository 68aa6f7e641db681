from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fixtures import make_article
from services.news_dedupe_service import dedupe_articles, sort_articles_by_date


def test_dedupe_first_occurrence_wins():
    first = make_article("Data Breach Hits Retailer", "https://example.com/breach", article_id="a")
    dup = make_article("DATA BREACH hits retailer", "https://example.com/breach", article_id="b")
    other_url = make_article("Data Breach Hits Retailer", "https://example.com/other", article_id="c")

    result = dedupe_articles([first, dup, other_url])

    assert [a.id for a in result] == ["a", "c"]


def test_dedupe_is_idempotent():
    articles = [
        make_article(f"Title {i % 3}", f"https://example.com/{i % 2}", article_id=str(i))
        for i in range(12)
    ]
    once = dedupe_articles(articles)
    assert dedupe_articles(once) == once
    assert len({a.dedupe_key() for a in once}) == len(once)


def test_sort_most_recent_first_and_stable():
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    articles = [
        make_article("old", "https://example.com/1", published_at=base, article_id="old"),
        make_article("new", "https://example.com/2", published_at=base + timedelta(hours=2), article_id="new"),
        make_article("tie-a", "https://example.com/3", published_at=base + timedelta(hours=1), article_id="tie-a"),
        make_article("tie-b", "https://example.com/4", published_at=base + timedelta(hours=1), article_id="tie-b"),
    ]

    result = sort_articles_by_date(articles)

    assert [a.id for a in result] == ["new", "tie-a", "tie-b", "old"]
    for earlier, later in zip(result, result[1:]):
        assert earlier.published_at >= later.published_at
