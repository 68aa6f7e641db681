from __future__ import annotations

import httpx
import pytest

from app.models.articles import ArticleCategory
from app.models.news_sources import FeedSource
from services.news_rss_adapter import DEGRADED_TITLE, RSSFeedAdapter
from services.rss_item_extractor import RegexItemExtractor

KREBS = FeedSource(
    key="krebs",
    name="KrebsOnSecurity",
    url="https://feeds.test/krebs",
    site_url="https://krebs.test",
)
CISA = FeedSource(
    key="cisa",
    name="CISA",
    url="https://feeds.test/cisa",
    site_url="https://cisa.test",
)


def _rss(*items: str) -> str:
    return "<rss><channel>" + "".join(items) + "</channel></rss>"


def _item(n: int) -> str:
    return (
        f"<item><title>Story {n}</title><link>https://example.com/{n}</link>"
        f"<description>Body {n}</description><pubDate>Mon, 01 Jan 2024 10:00:00 GMT</pubDate></item>"
    )


def _adapter(handler, *, sources=(KREBS,), relays=(), max_items=20) -> RSSFeedAdapter:
    return RSSFeedAdapter(
        sources=list(sources),
        extractor=RegexItemExtractor(),
        relay_endpoints=list(relays),
        max_items_per_feed=max_items,
        timeout_s=5.0,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_rss_adapter_maps_items_with_registry_source_name():
    adapter = _adapter(lambda request: httpx.Response(200, text=_rss(_item(1), _item(2))))

    articles = await adapter.fetch(ArticleCategory.CYBERSECURITY)

    assert [a.title for a in articles] == ["Story 1", "Story 2"]
    assert all(a.source_name == "KrebsOnSecurity" for a in articles)
    assert all(a.source_tag == "rss" for a in articles)
    assert articles[0].published_raw == "Mon, 01 Jan 2024 10:00:00 GMT"


@pytest.mark.asyncio
async def test_rss_adapter_caps_items_per_feed():
    payload = _rss(*(_item(i) for i in range(30)))
    adapter = _adapter(lambda request: httpx.Response(200, text=payload), max_items=20)

    articles = await adapter.fetch(ArticleCategory.GENERAL)

    assert len(articles) == 20


@pytest.mark.asyncio
async def test_rss_adapter_stops_at_first_working_relay():
    hosts = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        if request.url.host in ("feeds.test", "relay-one.test"):
            return httpx.Response(403)
        return httpx.Response(200, text=_rss(_item(7)))

    adapter = _adapter(
        handler,
        relays=[
            "https://relay-one.test/raw?url={url_encoded}",
            "https://relay-two.test/raw?url={url_encoded}",
            "https://relay-three.test/raw?url={url_encoded}",
        ],
    )

    articles = await adapter.fetch(ArticleCategory.HACKING)

    assert [a.title for a in articles] == ["Story 7"]
    assert hosts == ["feeds.test", "relay-one.test", "relay-two.test"]


@pytest.mark.asyncio
async def test_rss_adapter_isolates_failing_feed():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/cisa":
            return httpx.Response(500)
        return httpx.Response(200, text=_rss(_item(1)))

    adapter = _adapter(handler, sources=(KREBS, CISA))

    articles = await adapter.fetch(ArticleCategory.CYBERSECURITY)

    assert [a.source_name for a in articles] == ["KrebsOnSecurity"]


@pytest.mark.asyncio
async def test_rss_adapter_all_feeds_down_returns_empty():
    adapter = _adapter(lambda request: httpx.Response(503), sources=(KREBS, CISA))
    assert await adapter.fetch(ArticleCategory.CYBERSECURITY) == []


def test_parse_feed_degraded_extraction_of_first_item():
    adapter = _adapter(lambda request: httpx.Response(200))
    payload = _rss(
        "<item><description>Only a description here.</description></item>",
        "<item><description>Second.</description></item>",
    )

    articles = adapter.parse_feed(payload, KREBS)

    assert len(articles) == 1
    degraded = articles[0]
    assert degraded.title == DEGRADED_TITLE
    assert degraded.link == "https://krebs.test"
    assert degraded.description == "Only a description here."
    assert degraded.source_tag == "rss-fallback"


def test_parse_feed_without_item_markers_gives_up():
    adapter = _adapter(lambda request: httpx.Response(200))
    assert adapter.parse_feed("<html><body>Blocked</body></html>", KREBS) == []


def test_parse_feed_drops_items_missing_link():
    adapter = _adapter(lambda request: httpx.Response(200))
    payload = _rss("<item><title>No link</title></item>", _item(3))
    assert [a.title for a in adapter.parse_feed(payload, KREBS)] == ["Story 3"]


def test_parse_feed_strips_cdata_from_links():
    adapter = _adapter(lambda request: httpx.Response(200))
    payload = _rss(
        "<item><title>Wrapped link</title><link><![CDATA[ https://k.test/a ]]></link></item>",
        "<item><title>Empty wrapped link</title><link><![CDATA[]]></link></item>",
    )

    articles = adapter.parse_feed(payload, KREBS)

    assert [(a.title, a.link) for a in articles] == [("Wrapped link", "https://k.test/a")]
