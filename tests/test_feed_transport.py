from __future__ import annotations

import httpx
import pytest

from services.feed_transport import (
    DirectTransport,
    RelayTransport,
    TransportError,
    build_transports,
    fetch_text,
    first_success,
)


def test_build_transports_direct_first_and_skips_invalid_templates():
    transports = build_transports(
        ["https://relay.test/raw?url={url_encoded}", "https://broken.test/no-placeholder"]
    )
    assert isinstance(transports[0], DirectTransport)
    assert len(transports) == 2
    assert transports[1].target("https://a.test/feed?x=1") == (
        "https://relay.test/raw?url=https%3A%2F%2Fa.test%2Ffeed%3Fx%3D1"
    )


def test_relay_transport_plain_url_placeholder():
    relay = RelayTransport("https://proxy.test/fetch/{url}")
    assert relay.target("https://a.test/feed") == "https://proxy.test/fetch/https://a.test/feed"
    assert relay.name == "https://proxy.test/fetch/{url}"


@pytest.mark.asyncio
async def test_first_success_short_circuits():
    calls = []

    def attempt(name, fail):
        async def _run():
            calls.append(name)
            if fail:
                raise RuntimeError(f"{name} failed")
            return name.upper()
        return _run

    name, result = await first_success(
        [("a", attempt("a", True)), ("b", attempt("b", False)), ("c", attempt("c", False))],
        url="https://a.test",
    )

    assert (name, result) == ("b", "B")
    assert calls == ["a", "b"]


@pytest.mark.asyncio
async def test_first_success_collects_every_failure():
    async def boom():
        raise RuntimeError("nope")

    with pytest.raises(TransportError) as excinfo:
        await first_success([("a", boom), ("b", boom)], url="https://a.test")
    assert [name for name, _ in excinfo.value.errors] == ["a", "b"]


@pytest.mark.asyncio
async def test_fetch_text_uses_relay_when_direct_blocked():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.host)
        if request.url.host == "feeds.test":
            return httpx.Response(403, text="blocked")
        return httpx.Response(200, text="<rss><channel></channel></rss>")

    transports = build_transports(["https://relay.test/raw?url={url_encoded}"])
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        strategy, body = await fetch_text(client, "https://feeds.test/rss", transports)

    assert strategy == "https://relay.test/raw"
    assert body.startswith("<rss>")
    assert seen == ["feeds.test", "relay.test"]


@pytest.mark.asyncio
async def test_fetch_text_rejects_empty_body():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="   "))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(TransportError):
            await fetch_text(client, "https://feeds.test/rss", build_transports([]))
