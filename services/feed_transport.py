"""
Ordered transport strategies for fetching a feed URL.

A direct GET is tried first, then each configured relay endpoint, stopping at
the first strategy that returns a 2xx response with a non-empty body.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar
from urllib.parse import quote

import httpx

from app.core.logging import get_logger

logger = get_logger().bind(module="feed_transport")

T = TypeVar("T")


class TransportError(RuntimeError):
    """Every strategy failed for one URL."""

    def __init__(self, url: str, errors: Sequence[Tuple[str, str]]):
        self.url = url
        self.errors = list(errors)
        detail = "; ".join(f"{name}: {err}" for name, err in self.errors) or "no strategies configured"
        super().__init__(f"all transports failed for {url} ({detail})")


async def first_success(
    attempts: Sequence[Tuple[str, Callable[[], Awaitable[T]]]],
    *,
    url: str,
) -> Tuple[str, T]:
    """
    Run ``attempts`` in order and return ``(name, result)`` of the first one
    that does not raise. Raises ``TransportError`` carrying every failure.
    """
    errors: List[Tuple[str, str]] = []
    for name, attempt in attempts:
        try:
            return name, await attempt()
        except Exception as exc:
            logger.debug("feed_transport_attempt_failed", url=url, strategy=name, error=str(exc))
            errors.append((name, str(exc) or type(exc).__name__))
    raise TransportError(url, errors)


@dataclass(frozen=True)
class DirectTransport:
    name: str = "direct"

    def target(self, url: str) -> str:
        return url


@dataclass(frozen=True)
class RelayTransport:
    """Relay endpoint built from a template containing ``{url}`` or ``{url_encoded}``."""

    template: str

    @property
    def name(self) -> str:
        return self.template.split("?", 1)[0]

    def target(self, url: str) -> str:
        return self.template.format(url=url, url_encoded=quote(url, safe=""))


def build_transports(relay_templates: Optional[Sequence[str]]) -> List[object]:
    transports: List[object] = [DirectTransport()]
    for template in relay_templates or []:
        if "{url" not in template:
            logger.warning("feed_transport_invalid_relay_template", template=template)
            continue
        transports.append(RelayTransport(template))
    return transports


async def fetch_text(
    client: httpx.AsyncClient,
    url: str,
    transports: Sequence[object],
) -> Tuple[str, str]:
    """Fetch ``url`` through ``transports``; returns ``(strategy_name, body_text)``."""

    def _attempt(transport) -> Callable[[], Awaitable[str]]:
        async def _run() -> str:
            response = await client.get(transport.target(url), follow_redirects=True)
            response.raise_for_status()
            body = response.text
            if not body or not body.strip():
                raise ValueError("empty response body")
            return body
        return _run

    return await first_success([(t.name, _attempt(t)) for t in transports], url=url)
