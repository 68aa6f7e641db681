"""
Markup cleanup plus best-effort author and image extraction.

Everything here is a pure function except ``resolve_author``, which may ask
the language model for a byline as its last resort.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence
from urllib.parse import urlparse

from dateutil import parser as date_parser

from app.core.logging import get_logger
from services.openai_service import LanguageModel, LLMUnavailableError

logger = get_logger().bind(module="text_normalizer")

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_CDATA_MARKERS_RE = re.compile(r"<!\[CDATA\[|\]\]>|&lt;!\[CDATA\[|\]\]&gt;")
_ENTITY_RE = re.compile(r"&(?:amp|lt|gt|quot|#39);")
_ENTITIES = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
}
_WHITESPACE_RE = re.compile(r"\s+")

_BYLINE_RE = re.compile(
    r"(?:^|[\n\r>])\s*(?:written by|byline|author|by)[:\s]+([^<\n\r]+)",
    re.IGNORECASE,
)
_AUTHOR_PREFIX_RE = re.compile(r"^(?:written by|byline|author|by)[:\s]*", re.IGNORECASE)
_AUTHOR_SUFFIX_RE = re.compile(r"\s*(?:,.*|\(.*\)|\[.*\]|@.*|•.*).*$")
_AUTHOR_MAX_LEN = 50

_ENCLOSURE_RE = re.compile(r"<enclosure[^>]+url=[\"']([^\"']+)[\"']", re.IGNORECASE)
_MEDIA_CONTENT_RE = re.compile(r"<media:content[^>]+url=[\"']([^\"']+)[\"']", re.IGNORECASE)
_IMG_SRC_RE = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)

IMAGE_EXTENSIONS: Sequence[str] = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg")
IMAGE_HOSTS: Sequence[str] = (
    "unsplash.com",
    "images.unsplash.com",
    "source.unsplash.com",
    "via.placeholder.com",
    "picsum.photos",
)
NEWS_IMAGE_DOMAINS: Sequence[str] = (
    "securityweek.com", "krebsonsecurity.com", "bleepingcomputer.com",
    "thehackernews.com", "cisa.gov", "ftc.gov", "feedburner.com",
    "cdn.", "img.", "images.", "static.", "assets.", "media.",
)
NEWS_DOMAIN_PATTERNS: Sequence[str] = (
    "securityweek", "krebsonsecurity", "bleepingcomputer",
    "hackernews", "feedburner", "news", "tech", "cyber", "security",
)
IMAGE_HINTS: Sequence[str] = ("image", "photo", "picture", "thumb")

AUTHOR_SYSTEM_PROMPT = (
    "You are an assistant that extracts author names from news articles. "
    "Look for the actual journalist or writer name, not the publication name. "
    "Return only the author name, nothing else. "
    'If no clear author is found, return "null".'
)


def strip_cdata(value: Optional[str]) -> str:
    """Drop plain and entity-escaped CDATA wrapper markers, then trim."""
    return _CDATA_MARKERS_RE.sub("", value or "").strip()


def clean_text(text: Optional[str]) -> str:
    """Strip CDATA wrappers and markup, decode the common entities, squash whitespace."""
    if not text:
        return ""
    value = _CDATA_MARKERS_RE.sub("", text)
    value = _HTML_TAG_RE.sub("", value)
    # Single decode pass; escaped markup is literal text and stays visible.
    value = _ENTITY_RE.sub(lambda m: _ENTITIES[m.group(0)], value)
    value = _WHITESPACE_RE.sub(" ", value)
    return value.strip()


def clean_author_name(author: Optional[str]) -> str:
    if not author:
        return ""
    value = _AUTHOR_PREFIX_RE.sub("", author.strip())
    value = _HTML_TAG_RE.sub("", value)
    value = _AUTHOR_SUFFIX_RE.sub("", value)
    value = _WHITESPACE_RE.sub(" ", value).strip()
    if len(value) > _AUTHOR_MAX_LEN:
        value = value[: _AUTHOR_MAX_LEN - 3] + "..."
    return value


def extract_byline(*texts: Optional[str]) -> Optional[str]:
    """First "by/author/written by" match across ``texts``, in order."""
    for text in texts:
        if not text:
            continue
        match = _BYLINE_RE.search(text)
        if match:
            name = clean_author_name(match.group(1))
            if name:
                return name
    return None


async def resolve_author(
    *,
    explicit: Optional[str],
    title: str,
    content: str,
    description: str,
    llm: Optional[LanguageModel],
) -> Optional[str]:
    """
    Author precedence: explicit source field, byline pattern in content or
    description, then (for a body of 100+ chars) a byline named by the model.
    The body is the content, or the description for feeds that only carry one.
    """
    if explicit and explicit.strip():
        name = clean_author_name(explicit)
        if name:
            return name

    byline = extract_byline(content, description)
    if byline:
        return byline

    body = clean_text(content) or clean_text(description)
    if llm is None or len(body) < 100:
        return None

    try:
        reply = await llm.complete(
            AUTHOR_SYSTEM_PROMPT,
            f"Extract the author name from this article:\n\nTitle: {title}\n\nContent: {body[:2000]}",
            temperature=0.1,
            max_tokens=100,
            action_type="article.author",
        )
    except LLMUnavailableError:
        return None

    candidate = reply.strip().strip('"')
    if candidate.lower() == "null" or not (2 < len(candidate) < 100):
        return None
    return clean_author_name(candidate) or None


def upgrade_to_https(url: str) -> str:
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return url


def _contains_any(value: str, needles: Iterable[str]) -> bool:
    return any(needle in value for needle in needles)


def is_valid_image_url(url: Optional[str]) -> bool:
    if not url or not isinstance(url, str):
        return False
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    lowered = url.lower()
    return (
        _contains_any(lowered, IMAGE_EXTENSIONS)
        or _contains_any(lowered, IMAGE_HOSTS)
        or _contains_any(lowered, NEWS_IMAGE_DOMAINS)
        or _contains_any(lowered, NEWS_DOMAIN_PATTERNS)
        or _contains_any(lowered, IMAGE_HINTS)
    )


def extract_image_url(
    *,
    explicit: Optional[str] = None,
    item_markup: str = "",
    description: str = "",
) -> Optional[str]:
    """
    Image precedence: explicit field, <enclosure url>, <media:content url>,
    first <img src> in the description. The winner is upgraded to https and
    must pass ``is_valid_image_url``; otherwise no image is reported.
    """
    candidate: Optional[str] = explicit.strip() if explicit and explicit.strip() else None
    if candidate is None and item_markup:
        match = _ENCLOSURE_RE.search(item_markup) or _MEDIA_CONTENT_RE.search(item_markup)
        if match:
            candidate = match.group(1)
    if candidate is None and description:
        match = _IMG_SRC_RE.search(description)
        if match:
            candidate = match.group(1)
    if candidate is None:
        return None

    candidate = upgrade_to_https(candidate.replace("&amp;", "&").strip())
    if not is_valid_image_url(candidate):
        logger.debug("image_url_rejected", url=candidate)
        return None
    return candidate


def parse_published_at(value: Optional[str], *, default: Optional[datetime] = None) -> datetime:
    """
    Parse RFC-822, ISO-8601 or "YYYY-MM-DD HH:MM:SS" timestamps to aware UTC.
    Unparsable or missing values fall back to ``default`` (ingestion time).
    """
    fallback = default or datetime.now(timezone.utc)
    if not value or not value.strip():
        return fallback
    try:
        parsed = date_parser.parse(value.strip())
    except (ValueError, OverflowError, TypeError):
        logger.debug("published_at_unparsable", value=value)
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
