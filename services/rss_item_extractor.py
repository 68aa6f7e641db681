"""
Item extraction from RSS/Atom payloads.

Real-world feeds are not schema-guaranteed, so the default extractor is a
tolerant pattern matcher over ``<item>`` blocks rather than an XML parser.
Both extractors produce the same ``FeedItem`` shape, so the RSS adapter can
swap one for the other without downstream changes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import feedparser

from services.text_normalizer import strip_cdata

_ITEM_RE = re.compile(r"<item[^>]*>([\s\S]*?)</item>", re.IGNORECASE)
_ITEM_MARKER_RE = re.compile(r"<item[\s>]", re.IGNORECASE)


@dataclass(frozen=True)
class FeedItem:
    title: str
    link: str
    description: str
    published: Optional[str]
    author: Optional[str]
    image_url: Optional[str]
    markup: str


class FeedItemExtractor(Protocol):
    name: str

    def extract(self, payload: str) -> List[FeedItem]:
        ...


def extract_xml_value(xml: str, tag_name: str) -> str:
    """Inner text of the first ``<tag_name>`` element, trimmed; empty string if absent."""
    pattern = re.compile(
        rf"<{re.escape(tag_name)}(?:\s[^>]*)?>([\s\S]*?)</{re.escape(tag_name)}>",
        re.IGNORECASE,
    )
    match = pattern.search(xml)
    return match.group(1).strip() if match else ""


def has_item_markers(payload: str) -> bool:
    return bool(_ITEM_MARKER_RE.search(payload or ""))


def _item_from_markup(item_xml: str) -> FeedItem:
    return FeedItem(
        title=extract_xml_value(item_xml, "title"),
        link=strip_cdata(extract_xml_value(item_xml, "link")),
        description=extract_xml_value(item_xml, "description"),
        published=extract_xml_value(item_xml, "pubDate") or None,
        author=extract_xml_value(item_xml, "dc:creator") or extract_xml_value(item_xml, "author") or None,
        image_url=None,
        markup=item_xml,
    )


def extract_first_item(payload: str) -> Optional[FeedItem]:
    """Degraded extraction of only the first item block, fields possibly empty."""
    match = _ITEM_RE.search(payload or "")
    if not match:
        return None
    return _item_from_markup(match.group(1))


class RegexItemExtractor:
    name = "regex"

    def extract(self, payload: str) -> List[FeedItem]:
        return [_item_from_markup(m.group(1)) for m in _ITEM_RE.finditer(payload or "")]


def _first_content_value(entry: Dict[str, Any]) -> str:
    content = entry.get("content")
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict):
                val = block.get("value")
                if isinstance(val, str) and val.strip():
                    return val
    return ""


def _entry_image(entry: Dict[str, Any]) -> Optional[str]:
    for key in ("media_content", "media_thumbnail"):
        media = entry.get(key)
        if isinstance(media, list):
            for block in media:
                if isinstance(block, dict) and isinstance(block.get("url"), str):
                    return block["url"]
    for link in entry.get("links") or []:
        if isinstance(link, dict) and link.get("rel") == "enclosure":
            href = link.get("href")
            if isinstance(href, str) and str(link.get("type") or "").startswith("image"):
                return href
    return None


class FeedparserItemExtractor:
    """Stricter RSS/Atom extraction through feedparser (also handles Atom entries)."""

    name = "feedparser"

    def extract(self, payload: str) -> List[FeedItem]:
        parsed = feedparser.parse(payload or "")
        items: List[FeedItem] = []
        for entry in getattr(parsed, "entries", []) or []:
            title = entry.get("title") if isinstance(entry.get("title"), str) else ""
            link = entry.get("link") if isinstance(entry.get("link"), str) else ""
            description = entry.get("summary") or entry.get("description") or _first_content_value(entry)
            items.append(
                FeedItem(
                    title=(title or "").strip(),
                    link=(link or "").strip(),
                    description=description if isinstance(description, str) else "",
                    published=entry.get("published") or entry.get("updated"),
                    author=entry.get("author"),
                    image_url=_entry_image(entry),
                    markup="",
                )
            )
        return items


def get_item_extractor(name: Optional[str]) -> FeedItemExtractor:
    if (name or "").strip().lower() == "feedparser":
        return FeedparserItemExtractor()
    return RegexItemExtractor()
