"""
RSS feed registry loader.

Parses configs/news_sources.yml into typed FeedSource objects with
structlog-backed validation and caching.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

import yaml

from app.config import settings
from app.core.logging import get_logger

logger = get_logger()

# Display names for well-known hosts, used when a feed URL is not in the registry.
_KNOWN_HOST_NAMES: Dict[str, str] = {
    "krebsonsecurity": "KrebsOnSecurity",
    "securityweek": "SecurityWeek",
    "bleepingcomputer": "BleepingComputer",
    "hackernews": "The Hacker News",
    "cisa.gov": "CISA",
    "ftc.gov": "FTC",
}


@dataclass(frozen=True)
class FeedSource:
    """Single RSS/Atom feed definition."""

    key: str
    name: str
    url: str
    site_url: str
    enabled: bool = True


def source_name_for_url(feed_url: str) -> str:
    hostname = (urlparse(feed_url).hostname or "").lower()
    for needle, display in _KNOWN_HOST_NAMES.items():
        if needle in hostname:
            return display
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname or feed_url


def _site_url_for(feed_url: str) -> str:
    parsed = urlparse(feed_url)
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return feed_url


def load_news_sources_config(path: Optional[Path] = None) -> Dict[str, object]:
    """
    Load raw YAML config.

    Returns empty dict if file is missing or invalid to keep the pipeline running.
    """
    cfg_path = Path(path) if path else Path(settings.NEWS_SOURCES_FILE)
    try:
        text = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.error("news_sources_config_not_found", path=str(cfg_path))
        return {}
    except OSError as exc:
        logger.error("news_sources_config_read_error", path=str(cfg_path), error=str(exc))
        return {}

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        logger.error("news_sources_config_parse_error", path=str(cfg_path), error=str(exc))
        return {}

    if not isinstance(data, dict):
        logger.error(
            "news_sources_config_invalid_root",
            path=str(cfg_path),
            root_type=type(data).__name__,
        )
        return {}

    return data


def _validate_source(raw: Dict[str, object], defaults: Dict[str, object]) -> Optional[FeedSource]:
    """Validate raw dict and convert to FeedSource, logging issues."""
    url = raw.get("url")
    if not isinstance(url, str) or not url.strip():
        logger.warning("news_source_invalid_missing_url", raw=raw)
        return None
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        logger.warning("news_source_invalid_url", url=url)
        return None

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        name = source_name_for_url(url)

    site_url = raw.get("site_url")
    if not isinstance(site_url, str) or not site_url.strip():
        site_url = _site_url_for(url)

    key = raw.get("key")
    if not isinstance(key, str) or not key.strip():
        key = url

    enabled = raw.get("enabled", defaults.get("enabled", True))

    return FeedSource(
        key=key.strip().lower(),
        name=name.strip(),
        url=url,
        site_url=site_url.strip(),
        enabled=bool(enabled),
    )


@lru_cache(maxsize=8)
def _load_sources_from_path(path_str: str) -> List[FeedSource]:
    cfg_path = Path(path_str)
    cfg = load_news_sources_config(cfg_path)
    raw_sources = cfg.get("sources", [])
    defaults = cfg.get("defaults") or {}
    defaults_dict = defaults if isinstance(defaults, dict) else {}

    if not isinstance(raw_sources, list):
        logger.error(
            "news_sources_invalid_sources_type",
            actual_type=type(raw_sources).__name__,
            path=str(cfg_path),
        )
        return []

    result: List[FeedSource] = []
    for idx, raw in enumerate(raw_sources):
        if not isinstance(raw, dict):
            logger.warning(
                "news_source_invalid_entry_type",
                index=idx,
                value_type=type(raw).__name__,
            )
            continue
        parsed = _validate_source(raw, defaults_dict)
        if parsed and parsed.enabled:
            result.append(parsed)

    logger.info("news_sources_loaded", path=str(cfg_path), total=len(result))
    return result


def get_all_news_sources(path: Optional[Path] = None) -> List[FeedSource]:
    """
    Public accessor for all enabled feeds.

    Accepts optional path (useful for tests). Results are cached per-path.
    """
    cfg_path = Path(path) if path else Path(settings.NEWS_SOURCES_FILE)
    return list(_load_sources_from_path(str(cfg_path.resolve())))


def clear_news_sources_cache() -> None:
    """Reset LRU cache (useful for tests)."""
    _load_sources_from_path.cache_clear()
