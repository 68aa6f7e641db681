# app/config.py
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# app/config.py lives one level below the repo root
REPO_ROOT = Path(__file__).resolve().parents[1]
ENV_FILE = REPO_ROOT / ".env"
load_dotenv(ENV_FILE, override=False)

DEFAULT_RELAY_ENDPOINTS: List[str] = [
    "https://api.allorigins.win/raw?url={url_encoded}",
    "https://api.codetabs.com/v1/proxy?quest={url_encoded}",
    "https://corsproxy.io/?{url_encoded}",
    "https://thingproxy.freeboard.io/fetch/{url}",
]


class Settings(BaseSettings):
    # ---- App ----
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    LOG_MAX_FIELD_CHARS: int = 500

    # ---- OpenAI ----
    # Not required at class level; a missing key means "model unavailable"
    # and every caller falls back to its template path.
    OPENAI_API_KEY: Optional[str] = Field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT_S: float = 30.0

    # ---- Structured feed (NewsData.io) ----
    NEWSDATA_API_KEY: Optional[str] = None
    NEWSDATA_BASE_URL: str = "https://newsdata.io/api/1/news"
    NEWSDATA_PAGE_SIZE: int = 50
    NEWSDATA_LANGUAGE: str = "en"

    # ---- Storage (Supabase) ----
    SUPABASE_URL: Optional[str] = None
    SUPABASE_KEY: Optional[str] = None
    SUPABASE_ARTICLES_TABLE: str = "articles"

    # ---- Fetching ----
    NEWS_FETCH_TIMEOUT_S: float = 15.0
    NEWS_RSS_MAX_ITEMS_PER_FEED: int = 20
    NEWS_RSS_PARSER: str = "regex"
    NEWS_RELAY_ENDPOINTS: List[str] = Field(default_factory=lambda: list(DEFAULT_RELAY_ENDPOINTS))
    NEWS_SOURCES_FILE: Path = REPO_ROOT / "configs" / "news_sources.yml"

    # ---- Rewriting ----
    REWRITE_CHUNK_CHARS: int = 6000
    REWRITE_MIN_CHARS: int = 50
    REWRITE_CHUNK_RETRIES: int = 0
    ASSEMBLY_MAX_CONCURRENCY: int = 5

    # ---- Fallback ----
    FALLBACK_ARTICLE_COUNT: int = 64

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()


def openai_configured() -> bool:
    return bool(settings.OPENAI_API_KEY)


def supabase_configured() -> bool:
    return bool(settings.SUPABASE_URL and settings.SUPABASE_KEY)
