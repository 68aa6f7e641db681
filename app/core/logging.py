# app/core/logging.py
from __future__ import annotations

import logging
import re
import sys
from typing import Any, Dict, Optional
from datetime import datetime, timezone

import structlog

from app.config import settings
from app.core.request_id import get_request_id, get_run_category, get_run_id


# -------- Processors ---------------------------------------------------------

def _add_ts(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict.setdefault("ts", datetime.now(timezone.utc).isoformat(timespec="milliseconds"))
    return event_dict

def _add_level(_: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    level = event_dict.get("level") or method_name or "info"
    event_dict["level"] = str(level).lower()
    return event_dict

def _add_service(service_name: str):
    def _inner(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict
    return _inner

def _add_request_or_run_ids(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    rid = get_request_id()
    if rid:
        event_dict.setdefault("request_id", rid)
    run = get_run_id()
    if run:
        event_dict.setdefault("run_id", run)
    category = get_run_category()
    if category:
        event_dict.setdefault("category", category)
    return event_dict


_SECRET_KEYS = {
    "authorization", "auth", "token", "access_token", "refresh_token",
    "api_key", "apikey", "openai_api_key", "newsdata_api_key", "supabase_key",
    "password", "secret",
}
# NewsData takes its key as a query parameter, so httpx errors echo it inside URLs.
_SECRET_QUERY_RE = re.compile(r"(?i)\b(apikey|api_key|access_token|token|key)=([^&\s\"'<>]+)")
_REDACTED = "***redacted***"

def _scrub(value: str) -> str:
    return _SECRET_QUERY_RE.sub(lambda m: f"{m.group(1)}={_REDACTED}", value)

def _secret_guard(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in list(event_dict.items()):
        if str(k).lower() in _SECRET_KEYS:
            event_dict[k] = _REDACTED
        elif isinstance(v, str):
            event_dict[k] = _scrub(v)
    return event_dict

def _truncate_fields(max_chars: int):
    """Article bodies and prompts can be kilobytes; keep log lines bounded."""
    def _inner(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        for k, v in list(event_dict.items()):
            if isinstance(v, str) and len(v) > max_chars:
                event_dict[k] = f"{v[:max_chars]}...[+{len(v) - max_chars} chars]"
        return event_dict
    return _inner


# -------- Public API ---------------------------------------------------------

_logger: structlog.BoundLogger | None = None

def _resolve_level(level: Optional[int]) -> int:
    if level is not None:
        return level
    resolved = logging.getLevelName(str(settings.LOG_LEVEL).upper())
    return resolved if isinstance(resolved, int) else logging.INFO

def configure_logging(service_name: str = "pipeline", *, level: Optional[int] = None) -> None:
    """
    One global JSON structlog stack for the API and the batch runner.
    ``level`` defaults to ``LOG_LEVEL`` from settings.
    """
    global _logger
    level = _resolve_level(level)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stderr,
        force=True,
    )
    # httpx logs every request URL at INFO, query-string keys included.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    processors = [
        _add_ts,
        _add_level,
        _add_service(service_name),
        _add_request_or_run_ids,
        _secret_guard,
        _truncate_fields(settings.LOG_MAX_FIELD_CHARS),
        structlog.processors.EventRenamer("event"),
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    _logger = structlog.get_logger()

def get_logger() -> structlog.BoundLogger:
    global _logger
    if _logger is None:
        configure_logging("pipeline")
    return _logger
