# app/core/request_id.py
from __future__ import annotations

import re
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional
import contextvars

_request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)
_run_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("run_id", default=None)
_run_category_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("run_category", default=None)

# Caller-supplied ids end up in every log line; accept only short opaque tokens.
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

# -------- Request ID (API) ---------------------------------------------------

def resolve_request_id(header_value: Optional[str]) -> str:
    """Reuse a well-formed ``X-Request-Id`` header, otherwise mint a fresh id."""
    candidate = (header_value or "").strip()
    if _REQUEST_ID_RE.match(candidate):
        return candidate
    return uuid.uuid4().hex

def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id)

def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()

def clear_request_id() -> None:
    _request_id_ctx.set(None)

# -------- Run ID (pipeline runs) ---------------------------------------------

def get_run_id() -> Optional[str]:
    return _run_id_ctx.get()

def get_run_category() -> Optional[str]:
    return _run_category_ctx.get()

@contextmanager
def with_run_id(run_id: Optional[str] = None, *, category: Optional[str] = None) -> Iterator[str]:
    """
    Bind a run id (and optionally the category being ingested) for everything
    logged inside the block. A nested block reuses the outer id when it passes
    ``get_run_id()``, so one batch run shares a single id across categories:

        with with_run_id():
            for category in categories:
                with with_run_id(get_run_id(), category=category.value):
                    ...
    """
    previous = _run_id_ctx.get()
    previous_category = _run_category_ctx.get()
    rid = run_id or uuid.uuid4().hex
    _run_id_ctx.set(rid)
    if category is not None:
        _run_category_ctx.set(category)
    try:
        yield rid
    finally:
        _run_id_ctx.set(previous)
        _run_category_ctx.set(previous_category)
