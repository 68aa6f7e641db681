from __future__ import annotations

import re
from typing import List, Optional, Sequence, Tuple

from app.config import settings
from app.core.logging import get_logger
from services.openai_service import LanguageModel, LLMUnavailableError

logger = get_logger().bind(module="chunked_rewriter")

SYSTEM_PROMPT = (
    "You rewrite cybersecurity articles in clear, non-technical language without losing meaning. "
    "Keep factual details; avoid jargon."
)

_SENTENCE_BREAKS: Sequence[str] = (". ", "! ", "? ")
_TRAILING_WS_BEFORE_NEWLINE_RE = re.compile(r"[ \t]+\n")


def _cut_index(text: str, start: int, max_chars: int) -> int:
    """
    End offset (exclusive) for the chunk starting at ``start``.

    Prefers the last sentence terminator inside the budget when it lies past
    the window midpoint, then the last whitespace past the midpoint, and only
    then the raw character boundary.
    """
    end = min(start + max_chars, len(text))
    if end >= len(text):
        return len(text)

    # One extra char so a terminator sitting exactly on the budget edge is seen.
    window = text[start:end + 1]
    midpoint = max_chars // 2

    punct = max(window.rfind(marker) for marker in _SENTENCE_BREAKS)
    if punct >= midpoint and punct < max_chars:
        return start + punct + 1

    space = max(window.rfind(" ", 0, max_chars), window.rfind("\n", 0, max_chars))
    if space > 0 and space >= midpoint:
        return start + space

    return end


def split_into_chunks(text: str, max_chars: int) -> List[str]:
    """Split ``text`` into pieces of at most ``max_chars``; ``"".join`` restores the input."""
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    chunks: List[str] = []
    i = 0
    while i < len(text):
        end = _cut_index(text, i, max_chars)
        chunks.append(text[i:end])
        i = end
    return chunks


def join_rewritten(parts: Sequence[str]) -> str:
    joined = "\n\n".join(part.strip() for part in parts if part and part.strip())
    return _TRAILING_WS_BEFORE_NEWLINE_RE.sub("\n", joined)


class ChunkedRewriter:
    """
    Rewrites long text in plain language, one bounded chunk at a time.

    Chunks go to the model strictly in order. A chunk whose call fails is
    kept verbatim; when no chunk could be rewritten the input is returned
    unchanged.
    """

    def __init__(
        self,
        llm: Optional[LanguageModel],
        *,
        max_chars: Optional[int] = None,
        retries: Optional[int] = None,
    ) -> None:
        self._llm = llm
        self.max_chars = max_chars or settings.REWRITE_CHUNK_CHARS
        self.retries = max(0, retries if retries is not None else settings.REWRITE_CHUNK_RETRIES)

    async def rewrite(self, text: str) -> str:
        if not text or not text.strip() or self._llm is None:
            return text

        chunks = split_into_chunks(text, self.max_chars)
        parts, rewritten = await self._fold(chunks)
        if rewritten == 0:
            return text

        logger.debug("rewrite_completed", chunks=len(chunks), rewritten=rewritten)
        return join_rewritten(parts)

    async def _fold(self, chunks: Sequence[str]) -> Tuple[Tuple[str, ...], int]:
        acc: Tuple[Tuple[str, ...], int] = ((), 0)
        for index, chunk in enumerate(chunks, start=1):
            parts, rewritten = acc
            result = await self._rewrite_chunk(chunk, index, len(chunks))
            if result is None:
                acc = ((*parts, chunk), rewritten)
            else:
                acc = ((*parts, result), rewritten + 1)
        return acc

    async def _rewrite_chunk(self, chunk: str, index: int, total: int) -> Optional[str]:
        user_prompt = (
            f"This is part {index} of {total} of an article. Rewrite this part clearly in plain English. "
            "Do NOT summarize; fully rewrite. Keep names, dates, numbers, and facts accurate.\n\n"
            f"{chunk}"
        )
        last_error: Optional[Exception] = None
        for _attempt in range(self.retries + 1):
            try:
                return await self._llm.complete(
                    SYSTEM_PROMPT,
                    user_prompt,
                    temperature=0.3,
                    max_tokens=2000,
                    action_type="article.rewrite_chunk",
                )
            except LLMUnavailableError as exc:
                last_error = exc
        logger.warning(
            "rewrite_chunk_fallback",
            chunk_index=index,
            chunk_total=total,
            chunk_chars=len(chunk),
            error=str(last_error),
        )
        return None
