# services/openai_service.py
from __future__ import annotations

import json
import re
import time
from typing import Any, Dict, Optional, Protocol

from openai import AsyncOpenAI

from app.config import settings
from app.core.logging import get_logger

logger = get_logger().bind(module="openai_service")

_JSON_HINT = (
    "Respond with exactly one valid JSON object, no explanation, "
    "no extra text, no markdown, no code fences."
)


class LLMUnavailableError(RuntimeError):
    """The language model could not produce usable content for one call."""


class LanguageModel(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 1500,
        json_mode: bool = False,
        action_type: str = "generic",
    ) -> str:
        ...


def extract_first_json(text: str) -> str:
    """
    Tolerant pre-parser: take the first {...} block and drop trailing commas.
    """
    m = re.search(r"\{.*\}", text, flags=re.DOTALL)
    candidate = m.group(0) if m else text.strip()
    candidate = re.sub(r",\s*([}\]])", r"\1", candidate)
    return candidate.strip()


def parse_json_object(text: str) -> Dict[str, Any]:
    """Strict decode of the first JSON object in ``text``; raises ValueError otherwise."""
    data = json.loads(extract_first_json(text))
    if not isinstance(data, dict):
        raise ValueError(f"expected JSON object, got {type(data).__name__}")
    return data


class OpenAIService:
    """
    Chat-completion client for rewriting, section generation and byline lookup.

    Each call is bounded by ``timeout_s`` and is not retried by the SDK;
    every failure surfaces as ``LLMUnavailableError`` so callers can fall
    back at their own granularity.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model = model or settings.OPENAI_MODEL
        self.timeout_s = timeout_s if timeout_s is not None else settings.OPENAI_TIMEOUT_S
        key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self._client = client
        if self._client is None and key:
            self._client = AsyncOpenAI(api_key=key, max_retries=0, timeout=self.timeout_s)

    @property
    def available(self) -> bool:
        return self._client is not None

    def _build_messages(self, system_prompt: str, user_prompt: str, json_mode: bool) -> list[dict]:
        if json_mode:
            system_prompt = f"{system_prompt}\n\n{_JSON_HINT}"
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 1500,
        json_mode: bool = False,
        action_type: str = "generic",
    ) -> str:
        if self._client is None:
            raise LLMUnavailableError("OPENAI_API_KEY is not configured")

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": self._build_messages(system_prompt, user_prompt, json_mode),
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": self.timeout_s,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        t0 = time.perf_counter()
        try:
            completion = await self._client.chat.completions.create(**kwargs)
        except Exception as exc:
            logger.warning(
                "openai_call_failed",
                action_type=action_type,
                model=self.model,
                error=str(exc),
                duration_ms=int((time.perf_counter() - t0) * 1000),
            )
            raise LLMUnavailableError(str(exc)) from exc

        choices = getattr(completion, "choices", None) or []
        content = (choices[0].message.content or "").strip() if choices else ""
        if not content:
            logger.warning("openai_empty_response", action_type=action_type, model=self.model)
            raise LLMUnavailableError("language model returned empty content")

        logger.debug(
            "openai_call_succeeded",
            action_type=action_type,
            model=self.model,
            chars=len(content),
            duration_ms=int((time.perf_counter() - t0) * 1000),
        )
        return content
