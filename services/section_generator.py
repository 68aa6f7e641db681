from __future__ import annotations

import json
import re
from typing import Dict, Optional

from app.core.logging import get_logger
from app.models.articles import ArticleSections
from services.openai_service import LanguageModel, LLMUnavailableError, parse_json_object

logger = get_logger().bind(module="section_generator")

SYSTEM_PROMPT = """You are an assistant that rewrites and summarizes cybersecurity articles for a general audience.
- Remove technical jargon and replace it with plain, everyday language.
- Keep all important facts, names, dates, and numbers accurate.
- Never cut off mid-word or mid-sentence.
- Always end with a logical, complete thought.
- Do not use ellipses ("...") unless they are part of a quoted phrase.
- Keep the summary concise, and every other field to 1-2 complete sentences.

Respond in this exact JSON format:
{
  "summary": "Your rewritten summary here",
  "what": "What happened: [Brief explanation]",
  "impact": "Impact: [How this affects people/security]",
  "takeaways": "Key takeaways: [Main points to remember]",
  "whyThisMatters": "Why this matters: [Why people should care]"
}"""

# Response key -> ArticleSections attribute
FIELD_MAP: Dict[str, str] = {
    "summary": "summary",
    "what": "what",
    "impact": "impact",
    "takeaways": "takeaways",
    "whyThisMatters": "why_this_matters",
}

TEMPLATES: Dict[str, str] = {
    "what": "What happened: Details not available",
    "impact": "Impact: Unable to determine impact",
    "takeaways": "Key takeaways: Stay informed about cybersecurity developments",
    "why_this_matters": "Why this matters: Understanding cybersecurity helps protect your digital safety",
}


def _field_patterns(key: str) -> tuple[re.Pattern[str], re.Pattern[str]]:
    quoted = re.compile(rf'"?{key}"?\s*:\s*"((?:[^"\\]|\\.)+)"', re.IGNORECASE)
    bare = re.compile(rf'"?{key}"?\s*:\s*([^,}}\n]+)', re.IGNORECASE)
    return quoted, bare


_FIELD_PATTERNS = {key: _field_patterns(key) for key in FIELD_MAP}


def _clean_value(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = value.strip().strip('"').strip()
    return cleaned or None


def _unescape_json_fragment(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        return value


def parse_sections_response(raw_text: str) -> Dict[str, str]:
    """
    Two-tier parse: strict JSON first, per-field regex extraction second.
    Returns only the fields that were found, keyed by ArticleSections attribute.
    """
    found: Dict[str, str] = {}
    try:
        data = parse_json_object(raw_text)
    except ValueError:
        data = None

    if data is not None:
        for key, attr in FIELD_MAP.items():
            value = _clean_value(data.get(key))
            if value:
                found[attr] = value
        return found

    for key, attr in FIELD_MAP.items():
        quoted, bare = _FIELD_PATTERNS[key]
        match = quoted.search(raw_text)
        if match:
            value = _clean_value(_unescape_json_fragment(match.group(1)))
        else:
            match = bare.search(raw_text)
            value = _clean_value(match.group(1)) if match else None
        if value:
            found[attr] = value
    return found


def build_sections(found: Dict[str, str], defaults: Optional[ArticleSections] = None) -> ArticleSections:
    """Fill every narrative field: parsed value, then caller default, then template."""
    values: Dict[str, Optional[str]] = {"summary": found.get("summary")}
    for attr, template in TEMPLATES.items():
        fallback = getattr(defaults, attr) if defaults is not None else None
        values[attr] = found.get(attr) or fallback or template
    return ArticleSections(**values)


class SectionGenerator:
    """Derives the what/impact/takeaways/why-this-matters sections from one model call."""

    def __init__(self, llm: Optional[LanguageModel]) -> None:
        self._llm = llm

    async def generate(
        self,
        title: str,
        body: str,
        *,
        defaults: Optional[ArticleSections] = None,
    ) -> ArticleSections:
        content = f"{title}. {body}".strip()
        if self._llm is None:
            return build_sections({}, defaults)

        try:
            raw_text = await self._llm.complete(
                SYSTEM_PROMPT,
                "Rewrite and summarize this article in plain English, following the system rules above.\n"
                f"Article content: {content}",
                temperature=0.3,
                max_tokens=1500,
                json_mode=True,
                action_type="article.sections",
            )
        except LLMUnavailableError as exc:
            logger.warning("section_generation_fallback", title=title[:80], error=str(exc))
            return build_sections({}, defaults)

        found = parse_sections_response(raw_text)
        missing = [attr for attr in TEMPLATES if attr not in found]
        if missing:
            logger.info("section_generation_partial", title=title[:80], missing=missing)
        return build_sections(found, defaults)
