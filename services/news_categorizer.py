from __future__ import annotations

from typing import Optional, Sequence, Tuple

from app.models.articles import ArticleCategory

# Evaluated in order; first rule with a matching keyword wins.
CATEGORY_RULES: Sequence[Tuple[ArticleCategory, Sequence[str]]] = (
    (ArticleCategory.HACKING, ("hack", "attack", "malware", "ransomware", "phishing")),
    (ArticleCategory.CYBERSECURITY, ("cybersecurity", "cyber security", "data breach", "vulnerability")),
)


def determine_category(title: Optional[str], description: Optional[str]) -> ArticleCategory:
    """Case-insensitive keyword match over title + description; ``general`` otherwise."""
    text = f"{title or ''} {description or ''}".lower()
    for category, keywords in CATEGORY_RULES:
        if any(keyword in text for keyword in keywords):
            return category
    return ArticleCategory.GENERAL


def parse_category(value: Optional[str]) -> ArticleCategory:
    """Strict lookup for user-supplied category names; raises ValueError on unknown values."""
    normalized = (value or "").strip().lower()
    try:
        return ArticleCategory(normalized)
    except ValueError as exc:
        allowed = ", ".join(c.value for c in ArticleCategory)
        raise ValueError(f"Invalid category '{value}'. Allowed values: {allowed}.") from exc
