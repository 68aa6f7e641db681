from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from app.models.articles import ArticleCategory
from fixtures import FailingLLM, ScriptedLLM, make_raw_article
from services.article_assembler import ArticleAssembler, MalformedArticleError, default_body_for
from services.section_generator import TEMPLATES

INGESTED = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _responder(system, user, kwargs):
    action = kwargs.get("action_type")
    if action == "article.rewrite_chunk":
        return "Criminals broke into the network and locked files."
    if action == "article.sections":
        return json.dumps(
            {
                "summary": "Short.",
                "what": "What happened: A hospital was attacked.",
                "impact": "Impact: Appointments were delayed.",
                "takeaways": "Key takeaways: Keep offline backups.",
                "whyThisMatters": "Why this matters: Care depends on IT.",
            }
        )
    return "null"


@pytest.mark.asyncio
async def test_assemble_cleans_markup_without_model():
    raw = make_raw_article(
        "Malware campaign",
        description="<p>Attackers used <b>malware</b> to breach systems.</p>",
        source_name="KrebsOnSecurity",
    )

    article = await ArticleAssembler(None).assemble(raw, ingested_at=INGESTED)

    assert article.summary == "Attackers used malware to breach systems."
    assert article.category is ArticleCategory.HACKING
    assert article.author is None
    assert article.author_display == "KrebsOnSecurity"
    assert article.what == TEMPLATES["what"]
    assert article.id.startswith("rss-")


@pytest.mark.asyncio
async def test_assemble_rewrites_long_body_and_generates_sections():
    llm = ScriptedLLM(_responder)
    raw = make_raw_article(
        "Ransomware hits hospital",
        content="<p>" + "The hospital network was encrypted by a ransomware crew. " * 5 + "</p>",
        author="By Jane Doe, Staff",
        image_url="http://cdn.example.com/lead.jpg",
    )

    article = await ArticleAssembler(llm, min_rewrite_chars=50).assemble(raw, ingested_at=INGESTED)

    assert article.summary == "Criminals broke into the network and locked files."
    assert article.what == "What happened: A hospital was attacked."
    assert article.why_this_matters == "Why this matters: Care depends on IT."
    assert article.author == "Jane Doe"
    assert article.author_display == "Jane Doe"
    assert article.image_url == "https://cdn.example.com/lead.jpg"
    assert llm.calls_for("article.author") == []


@pytest.mark.asyncio
async def test_assemble_model_unavailable_keeps_cleaned_text():
    body = "A retailer disclosed that card data was copied from its checkout systems last month."
    raw = make_raw_article("Data Breach Hits Retailer", description=f"<div>{body}</div>")

    article = await ArticleAssembler(FailingLLM(), min_rewrite_chars=50).assemble(raw, ingested_at=INGESTED)

    assert article.summary == body
    assert article.category is ArticleCategory.CYBERSECURITY
    for attr, template in TEMPLATES.items():
        assert getattr(article, attr) == template


@pytest.mark.asyncio
async def test_assemble_rss_description_drives_model_byline():
    def _byline_only(system, user, kwargs):
        return "Jane Reporter" if kwargs.get("action_type") == "article.author" else "null"

    llm = ScriptedLLM(_byline_only)
    raw = make_raw_article(
        "Utility hit by intrusion",
        description="Investigators traced the intrusion to a stolen VPN credential used overnight. " * 2,
    )

    article = await ArticleAssembler(llm, min_rewrite_chars=10_000).assemble(raw, ingested_at=INGESTED)

    assert len(llm.calls_for("article.author")) == 1
    assert article.author == "Jane Reporter"
    assert article.author_display == "Jane Reporter"


@pytest.mark.asyncio
async def test_assemble_empty_description_with_neutral_title_is_general():
    raw = make_raw_article("Apple Releases New iPhone", description="")

    article = await ArticleAssembler(None).assemble(raw, ingested_at=INGESTED)

    assert article.summary == default_body_for("Apple Releases New iPhone")
    assert article.category is ArticleCategory.GENERAL


@pytest.mark.asyncio
async def test_assemble_short_body_gets_default_text():
    raw = make_raw_article("Patch Tuesday", description="tiny")
    article = await ArticleAssembler(None).assemble(raw, ingested_at=INGESTED)
    assert article.summary == default_body_for("Patch Tuesday")


@pytest.mark.asyncio
async def test_assemble_unparsable_date_uses_ingestion_time():
    raw = make_raw_article(published_raw="sometime last week")
    article = await ArticleAssembler(None).assemble(raw, ingested_at=INGESTED)
    assert article.published_at == INGESTED


@pytest.mark.asyncio
async def test_assemble_forced_category_overrides_keywords():
    raw = make_raw_article("Phishing wave", description="Phishing emails everywhere today.")
    article = await ArticleAssembler(None).assemble(raw, category=ArticleCategory.GENERAL)
    assert article.category is ArticleCategory.GENERAL


@pytest.mark.asyncio
@pytest.mark.parametrize("title, link", [("", "https://example.com/x"), ("Title", "  "), ("<b></b>", "https://x.test")])
async def test_assemble_rejects_missing_title_or_link(title, link):
    with pytest.raises(MalformedArticleError):
        await ArticleAssembler(None).assemble(make_raw_article(title, link))


@pytest.mark.asyncio
async def test_assemble_ids_are_unique():
    assembler = ArticleAssembler(None)
    raw = make_raw_article()
    ids = {(await assembler.assemble(raw)).id for _ in range(20)}
    assert len(ids) == 20
