from __future__ import annotations

from datetime import datetime, timezone

from fastapi.testclient import TestClient

from api.routers import news as news_router
from app.main import app
from app.models.articles import ArticleCategory, ArticleQuery
from fixtures import make_article
from services.article_storage_service import StorageUnavailableError
from services.news_pipeline_service import PipelineResult


class FakePipeline:
    def __init__(self) -> None:
        self.categories = []

    async def run_detailed(self, category: ArticleCategory) -> PipelineResult:
        self.categories.append(category)
        return PipelineResult(
            category=category,
            articles=[make_article("Phishing wave", "https://example.com/p", category=category)],
            fallback_used=False,
        )


class FakeStorage:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.queries: list[ArticleQuery] = []

    async def list_articles(self, query: ArticleQuery):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return [make_article("Archived", "https://example.com/old", category=ArticleCategory.HACKING)]


def _client(pipeline=None, storage=None) -> TestClient:
    app.dependency_overrides[news_router.get_pipeline] = lambda: pipeline or FakePipeline()
    app.dependency_overrides[news_router.get_storage] = lambda: storage or FakeStorage()
    return TestClient(app)


def teardown_function(_):
    app.dependency_overrides.clear()


def test_get_news_runs_pipeline_for_category():
    pipeline = FakePipeline()
    response = _client(pipeline=pipeline).get("/api/v1/news", params={"category": "hacking"})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["category"] == "hacking"
    assert body["fallbackUsed"] is False
    item = body["items"][0]
    assert item["sourceUrl"] == "https://example.com/p"
    assert item["authorDisplay"] == "Example"
    assert item["whyThisMatters"].startswith("Why this matters")
    assert pipeline.categories == [ArticleCategory.HACKING]
    assert response.headers.get("X-Request-Id")


def test_get_news_defaults_to_cybersecurity():
    pipeline = FakePipeline()
    response = _client(pipeline=pipeline).get("/api/v1/news")
    assert response.status_code == 200
    assert pipeline.categories == [ArticleCategory.CYBERSECURITY]


def test_get_news_invalid_category_returns_400():
    response = _client().get("/api/v1/news", params={"category": "sports"})
    assert response.status_code == 400
    assert "Allowed" in response.json()["detail"]


def test_archive_passes_filters_to_storage():
    storage = FakeStorage()
    response = _client(storage=storage).get(
        "/api/v1/news/archive",
        params={
            "category": "hacking",
            "source": "Example",
            "dateFrom": "2024-01-01T00:00:00Z",
            "searchQuery": "phishing",
            "limit": 5,
            "offset": 10,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["limit"] == 5
    assert body["offset"] == 10
    assert body["items"][0]["title"] == "Archived"
    query = storage.queries[0]
    assert query.category is ArticleCategory.HACKING
    assert query.source == "Example"
    assert query.date_from == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert query.search_query == "phishing"


def test_archive_storage_unavailable_returns_503():
    storage = FakeStorage(error=StorageUnavailableError("down"))
    response = _client(storage=storage).get("/api/v1/news/archive")
    assert response.status_code == 503


def test_archive_rejects_out_of_range_limit():
    response = _client().get("/api/v1/news/archive", params={"limit": 500})
    assert response.status_code == 422


def test_health():
    assert _client().get("/health").json() == {"ok": True}


def test_request_id_header_is_echoed_only_when_well_formed():
    client = _client()
    assert client.get("/health", headers={"X-Request-Id": "abc-123"}).headers["X-Request-Id"] == "abc-123"

    replaced = client.get("/health", headers={"X-Request-Id": "bad id with spaces"}).headers["X-Request-Id"]
    assert replaced != "bad id with spaces"
    assert len(replaced) == 32
