"""Tests for the HTTP API."""

import httpx
import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_http_client, get_usage_tracker
from api.usage import SEO_TOOLS, InMemoryUsageTracker
from main import app

from conftest import PAGE_URL, html_page

PAGE = html_page(
    head="<title>Oak Furniture Workshop Tables Online</title>",
    body="<h1>Oak furniture</h1><img src='/a.png' alt='An oak table'>",
)


@pytest.fixture
def tracker():
    return InMemoryUsageTracker({SEO_TOOLS: 2})


@pytest.fixture
def api(mock_client, tracker):
    """TestClient factory over a mocked outbound client."""

    def factory(routes=None, default=None) -> TestClient:
        client = mock_client(routes, default)
        app.dependency_overrides[get_http_client] = lambda: client
        app.dependency_overrides[get_usage_tracker] = lambda: tracker
        return TestClient(app)

    yield factory
    app.dependency_overrides.clear()


def test_health(api):
    response = api().get("/api/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "beacon", "version": "0.1.0", "tools": 14}


def test_tool_catalog(api):
    data = api().get("/api/v1/tools").json()

    assert data["count"] == 14
    assert data["tools"][0] == {"toolId": "meta-tag-analyzer", "name": "Meta Tag Analyzer"}
    assert data["aliases"]["keyword-research"] == "keyword-researcher"


def test_root_index(api):
    assert api().get("/").json()["tools"] == "/api/v1/tools"


def test_analyze_charges_completed_report(api, tracker):
    response = api({PAGE_URL: PAGE}).post(
        "/api/v1/analyze",
        json={"toolId": "alt-text-checker", "url": PAGE_URL},
        headers={"X-User-Id": "user-1"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["charged"] is True
    assert data["toolId"] == "alt-text-checker"
    assert data["results"]["score"] == 100
    assert data["results"]["isFallback"] is False
    assert data["results"]["totalImages"] == 1
    assert tracker.current("user-1", SEO_TOOLS) == 1


def test_fallback_is_not_charged(api, tracker):
    response = api({PAGE_URL: 404}).post(
        "/api/v1/analyze",
        json={"toolId": "meta-tag-analyzer", "url": PAGE_URL},
        headers={"X-User-Id": "user-1"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["charged"] is False
    assert data["results"]["isFallback"] is True
    assert data["results"]["score"] == 0
    assert data["results"]["issues"][0]["code"] == "analysis_failed"
    assert tracker.current("user-1", SEO_TOOLS) == 0


def test_anonymous_requests_are_not_metered(api, tracker):
    data = api({PAGE_URL: PAGE}).post(
        "/api/v1/analyze", json={"toolId": "canonical-checker", "url": PAGE_URL}
    ).json()

    assert data["charged"] is False


@pytest.mark.parametrize(
    "body",
    [
        {"toolId": "seo-magic", "url": PAGE_URL},
        {"toolId": "meta-tag-analyzer", "url": "not a url"},
        {"toolId": "meta-tag-analyzer", "url": "ftp://example.com/"},
        {"toolId": "meta-tag-analyzer", "url": "http://[bad"},
    ],
)
def test_invalid_requests_get_400(api, body):
    response = api().post("/api/v1/analyze", json=body)

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["success"] is False
    assert detail["error"] == "invalid_request"


def test_missing_fields_get_422(api):
    assert api().post("/api/v1/analyze", json={"url": PAGE_URL}).status_code == 422


def test_quota_exhausted_gets_403_before_any_fetch(api, tracker):
    fetched = []

    def page(request):
        fetched.append(str(request.url))
        return httpx.Response(200, text=PAGE)

    tracker.track_usage("user-1", SEO_TOOLS, 2)

    response = api({PAGE_URL: page}).post(
        "/api/v1/analyze",
        json={"toolId": "meta-tag-analyzer", "url": PAGE_URL},
        headers={"X-User-Id": "user-1"},
    )

    assert response.status_code == 403
    detail = response.json()["detail"]
    assert detail["error"] == "limit_reached"
    assert detail["currentUsage"] == 2
    assert detail["limit"] == 2
    assert fetched == []


def test_keywords_are_passed_through(api):
    data = api({PAGE_URL: PAGE}).post(
        "/api/v1/analyze",
        json={"toolId": "keyword-density-checker", "url": PAGE_URL, "keywords": "oak, walnut"},
    ).json()

    keywords = [entry["keyword"] for entry in data["results"]["keywords"]]
    assert keywords == ["oak", "walnut"]
    assert data["results"]["keywordSource"] == "supplied"


def test_site_audit(api, tracker):
    response = api({PAGE_URL: PAGE}).post(
        "/api/v1/analyze/site",
        json={"url": PAGE_URL, "toolIds": ["alt-text-checker", "schema-validator", "mobile-friendly-checker"]},
        headers={"X-User-Id": "user-1"},
    )

    assert response.status_code == 200
    data = response.json()
    assert list(data["results"]) == ["alt-text-checker", "schema-validator", "mobile-checker"]
    scores = [result["score"] for result in data["results"].values()]
    assert data["overallScore"] == round(sum(scores) / len(scores))
    # Two of three completed reports fit in the quota
    assert tracker.current("user-1", SEO_TOOLS) == 2


def test_site_audit_rejects_unknown_tool(api):
    response = api().post("/api/v1/analyze/site", json={"url": PAGE_URL, "toolIds": ["nope"]})
    assert response.status_code == 400
