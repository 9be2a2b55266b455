"""
Pytest configuration and shared fixtures for analyzer tests.

Network access is replaced by httpx.MockTransport; pages are built from
small HTML snippets.
"""

import httpx
import pytest

from analyzers.base import AnalysisContext, AnalysisRequest
from config import Settings
from engine.fetcher import FetchResult
from engine.parser import parse

PAGE_URL = "https://example.com/"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")


def html_page(head: str = "", body: str = "", lang: str = "en") -> str:
    """Wrap head/body fragments in a minimal document."""
    return (
        f'<!DOCTYPE html><html lang="{lang}"><head><meta charset="utf-8">{head}</head>'
        f"<body>{body}</body></html>"
    )


@pytest.fixture
def settings():
    """Settings with short timeouts and no provider credentials."""
    return Settings(
        _env_file=None,
        http_timeout=2,
        analysis_deadline=5,
        probe_timeout=1,
        secondary_fetch_timeout=1,
        dataforseo_login=None,
        dataforseo_password=None,
        enable_keyword_suggestions=False,
    )


@pytest.fixture
def mock_client():
    """
    Build an AsyncClient over a route table.

    Routes map a full URL to an httpx.Response, an int status, a string body
    or a callable taking the request. Unknown URLs get a 404.
    """
    def factory(routes: dict | None = None, default=None) -> httpx.AsyncClient:
        routes = routes or {}

        async def handler(request: httpx.Request) -> httpx.Response:
            route = routes.get(str(request.url), default)
            if route is None:
                return httpx.Response(404, text="not found")
            if callable(route):
                route = route(request)
                if hasattr(route, "__await__"):
                    route = await route
            if isinstance(route, int):
                return httpx.Response(route)
            if isinstance(route, str):
                return httpx.Response(200, text=route, headers={"content-type": "text/html"})
            return route

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return client

    return factory


@pytest.fixture
def make_context(settings, mock_client):
    """Build an AnalysisContext from HTML without going through the fetcher."""

    def factory(
        html: str,
        *,
        url: str = PAGE_URL,
        final_url: str | None = None,
        tool_id: str = "meta-tag-analyzer",
        keywords: tuple[str, ...] = (),
        seed_keyword: str | None = None,
        competitor_urls: tuple[str, ...] = (),
        headers: dict | None = None,
        redirects: tuple[str, ...] = (),
        duration_ms: int = 120,
        client: httpx.AsyncClient | None = None,
        settings_override: Settings | None = None,
    ) -> AnalysisContext:
        final_url = final_url or url
        page = FetchResult(
            url=url,
            final_url=final_url,
            status_code=200,
            headers={"content-type": "text/html", **(headers or {})},
            body=html,
            duration_ms=duration_ms,
            redirects=redirects,
            content_length=len(html.encode()),
        )
        request = AnalysisRequest(
            tool_id=tool_id,
            url=url,
            keywords=keywords,
            seed_keyword=seed_keyword,
            competitor_urls=competitor_urls,
        )
        return AnalysisContext(
            request=request,
            page=page,
            document=parse(html, final_url),
            client=client or mock_client(),
            settings=settings_override or settings,
        )

    return factory


def codes(report) -> list[str]:
    return [found.code for found in report.issues]
