"""Tests for request validation, dispatch, deadlines and fallback reports."""

import asyncio

import httpx
import pytest

from analyzers import REGISTRY
from analyzers.base import AnalysisReport
from engine import fallback
from engine.errors import (
    AnalyzerInternalError,
    CallerError,
    DeadlineExceeded,
    FetchError,
    FetchReason,
    ParseError,
)
from engine.orchestrator import analyze, analyze_many, build_request, validate_url

from conftest import PAGE_URL, codes, html_page

PAGE = html_page(
    head="<title>Oak Furniture Workshop Tables Online</title>",
    body="<h1>Oak furniture</h1><p>Widget tables and oak chairs.</p>",
)


def unresolvable(request):
    raise httpx.ConnectError("[Errno -2] Name or service not known")


class TestValidation:
    @pytest.mark.parametrize(
        "url", ["", "example.com", "ftp://example.com/", "https://", "https://host:99999999/", "http://[bad"]
    )
    def test_invalid_urls(self, url):
        with pytest.raises(CallerError):
            validate_url(url)

    def test_valid_url_is_normalized(self):
        assert validate_url("  HTTPS://Example.com:443/path#frag ") == "https://example.com/path"

    def test_unknown_tool(self, settings):
        with pytest.raises(CallerError, match="Unknown tool"):
            build_request("seo-magic", PAGE_URL, settings=settings)

    def test_alias_is_resolved(self, settings):
        assert build_request(" Keyword-Research ", PAGE_URL, settings=settings).tool_id == "keyword-researcher"

    def test_params_accept_either_case_and_comma_strings(self, settings):
        camel = build_request(
            "competitor-analyzer",
            PAGE_URL,
            {"keywords": "oak, walnut ,", "seedKeyword": " oak ", "competitorUrls": ["a.com", "", "b.com"]},
            settings=settings,
        )
        snake = build_request(
            "competitor-analyzer",
            PAGE_URL,
            {"keywords": ["oak", "walnut"], "seed_keyword": "oak", "competitor_urls": "a.com,b.com"},
            settings=settings,
        )

        assert camel == snake
        assert camel.keywords == ("oak", "walnut")
        assert camel.seed_keyword == "oak"
        assert camel.competitor_urls == ("a.com", "b.com")

    def test_competitors_are_capped(self, settings):
        urls = [f"https://c{i}.example/" for i in range(10)]
        request = build_request("competitor-analyzer", PAGE_URL, {"competitorUrls": urls}, settings=settings)
        assert len(request.competitor_urls) == settings.max_competitors


class TestAnalyze:
    async def test_successful_run(self, settings, mock_client):
        client = mock_client({PAGE_URL: PAGE})

        report = await analyze(
            "keyword-density-checker", "https://example.com", {"keywords": "oak"}, client=client, settings=settings
        )

        assert not report.is_fallback
        assert report.tool_id == "keyword-density-checker"
        assert report.url == PAGE_URL
        assert report.details.keywords[0].keyword == "oak"

    async def test_caller_errors_are_raised_not_wrapped(self, settings, mock_client):
        with pytest.raises(CallerError):
            await analyze("meta-tag-analyzer", "javascript:alert(1)", client=mock_client(), settings=settings)

    @pytest.mark.parametrize("tool_id", list(REGISTRY))
    async def test_every_tool_falls_back_on_unreachable_site(self, tool_id, settings, mock_client):
        client = mock_client(default=unresolvable)

        report = await analyze(tool_id, PAGE_URL, client=client, settings=settings)

        assert report.is_fallback
        assert report.score == 0
        assert codes(report) == ["analysis_failed"]
        assert report.issues[0].severity == "high"
        assert "could not be resolved" in report.issues[0].message
        assert report.recommendations == fallback.GENERIC_RECOMMENDATIONS
        payload = report.to_dict()
        assert payload["isFallback"] is True
        assert set(REGISTRY[tool_id].empty_details().model_dump(by_alias=True)) <= set(payload)

    async def test_http_error_status(self, settings, mock_client):
        report = await analyze("meta-tag-analyzer", PAGE_URL, client=mock_client({PAGE_URL: 503}), settings=settings)

        assert report.is_fallback
        assert report.issues[0].message == f"{PAGE_URL} returned HTTP 503 - check URL accessibility"

    async def test_deadline(self, settings, mock_client):
        async def stall(request):
            await asyncio.sleep(1)
            return httpx.Response(200, text=PAGE)

        tight = settings.model_copy(update={"analysis_deadline": 0.05})

        report = await analyze("meta-tag-analyzer", PAGE_URL, client=mock_client({PAGE_URL: stall}), settings=tight)

        assert report.is_fallback
        assert "did not finish in time" in report.issues[0].message

    async def test_analyzer_fault_is_contained(self, settings, mock_client, monkeypatch):
        async def boom(ctx):
            raise RuntimeError("secret stack detail")

        monkeypatch.setattr(REGISTRY["meta-tag-analyzer"], "analyze", boom)

        report = await analyze("meta-tag-analyzer", PAGE_URL, client=mock_client({PAGE_URL: PAGE}), settings=settings)

        assert report.is_fallback
        assert "secret" not in report.issues[0].message
        assert "internal error" in report.issues[0].message

    async def test_deeply_nested_json_ld_does_not_sink_the_page(self, settings, mock_client):
        page = html_page(
            head='<title>Nested</title><script type="application/ld+json">' + "[" * 100000 + "</script>"
        )
        client = mock_client({PAGE_URL: page})

        reports = await analyze_many(
            ["meta-tag-analyzer", "schema-validator"], PAGE_URL, client=client, settings=settings
        )

        assert not any(report.is_fallback for report in reports.values())
        assert "invalid_json_ld" in codes(reports["schema-validator"])


class TestAnalyzeMany:
    async def test_page_fetched_once_for_all_tools(self, settings, mock_client):
        fetched = []

        def page(request):
            fetched.append(str(request.url))
            return httpx.Response(200, text=PAGE, headers={"content-type": "text/html"})

        client = mock_client({PAGE_URL: page})
        tools = ["meta-tag-analyzer", "alt-text-checker", "technical-seo-auditor", "mobile-friendly-checker"]

        reports = await analyze_many(tools, PAGE_URL, client=client, settings=settings)

        assert list(reports) == ["meta-tag-analyzer", "alt-text-checker", "technical-seo-auditor", "mobile-checker"]
        assert fetched == [PAGE_URL]
        assert not any(report.is_fallback for report in reports.values())

    async def test_one_failing_tool_does_not_affect_others(self, settings, mock_client, monkeypatch):
        async def boom(ctx):
            raise ValueError("bad data")

        monkeypatch.setattr(REGISTRY["schema-validator"], "analyze", boom)
        client = mock_client({PAGE_URL: PAGE})

        reports = await analyze_many(
            ["schema-validator", "canonical-checker"], PAGE_URL, client=client, settings=settings
        )

        assert reports["schema-validator"].is_fallback
        assert not reports["canonical-checker"].is_fallback

    async def test_fetch_failure_falls_back_for_each_tool(self, settings, mock_client):
        client = mock_client(default=unresolvable)

        reports = await analyze_many(["meta-tag-analyzer", "canonical-checker"], PAGE_URL, client=client, settings=settings)

        assert all(report.is_fallback for report in reports.values())

    @pytest.mark.parametrize("tools", [[], ["meta-tag-analyzer", "nope"]])
    async def test_invalid_tool_lists(self, tools, settings, mock_client):
        with pytest.raises(CallerError):
            await analyze_many(tools, PAGE_URL, client=mock_client(), settings=settings)


class TestFallback:
    @pytest.mark.parametrize(
        "exc, fragment",
        [
            (FetchError(FetchReason.TIMEOUT, PAGE_URL), "took too long to respond"),
            (FetchError(FetchReason.DNS, PAGE_URL), "check the URL is correct"),
            (FetchError(FetchReason.TLS, PAGE_URL), "SSL certificate"),
            (FetchError(FetchReason.HTTP_STATUS, PAGE_URL, status_code=404), "returned HTTP 404"),
            (FetchError(FetchReason.UNKNOWN, PAGE_URL), "could not be retrieved"),
            (DeadlineExceeded(30), "did not finish in time"),
            (ParseError("bad"), "could not be parsed"),
            (AnalyzerInternalError("schema-validator: KeyError"), "internal error"),
            (KeyError("x"), "internal error"),
        ],
    )
    def test_describe_failure(self, exc, fragment):
        assert fragment in fallback.describe_failure(PAGE_URL, exc)

    def test_fallback_report_has_tool_shape(self):
        analyzer = REGISTRY["page-speed-analyzer"]

        report = fallback.build_fallback_report(analyzer, PAGE_URL, FetchError(FetchReason.DNS, PAGE_URL))

        assert isinstance(report, AnalysisReport)
        payload = report.to_dict()
        assert payload["score"] == 0
        assert payload["methodology"] == "heuristic"
        assert payload["performance"]["metrics"]["responseTimeMs"] == 0

    async def test_cancellation_propagates(self):
        async def cancelled():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await fallback.run(cancelled, REGISTRY["meta-tag-analyzer"], PAGE_URL)

    async def test_unexpected_fault_is_wrapped(self, monkeypatch):
        seen = []
        build = fallback.build_fallback_report

        def record(analyzer, url, exc):
            seen.append(exc)
            return build(analyzer, url, exc)

        monkeypatch.setattr(fallback, "build_fallback_report", record)

        async def broken():
            raise KeyError("@type")

        report = await fallback.run(broken, REGISTRY["schema-validator"], PAGE_URL)

        assert report.is_fallback
        [fault] = seen
        assert isinstance(fault, AnalyzerInternalError)
        assert isinstance(fault.__cause__, KeyError)

    async def test_parse_error_keeps_its_message(self):
        async def unparsable():
            raise ParseError("not xml")

        report = await fallback.run(unparsable, REGISTRY["sitemap-robots-checker"], PAGE_URL)

        assert "could not be parsed" in report.issues[0].message
