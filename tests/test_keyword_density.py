"""Tests for the keyword density checker."""

import pytest

from analyzers.keyword_density import KeywordDensityAnalyzer

from conftest import codes, html_page


def body_with(keyword: str, times: int, filler: int) -> str:
    words = [keyword] * times + ["lorem"] * filler
    return html_page(body=f"<p>{' '.join(words)}</p>")


async def test_supplied_keyword_in_optimal_range(make_context):
    ctx = make_context(body_with("widget", 2, 98), keywords=("Widget",))

    report = await KeywordDensityAnalyzer().analyze(ctx)

    assert report.score == 100
    assert report.issues == []
    entry = report.details.keywords[0]
    assert entry.keyword == "widget"
    assert entry.count == 2
    assert entry.density == 2.0
    assert report.details.keyword_source == "supplied"


@pytest.mark.parametrize(
    "times, filler, code, verdict",
    [
        (10, 90, "keyword_stuffing", "stuffing"),
        (4, 96, "keyword_density_high", "high"),
        (1, 299, "keyword_density_low", "low"),
    ],
)
async def test_density_bands(make_context, times, filler, code, verdict):
    ctx = make_context(body_with("widget", times, filler), keywords=("widget",))

    report = await KeywordDensityAnalyzer().analyze(ctx)

    assert codes(report) == [code]
    assert report.details.keywords[0].verdict == verdict


async def test_absent_keyword(make_context):
    ctx = make_context(body_with("widget", 3, 50), keywords=("gadget",))

    report = await KeywordDensityAnalyzer().analyze(ctx)

    assert codes(report) == ["keyword_absent"]
    assert report.score == 90
    assert report.details.keywords[0].count == 0


async def test_keywords_extracted_when_none_supplied(make_context):
    text = "Coffee beans roasted daily. Fresh coffee beans from our coffee roastery."
    ctx = make_context(html_page(body=f"<p>{text}</p>"))

    report = await KeywordDensityAnalyzer().analyze(ctx)

    assert report.details.keyword_source == "extracted"
    keywords = [entry.keyword for entry in report.details.keywords]
    assert "coffee" in keywords
    assert all(entry.count > 0 for entry in report.details.keywords)
    assert "Specify target keywords for a more focused analysis" in report.recommendations


async def test_empty_page(make_context):
    ctx = make_context(html_page(), keywords=("widget",))

    report = await KeywordDensityAnalyzer().analyze(ctx)

    assert report.score == 0
    assert codes(report) == ["no_content"]
    assert report.details.total_words == 0
