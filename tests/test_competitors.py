"""Tests for the competitor analyzer."""

from analyzers.competitors import CompetitorAnalyzer, page_metrics, prominent_keywords
from engine.parser import parse

from conftest import codes, html_page

TARGET = html_page(
    head=(
        "<title>Handmade Oak Furniture Tables Online</title>"
        '<meta name="description" content="We build solid oak furniture tables by hand in our small workshop.">'
    ),
    body=(
        "<h1>Oak Furniture</h1><h2>Dining tables</h2>"
        "<p>Every oak table is cut, joined and finished by hand before delivery to your home.</p>"
        '<img src="/table.png" alt="Oak table"><a href="/shop">Shop</a><a href="/about">About</a>'
    ),
)

RIVAL = html_page(
    head='<title>Walnut Furniture Tables Crafted</title><meta name="description" content="Walnut tables">',
    body="<h1>Walnut Furniture</h1><p>Short copy.</p>",
)

BIG_RIVAL = html_page(
    head="<title>Oak Furniture</title>",
    body=(
        "<h1>Oak</h1>"
        + "".join(f"<h2>Section {i}</h2><p>{'oak table craft ' * 40}</p>" for i in range(5))
        + "".join(f'<img src="/{i}.png" alt="x"><a href="/p{i}">p</a>' for i in range(8))
    ),
)


async def test_comparison_with_gaps_and_failed_competitor(make_context, mock_client):
    client = mock_client({"https://rival.com/": RIVAL, "https://down.example/": 503})
    ctx = make_context(
        TARGET,
        tool_id="competitor-analyzer",
        competitor_urls=("rival.com", "https://down.example/"),
        client=client,
    )

    report = await CompetitorAnalyzer().analyze(ctx)

    rival, down = report.details.competitors
    assert rival.domain == "rival.com"
    assert rival.metrics.title_length == len("Walnut Furniture Tables Crafted")
    assert rival.differences["wordCount"] == report.details.target.word_count - rival.metrics.word_count
    assert "Lower word count" in rival.weaknesses
    assert "walnut" in rival.top_keywords
    assert down.error == "Could not fetch competitor (http_status)"
    assert down.metrics is None

    gaps = [gap.keyword for gap in report.details.competitive_gaps]
    assert "walnut" in gaps
    assert "furniture" not in gaps
    assert "furniture tables" not in gaps

    assert codes(report) == ["competitor_unavailable", "competitive_gaps"]
    # 40 base + 40 volume + 10 title + 10 description - 10 gaps
    assert report.score == 90


async def test_page_below_competitors(make_context, mock_client):
    client = mock_client({"https://big.example/": BIG_RIVAL})
    ctx = make_context(
        html_page(head="<title>Oak</title>", body="<p>Oak tables.</p>"),
        competitor_urls=("https://big.example/",),
        client=client,
    )

    report = await CompetitorAnalyzer().analyze(ctx)

    found = codes(report)
    for field in ("word_count", "heading_count", "image_count", "internal_links"):
        assert f"{field}_below_competitors" in found
    entry = report.details.competitors[0]
    assert "Higher word count" in entry.strengths
    # 40 base, nothing at or above average, minus 2 for each of three gaps
    assert report.score == 34


async def test_without_competitors_suggests_linked_sites(make_context):
    html = html_page(
        body=(
            '<a href="https://www.rival.com/a">a</a><a href="https://rival.com/b">b</a>'
            '<a href="https://other.net/">c</a><a href="https://facebook.com/acme">d</a>'
            '<a href="https://github.com/acme">e</a><a href="https://blog.example.com/">f</a>'
            '<a href="/internal">g</a>'
        )
    )

    report = await CompetitorAnalyzer().analyze(make_context(html))

    assert report.score == 50
    assert codes(report) == ["no_competitors"]
    assert report.details.suggested_competitors == ["rival.com", "other.net"]
    assert report.details.competitors == []


async def test_malformed_competitor_host_does_not_abort(make_context, mock_client):
    client = mock_client({"https://rival.com/": RIVAL})
    ctx = make_context(TARGET, competitor_urls=("rival.com", "https://xn--a.com/"), client=client)

    report = await CompetitorAnalyzer().analyze(ctx)

    rival, broken = report.details.competitors
    assert rival.metrics is not None
    assert broken.error == "Could not fetch competitor (unknown)"
    assert broken.metrics is None
    assert "competitor_unavailable" in codes(report)
    assert report.score > 0


async def test_no_competitor_reachable(make_context, mock_client):
    ctx = make_context(
        TARGET, competitor_urls=("https://gone.example/", "https://bad:port/"), client=mock_client()
    )

    report = await CompetitorAnalyzer().analyze(ctx)

    assert report.score == 0
    assert [entry.error for entry in report.details.competitors] == [
        "Could not fetch competitor (http_status)",
        "Invalid URL",
    ]
    assert codes(report) == ["competitor_unavailable", "competitor_unavailable"]


async def test_competitors_are_deduplicated_and_capped(make_context, mock_client, settings):
    routes = {f"https://site{i}.example/": RIVAL for i in range(4)}
    capped = settings.model_copy(update={"max_competitors": 2})
    urls = ("https://site0.example/", "https://site0.example/", "https://site1.example/", "https://site2.example/")
    ctx = make_context(TARGET, competitor_urls=urls, client=mock_client(routes), settings_override=capped)

    report = await CompetitorAnalyzer().analyze(ctx)

    assert [entry.domain for entry in report.details.competitors] == ["site0.example", "site1.example"]


def test_page_metrics_and_prominent_keywords():
    document = parse(TARGET, "https://example.com/")

    metrics = page_metrics(document)
    assert metrics.title_length == len("Handmade Oak Furniture Tables Online")
    assert metrics.heading_count == 2
    assert metrics.image_count == 1
    assert metrics.internal_links == 2

    keywords = prominent_keywords(document)
    assert keywords.most_common(1)[0][0] == "oak"
    assert len(keywords) <= 10
