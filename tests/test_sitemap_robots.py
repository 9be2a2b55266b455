"""Tests for the sitemap and robots.txt checker."""

from analyzers.sitemap_robots import SitemapRobotsAnalyzer

from conftest import codes, html_page

ROBOTS_URL = "https://example.com/robots.txt"
SITEMAP_URL = "https://example.com/sitemap.xml"

GOOD_ROBOTS = "User-agent: *\nDisallow: /admin\n\nSitemap: https://example.com/sitemap.xml\n"


def urlset(*entries: str) -> str:
    body = "".join(f"<url>{entry}</url>" for entry in entries)
    return f'<?xml version="1.0"?><urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{body}</urlset>'


GOOD_SITEMAP = urlset(
    "<loc>https://example.com/</loc><lastmod>2024-05-01</lastmod>",
    "<loc>https://www.example.com/about</loc><lastmod>2024-05-01T10:00:00+00:00</lastmod>",
)


async def run(make_context, mock_client, routes):
    ctx = make_context(html_page(), tool_id="sitemap-robots-checker", client=mock_client(routes))
    return await SitemapRobotsAnalyzer().analyze(ctx)


async def test_fully_configured_site(make_context, mock_client):
    report = await run(make_context, mock_client, {ROBOTS_URL: GOOD_ROBOTS, SITEMAP_URL: GOOD_SITEMAP})

    assert report.score == 100
    assert report.issues == []
    assert report.recommendations == ["robots.txt and sitemap are correctly configured"]
    robots, sitemap = report.details.robots, report.details.sitemap
    assert robots.exists and robots.status == "good"
    assert robots.rules[0].user_agent == "*"
    assert robots.rules[0].disallow == ["/admin"]
    assert sitemap.kind == "urlset"
    assert sitemap.entry_count == 2
    assert sitemap.declared_in_robots


async def test_missing_robots_only_costs_its_half(make_context, mock_client):
    report = await run(make_context, mock_client, {ROBOTS_URL: 404, SITEMAP_URL: GOOD_SITEMAP})

    assert codes(report) == ["robots_missing"]
    assert report.details.robots.score == 0
    assert report.details.robots.status_code == 404
    assert report.details.sitemap.score == 50
    assert report.score == 50


async def test_both_missing(make_context, mock_client):
    report = await run(make_context, mock_client, {})

    assert codes(report) == ["robots_missing", "sitemap_missing"]
    assert report.score == 0
    assert report.details.sitemap.status == "error"


async def test_sitemap_declared_in_robots_is_used(make_context, mock_client):
    index_url = "https://example.com/sitemap_index.xml"
    index = (
        '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        "<sitemap><loc>https://example.com/posts.xml</loc></sitemap></sitemapindex>"
    )
    robots = f"User-agent: *\nAllow: /\nSitemap: {index_url}\n"

    report = await run(make_context, mock_client, {ROBOTS_URL: robots, index_url: index})

    assert report.details.sitemap.url == index_url
    assert report.details.sitemap.kind == "sitemapindex"
    assert report.details.sitemap.declared_in_robots
    assert report.score == 100


async def test_disallow_all_blocks_sitemap_urls(make_context, mock_client):
    report = await run(
        make_context, mock_client, {ROBOTS_URL: "User-agent: *\nDisallow: /\n", SITEMAP_URL: GOOD_SITEMAP}
    )

    assert codes(report) == ["robots_disallow_all", "robots_no_sitemap", "sitemap_urls_disallowed"]
    assert report.details.robots.score == 5
    assert report.details.robots.status == "error"
    assert report.details.sitemap.score == 40
    assert len(report.details.sitemap.disallowed_urls) == 2
    assert report.score == 45


async def test_invalid_sitemap(make_context, mock_client):
    report = await run(make_context, mock_client, {ROBOTS_URL: GOOD_ROBOTS, SITEMAP_URL: "<urlset><url>"})

    assert codes(report) == ["sitemap_invalid"]
    assert report.details.sitemap.exists
    assert report.details.sitemap.score == 10
    assert report.score == 60


async def test_sitemap_entry_problems(make_context, mock_client):
    sitemap = urlset(
        "<loc>/about</loc>",
        "<loc>https://other.org/page</loc>",
        "<loc>https://example.com/news</loc><lastmod>yesterday</lastmod>",
    )
    report = await run(make_context, mock_client, {ROBOTS_URL: GOOD_ROBOTS, SITEMAP_URL: sitemap})

    assert codes(report) == ["sitemap_relative_urls", "sitemap_foreign_urls", "sitemap_invalid_lastmod"]
    assert report.details.sitemap.score == 25
    assert report.details.sitemap.status == "warning"


async def test_empty_sitemap_and_loose_robots(make_context, mock_client):
    robots = "Disallow: /tmp\nCrawl-delay: 30\n"
    report = await run(make_context, mock_client, {ROBOTS_URL: robots, SITEMAP_URL: urlset()})

    found = codes(report)
    assert "robots_no_rules" in found
    assert "robots_invalid_lines" in found
    assert "sitemap_empty" in found
    assert report.details.sitemap.score == 30
