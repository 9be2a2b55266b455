"""Tests for the heuristic page speed analyzer."""

from analyzers.page_speed import PageSpeedAnalyzer

from conftest import codes, html_page

FAST_HEADERS = {"content-encoding": "br", "cache-control": "max-age=600"}

CLEAN_HEAD = (
    "<title>Oak Furniture</title>"
    '<meta name="description" content="Solid oak furniture">'
    '<meta name="viewport" content="width=device-width, initial-scale=1">'
    '<script src="/app.js" defer></script>'
)


async def test_clean_page_scores_full(make_context):
    ctx = make_context(
        html_page(head=CLEAN_HEAD, body="<h1>Oak</h1><p>Tables</p>"), headers=FAST_HEADERS
    )

    report = await PageSpeedAnalyzer().analyze(ctx)

    assert report.score == 100
    assert report.issues == []
    details = report.details
    assert details.methodology == "heuristic"
    assert details.overall_score == 100
    assert details.performance.status == "excellent"
    assert details.performance.metrics.compressed
    assert details.performance.metrics.script_count == 1
    assert details.performance.metrics.render_blocking_scripts == 0
    assert details.performance.metrics.response_time_ms == 120


async def test_slow_uncompressed_page(make_context):
    head = CLEAN_HEAD + "".join(f'<script src="/s{i}.js"></script>' for i in range(3))
    ctx = make_context(html_page(head=head, body="<h1>Oak</h1>"), duration_ms=3000)

    report = await PageSpeedAnalyzer().analyze(ctx)

    found = codes(report)
    assert "slow_response" in found
    assert "render_blocking_scripts" in found
    assert "no_compression" in found
    assert "no_cache_headers" in found
    # 100 - 30 (response) - 15 (blocking) - 10 (compression) - 5 (cache)
    assert report.details.performance.score == 40
    assert report.details.performance.status == "poor"
    names = [opportunity.name for opportunity in report.details.opportunities]
    assert "Eliminate render-blocking resources" in names
    assert report.details.opportunities[0].impact == "high"


async def test_other_categories(make_context):
    html = (
        '<html><head><a href="https://other.org/" target="_blank">x</a></head>'
        '<body><img src="/a.png"><input type="text"></body></html>'
    )
    ctx = make_context(html, url="http://example.com/", headers=FAST_HEADERS)

    report = await PageSpeedAnalyzer().analyze(ctx)

    found = codes(report)
    for code in (
        "images_missing_alt",
        "missing_lang",
        "unlabelled_inputs",
        "no_https",
        "missing_doctype",
        "missing_charset",
        "unsafe_target_blank",
        "title_missing",
        "description_missing",
        "h1_missing",
        "viewport_missing",
    ):
        assert code in found
    assert report.details.seo.score == 40
    assert report.details.best_practices.score == 48


async def test_scores_are_bounded(make_context):
    head = "".join(f'<script src="/s{i}.js"></script>' for i in range(30))
    head += "".join(f'<link rel="stylesheet" href="/c{i}.css">' for i in range(10))
    ctx = make_context(html_page(head=head, body="x" * 600_000), duration_ms=9000)

    report = await PageSpeedAnalyzer().analyze(ctx)

    assert report.details.performance.score == 0
    assert 0 <= report.score <= 100
