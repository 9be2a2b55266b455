"""Tests for the technical SEO auditor."""

from analyzers.technical import TechnicalSEOAnalyzer

from conftest import codes, html_page

HSTS = {"strict-transport-security": "max-age=31536000"}
JSON_LD = '<script type="application/ld+json">{"@context": "https://schema.org", "@type": "WebSite"}</script>'
GOOD_PAGE = html_page(head=JSON_LD, body="<h1>Welcome</h1><img src='/logo.png' alt='Logo'>")


async def audit(make_context, html=GOOD_PAGE, **kwargs):
    kwargs.setdefault("headers", HSTS)
    return await TechnicalSEOAnalyzer().analyze(make_context(html, tool_id="technical-seo-auditor", **kwargs))


async def test_clean_page(make_context):
    report = await audit(make_context)

    assert report.score == 100
    assert report.issues == []
    assert report.recommendations == ["No technical SEO problems found"]
    details = report.details
    assert details.status_code == 200
    assert details.https
    assert details.has_structured_data
    for group in ("crawlability", "indexability", "site_structure", "performance", "security"):
        assert getattr(details, group).status == "good"


async def test_long_redirect_chain(make_context):
    chain = tuple(f"https://example.com/hop{i}" for i in range(4))
    report = await audit(make_context, redirects=chain)

    assert codes(report) == ["redirect_chain_too_long"]
    assert report.details.redirects.hops == 4
    assert report.details.redirects.chain == list(chain)
    assert report.details.crawlability.status == "warning"
    assert report.score == 90


async def test_short_redirect_chain_is_a_warning(make_context):
    report = await audit(make_context, redirects=("http://example.com/", "https://example.com/x"))

    assert codes(report) == ["redirect_chain"]
    assert report.issues[0].type == "warning"


async def test_insecure_and_noindexed(make_context):
    report = await audit(make_context, url="http://example.com/", headers={"x-robots-tag": "noindex"})

    assert codes(report) == ["noindex_header", "https_missing"]
    assert not report.details.https
    assert report.details.security.status == "error"
    assert report.details.indexability.status == "error"
    assert report.score == 65


async def test_noindex_nofollow_meta(make_context):
    html = html_page(head='<meta name="robots" content="noindex, nofollow">' + JSON_LD, body="<h1>Hi</h1>")
    report = await audit(make_context, html)

    assert codes(report) == ["robots_nofollow", "noindex"]
    assert report.score == 75


async def test_canonical_pointing_elsewhere(make_context):
    html = html_page(head='<link rel="canonical" href="https://example.com/other">' + JSON_LD, body="<h1>Hi</h1>")
    report = await audit(make_context, html)

    assert codes(report) == ["canonical_inconsistent"]
    assert report.details.canonical_url == "https://example.com/other"
    assert report.score == 85


async def test_self_canonical_ignores_trailing_slash(make_context):
    html = html_page(head='<link rel="canonical" href="https://example.com/page/">' + JSON_LD, body="<h1>Hi</h1>")
    report = await audit(make_context, html, url="https://example.com/page")

    assert report.score == 100


async def test_structure_problems(make_context):
    html = "<html><head><title>T</title></head><body><h1>One</h1><h1>Two</h1><img src='/a.png'></body></html>"
    report = await audit(make_context, html)

    assert codes(report) == [
        "h1_multiple",
        "lang_missing",
        "structured_data_missing",
        "charset_missing",
        "images_missing_alt",
    ]
    # 3 structure issues x 10, 2 performance issues x 5
    assert report.score == 60
    assert report.details.site_structure.status == "warning"
    assert len(report.details.site_structure.issues) == 3


async def test_mixed_content_and_missing_hsts(make_context):
    html = html_page(
        head=JSON_LD + '<script src="http://cdn.example.com/app.js"></script>',
        body="<h1>Hi</h1><img src='http://cdn.example.com/a.png' alt='A'>",
    )
    report = await audit(make_context, html, headers={})

    assert codes(report) == ["mixed_content", "hsts_missing"]
    assert report.details.security.issues == ["2 resources loaded over HTTP"]
    assert report.score == 80


async def test_large_document(make_context):
    html = html_page(head=JSON_LD, body="<h1>Hi</h1><p>" + "word " * 110_000 + "</p>")
    report = await audit(make_context, html)

    assert codes(report) == ["large_html"]
    assert report.score == 95
