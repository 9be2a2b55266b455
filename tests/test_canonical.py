"""Tests for the canonical URL checker."""

from analyzers.canonical import CanonicalAnalyzer

from conftest import codes, html_page

DESCRIPTIVE_HEAD = (
    "<title>Handmade Oak Dining Tables and Chairs</title>"
    '<meta name="description" content="'
    + "Solid oak dining tables and chairs, made to order in our workshop, finished by hand "
    "and delivered nationwide with a ten year guarantee."
    + '">'
)


async def check(make_context, canonical_tags="", **kwargs):
    ctx = make_context(html_page(head=DESCRIPTIVE_HEAD + canonical_tags), tool_id="canonical-checker", **kwargs)
    return await CanonicalAnalyzer().analyze(ctx)


async def test_self_referential(make_context):
    report = await check(make_context, '<link rel="canonical" href="https://example.com/">')

    assert report.score == 100
    assert report.issues == []
    assert report.details.verdict == "self-referential"
    assert report.details.status == "good"
    assert report.details.canonical_tags == 1


async def test_canonical_matching_final_url_after_redirect(make_context):
    report = await check(
        make_context,
        '<link rel="canonical" href="https://www.example.com/home/">',
        url="http://example.com/",
        final_url="https://www.example.com/home",
    )

    assert report.details.verdict == "self-referential"
    assert "canonical_mismatch" not in codes(report)
    assert report.details.fetched_url == "https://www.example.com/home"


async def test_canonical_elsewhere_is_one_mismatch(make_context):
    report = await check(make_context, '<link rel="canonical" href="https://example.com/other-page">')

    assert codes(report) == ["canonical_mismatch"]
    assert report.details.verdict == "mismatch"
    assert report.details.status == "warning"
    assert report.score == 70


async def test_missing_canonical(make_context):
    report = await check(make_context)

    assert codes(report) == ["canonical_missing"]
    assert report.details.verdict == "missing"
    assert report.details.canonical_url == ""
    assert report.score == 60


async def test_relative_and_multiple_tags(make_context):
    tags = '<link rel="canonical" href="/"><link rel="canonical" href="https://example.com/b">'
    report = await check(make_context, tags)

    assert codes(report) == ["canonical_multiple", "canonical_relative"]
    assert report.details.canonical_url == "https://example.com/"
    assert report.details.is_relative
    assert report.details.status == "error"
    assert report.score == 70


async def test_duplicate_content_signals(make_context):
    ctx = make_context(html_page(head='<title>Home</title><link rel="canonical" href="https://example.com/">'))

    report = await CanonicalAnalyzer().analyze(ctx)

    assert codes(report) == ["duplicate_content_risk"]
    assert [signal.issue for signal in report.details.duplicate_content] == [
        "Short or generic title",
        "Short or generic meta description",
    ]
    assert report.score == 90
