"""Technical SEO audit."""

import logging

from pydantic import Field

from analyzers.base import (
    AnalysisContext,
    AnalysisReport,
    BaseAnalyzer,
    CamelModel,
    ToolDetails,
    issue,
)
from engine.fetcher import canonicalize_url

logger = logging.getLogger(__name__)

# Deduction per issue in each group
GROUP_WEIGHTS = {
    "crawlability": 10,
    "indexability": 15,
    "site_structure": 10,
    "performance": 5,
    "security": 20,
}

# Status reported for a group with at least one issue
GROUP_FAILURE_STATUS = {
    "crawlability": "warning",
    "indexability": "error",
    "site_structure": "warning",
    "performance": "warning",
    "security": "error",
}

LARGE_HTML_BYTES = 500 * 1024


class AuditGroup(CamelModel):
    status: str = "good"
    issues: list[str] = []


class RedirectInfo(CamelModel):
    hops: int = 0
    chain: list[str] = []
    final_url: str = ""


class TechnicalSEODetails(ToolDetails):
    status_code: int | None = None
    https: bool = False
    redirects: RedirectInfo = Field(default_factory=RedirectInfo)
    canonical_url: str | None = None
    has_structured_data: bool = False
    crawlability: AuditGroup = Field(default_factory=AuditGroup)
    indexability: AuditGroup = Field(default_factory=AuditGroup)
    site_structure: AuditGroup = Field(default_factory=AuditGroup)
    performance: AuditGroup = Field(default_factory=AuditGroup)
    security: AuditGroup = Field(default_factory=AuditGroup)


class TechnicalSEOAnalyzer(BaseAnalyzer):
    """Structural checks grouped by crawlability, indexability, structure, performance and security."""

    tool_id = "technical-seo-auditor"
    details_model = TechnicalSEODetails

    @property
    def name(self) -> str:
        return "Technical SEO Auditor"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        groups = {name: AuditGroup() for name in GROUP_WEIGHTS}
        issues = []
        recommendations = []

        self._check_crawlability(ctx, groups["crawlability"], issues, recommendations)
        self._check_indexability(ctx, groups["indexability"], issues, recommendations)
        self._check_site_structure(ctx, groups["site_structure"], issues, recommendations)
        self._check_performance(ctx, groups["performance"], issues, recommendations)
        self._check_security(ctx, groups["security"], issues, recommendations)

        score = 100
        for name, group in groups.items():
            score -= len(group.issues) * GROUP_WEIGHTS[name]
            if group.issues:
                group.status = GROUP_FAILURE_STATUS[name]

        if not recommendations:
            recommendations.append("No technical SEO problems found")

        logger.debug(
            f"Technical audit for {ctx.final_url}: "
            + ", ".join(f"{name}={len(group.issues)}" for name, group in groups.items())
        )

        return self.build_report(
            ctx,
            score=score,
            issues=issues,
            recommendations=recommendations,
            status_code=ctx.page.status_code,
            https=ctx.page.is_https,
            redirects=RedirectInfo(
                hops=len(ctx.page.redirects),
                chain=list(ctx.page.redirects),
                final_url=ctx.final_url,
            ),
            canonical_url=ctx.document.canonical_url,
            has_structured_data=bool(ctx.document.json_ld or ctx.document.microdata_types),
            **groups,
        )

    def _check_crawlability(self, ctx, group: AuditGroup, issues: list, recommendations: list) -> None:
        page = ctx.page
        hops = len(page.redirects)

        if not page.ok:
            group.issues.append(f"Page returned HTTP {page.status_code}")
            issues.append(issue("error", "bad_status_code", f"Page returned HTTP {page.status_code}"))

        if hops > 3:
            group.issues.append(f"Redirect chain of {hops} hops")
            issues.append(issue("error", "redirect_chain_too_long", f"URL passes through {hops} redirects before resolving"))
            recommendations.append("Link directly to the final URL to remove redirect hops")
        elif hops > 1:
            group.issues.append(f"Redirect chain of {hops} hops")
            issues.append(issue("warning", "redirect_chain", f"URL passes through {hops} redirects before resolving"))
            recommendations.append("Reduce the redirect chain to a single hop")

        robots = (ctx.document.meta_robots or "").lower()
        if "nofollow" in robots:
            group.issues.append("Meta robots nofollow prevents link discovery")
            issues.append(issue("warning", "robots_nofollow", "Meta robots 'nofollow' stops crawlers following links on this page"))

    def _check_indexability(self, ctx, group: AuditGroup, issues: list, recommendations: list) -> None:
        document = ctx.document
        robots = (document.meta_robots or "").lower()
        header = ctx.page.headers.get("x-robots-tag", "").lower()

        if "noindex" in robots:
            group.issues.append("Page has noindex meta tag")
            issues.append(issue("error", "noindex", "Page has a noindex meta tag and will not be indexed"))
            recommendations.append("Remove 'noindex' if this page should appear in search results")
        if "noindex" in header:
            group.issues.append("X-Robots-Tag header contains noindex")
            issues.append(issue("error", "noindex_header", "X-Robots-Tag header prevents indexing"))
            recommendations.append("Remove 'noindex' from the X-Robots-Tag response header")

        if document.canonical_url:
            canonical = canonicalize_url(document.canonical_url)
            if canonical != canonicalize_url(ctx.final_url):
                group.issues.append("Canonical URL points to a different page")
                issues.append(
                    issue(
                        "warning",
                        "canonical_inconsistent",
                        f"Canonical URL ({document.canonical_url}) differs from the fetched URL",
                    )
                )
                recommendations.append("Make sure the canonical tag points at this page's preferred URL")

    def _check_site_structure(self, ctx, group: AuditGroup, issues: list, recommendations: list) -> None:
        document = ctx.document
        h1_count = len(document.h1)

        if h1_count == 0:
            group.issues.append("Missing H1 tag")
            issues.append(issue("warning", "h1_missing", "Page has no H1 heading"))
            recommendations.append("Add a single descriptive H1 heading")
        elif h1_count > 1:
            group.issues.append("Multiple H1 tags found")
            issues.append(issue("warning", "h1_multiple", f"Page has {h1_count} H1 headings", "low"))
            recommendations.append("Use one H1 per page and H2-H6 for subsections")

        if not document.lang:
            group.issues.append("Missing lang attribute")
            issues.append(issue("warning", "lang_missing", "<html> element has no lang attribute", "low"))
            recommendations.append("Declare the page language with <html lang=\"...\">")

        if not document.json_ld and not document.microdata_types:
            group.issues.append("No structured data")
            issues.append(issue("info", "structured_data_missing", "No structured data (JSON-LD or microdata) found"))
            recommendations.append("Add schema.org structured data to qualify for rich results")

    def _check_performance(self, ctx, group: AuditGroup, issues: list, recommendations: list) -> None:
        document = ctx.document
        page = ctx.page

        if not document.charset:
            group.issues.append("Missing charset declaration")
            issues.append(issue("warning", "charset_missing", "No character encoding declared", "low"))
            recommendations.append("Add <meta charset=\"utf-8\"> to the document head")

        missing_alt = sum(1 for image in document.images if not (image.alt or "").strip())
        if missing_alt:
            group.issues.append(f"{missing_alt} images without alt text")
            issues.append(issue("warning", "images_missing_alt", f"{missing_alt} images have no alt text", "low"))

        if page.content_length > LARGE_HTML_BYTES:
            size_kb = page.content_length // 1024
            group.issues.append(f"HTML document is {size_kb}KB")
            issues.append(issue("warning", "large_html", f"HTML document is large ({size_kb}KB)"))
            recommendations.append("Reduce HTML size by removing inline data and unused markup")

    def _check_security(self, ctx, group: AuditGroup, issues: list, recommendations: list) -> None:
        page = ctx.page

        if not page.is_https:
            group.issues.append("Site not using HTTPS")
            issues.append(issue("error", "https_missing", "Page is not served over HTTPS"))
            recommendations.append("Serve the site over HTTPS and redirect HTTP traffic to it")
            return

        insecure = [
            image.src for image in ctx.document.images if image.src.startswith("http://")
        ] + [
            script.src for script in ctx.document.scripts if script.src and script.src.startswith("http://")
        ] + [
            sheet.href for sheet in ctx.document.stylesheets if sheet.href.startswith("http://")
        ]
        if insecure:
            group.issues.append(f"{len(insecure)} resources loaded over HTTP")
            issues.append(
                issue(
                    "error",
                    "mixed_content",
                    f"{len(insecure)} resources are loaded over insecure HTTP on an HTTPS page",
                    "medium",
                )
            )
            recommendations.append("Load all images, scripts and stylesheets over HTTPS")

        if "strict-transport-security" not in page.headers:
            issues.append(issue("info", "hsts_missing", "Strict-Transport-Security header is not set"))
