"""Page speed analysis from measured response and markup proxies."""

import logging

from pydantic import Field

from analyzers.base import (
    AnalysisContext,
    AnalysisReport,
    BaseAnalyzer,
    CamelModel,
    Issue,
    ToolDetails,
    issue,
    status_for,
)

logger = logging.getLogger(__name__)

COMPRESSED_ENCODINGS = ("gzip", "br", "deflate", "zstd")


class CategoryScore(CamelModel):
    score: int = 0
    status: str = "poor"
    issues: list[Issue] = []


class PerformanceMetrics(CamelModel):
    response_time_ms: int = 0
    html_size_kb: float = 0.0
    script_count: int = 0
    stylesheet_count: int = 0
    render_blocking_scripts: int = 0
    image_count: int = 0
    lazy_loaded_images: int = 0
    compressed: bool = False
    cacheable: bool = False


class PerformanceScore(CategoryScore):
    metrics: PerformanceMetrics = Field(default_factory=PerformanceMetrics)


class Opportunity(CamelModel):
    name: str
    description: str
    impact: str = "medium"


class PageSpeedDetails(ToolDetails):
    overall_score: int = 0
    performance: PerformanceScore = Field(default_factory=PerformanceScore)
    accessibility: CategoryScore = Field(default_factory=CategoryScore)
    best_practices: CategoryScore = Field(default_factory=CategoryScore)
    seo: CategoryScore = Field(default_factory=CategoryScore)
    opportunities: list[Opportunity] = []
    methodology: str = "heuristic"


class PageSpeedAnalyzer(BaseAnalyzer):
    """
    Approximates Lighthouse-style category scores without a browser.

    Every input is something actually measured on the single fetch: response
    time, HTML weight, resource counts, headers and markup. No browser timings
    are reported.
    """

    # Response time tiers (ms) -> deduction
    RESPONSE_TIME_TIERS = [(500, 0), (1000, 10), (2000, 20), (4000, 30)]
    RESPONSE_TIME_MAX_DEDUCTION = 40

    # HTML size tiers (KB) -> deduction
    HTML_SIZE_TIERS = [(100, 0), (250, 5), (500, 10)]
    HTML_SIZE_MAX_DEDUCTION = 20

    SCRIPT_COUNT_TIERS = [(5, 0), (10, 5), (20, 10)]
    SCRIPT_COUNT_MAX_DEDUCTION = 15

    STYLESHEET_COUNT_TIERS = [(3, 0), (6, 5)]
    STYLESHEET_COUNT_MAX_DEDUCTION = 10

    tool_id = "page-speed-analyzer"
    details_model = PageSpeedDetails

    @property
    def name(self) -> str:
        return "Page Speed Analyzer"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        opportunities: list[Opportunity] = []
        performance = self._score_performance(ctx, opportunities)
        accessibility = self._score_accessibility(ctx)
        best_practices = self._score_best_practices(ctx)
        seo = self._score_seo(ctx)

        categories = [performance, accessibility, best_practices, seo]
        overall = round(sum(category.score for category in categories) / len(categories))
        issues = [found for category in categories for found in category.issues]
        logger.debug(
            f"Page speed for {ctx.url}: "
            + ", ".join(str(category.score) for category in categories)
        )

        recommendations = [opportunity.description for opportunity in opportunities]
        recommendations.extend(
            found.message for found in issues if found.severity == "high"
        )
        if not recommendations:
            recommendations.append("No major speed issues detected from the page markup and headers")
        recommendations.append(
            "Scores are a heuristic approximation - confirm with a lab tool such as Lighthouse"
        )

        return self.build_report(
            ctx,
            score=overall,
            issues=issues,
            recommendations=recommendations,
            overall_score=overall,
            performance=performance,
            accessibility=accessibility,
            best_practices=best_practices,
            seo=seo,
            opportunities=opportunities,
        )

    def _tiered(self, value: float, tiers: list[tuple[float, int]], ceiling: int) -> int:
        for limit, deduction in tiers:
            if value <= limit:
                return deduction
        return ceiling

    def _score_performance(
        self, ctx: AnalysisContext, opportunities: list[Opportunity]
    ) -> PerformanceScore:
        """Score measured load proxies."""
        page, doc = ctx.page, ctx.document
        headers = page.headers
        external_scripts = [script for script in doc.scripts if script.src]
        blocking = [
            script
            for script in external_scripts
            if script.in_head and not (script.is_async or script.is_defer or script.is_module)
        ]
        encoding = headers.get("content-encoding", "").lower()

        metrics = PerformanceMetrics(
            response_time_ms=page.duration_ms,
            html_size_kb=round(page.content_length / 1024, 1),
            script_count=len(external_scripts),
            stylesheet_count=len(doc.stylesheets),
            render_blocking_scripts=len(blocking),
            image_count=len(doc.images),
            lazy_loaded_images=sum(1 for img in doc.images if (img.loading or "").lower() == "lazy"),
            compressed=any(name in encoding for name in COMPRESSED_ENCODINGS),
            cacheable=any(
                key in headers for key in ("cache-control", "etag", "last-modified", "expires")
            ),
        )
        issues = []
        score = 100

        deduction = self._tiered(
            metrics.response_time_ms, self.RESPONSE_TIME_TIERS, self.RESPONSE_TIME_MAX_DEDUCTION
        )
        if deduction:
            score -= deduction
            issues.append(
                issue(
                    "warning",
                    "slow_response",
                    f"Server responded in {metrics.response_time_ms}ms",
                    "high" if deduction >= 30 else "medium",
                )
            )
            opportunities.append(
                Opportunity(
                    name="Reduce server response time",
                    description="Reduce server response time with caching or a CDN",
                    impact="high" if deduction >= 30 else "medium",
                )
            )

        deduction = self._tiered(
            metrics.html_size_kb, self.HTML_SIZE_TIERS, self.HTML_SIZE_MAX_DEDUCTION
        )
        if deduction:
            score -= deduction
            issues.append(
                issue("warning", "large_html", f"HTML document is {metrics.html_size_kb}KB")
            )
            opportunities.append(
                Opportunity(
                    name="Reduce HTML size",
                    description="Trim inline scripts, styles and markup to shrink the HTML document",
                )
            )

        deduction = self._tiered(
            metrics.script_count, self.SCRIPT_COUNT_TIERS, self.SCRIPT_COUNT_MAX_DEDUCTION
        )
        if deduction:
            score -= deduction
            issues.append(
                issue("warning", "many_scripts", f"{metrics.script_count} external scripts loaded", "low")
            )
            opportunities.append(
                Opportunity(
                    name="Bundle JavaScript",
                    description="Combine or remove scripts to cut request count",
                    impact="low",
                )
            )

        deduction = self._tiered(
            metrics.stylesheet_count, self.STYLESHEET_COUNT_TIERS, self.STYLESHEET_COUNT_MAX_DEDUCTION
        )
        if deduction:
            score -= deduction
            issues.append(
                issue("warning", "many_stylesheets", f"{metrics.stylesheet_count} stylesheets loaded", "low")
            )

        if blocking:
            score -= min(15, len(blocking) * 5)
            issues.append(
                issue(
                    "warning",
                    "render_blocking_scripts",
                    f"{len(blocking)} render-blocking scripts in <head>",
                )
            )
            opportunities.append(
                Opportunity(
                    name="Eliminate render-blocking resources",
                    description="Add async or defer to scripts in the document head",
                    impact="high" if len(blocking) > 2 else "medium",
                )
            )

        if not metrics.compressed:
            score -= 10
            issues.append(issue("warning", "no_compression", "Response is not compressed (gzip/brotli)"))
            opportunities.append(
                Opportunity(
                    name="Enable text compression",
                    description="Enable gzip or brotli compression for text resources",
                )
            )

        if not metrics.cacheable:
            score -= 5
            issues.append(issue("info", "no_cache_headers", "No caching headers on the document"))

        eager_images = metrics.image_count - metrics.lazy_loaded_images
        if eager_images > 5:
            opportunities.append(
                Opportunity(
                    name="Lazy-load offscreen images",
                    description=f'Add loading="lazy" to offscreen images ({eager_images} load eagerly)',
                    impact="low",
                )
            )

        score = max(0, score)
        return PerformanceScore(score=score, status=status_for(score), issues=issues, metrics=metrics)

    def _score_accessibility(self, ctx: AnalysisContext) -> CategoryScore:
        doc = ctx.document
        issues = []
        score = 100

        missing_alt = sum(1 for img in doc.images if not (img.alt or "").strip())
        if missing_alt:
            score -= min(30, missing_alt * 5)
            issues.append(issue("warning", "images_missing_alt", f"{missing_alt} images without alt text"))

        if not doc.lang:
            score -= 10
            issues.append(issue("warning", "missing_lang", "<html> element has no lang attribute"))

        unlabelled = sum(1 for element in doc.interactive if not element.has_label)
        if unlabelled:
            score -= min(20, unlabelled * 5)
            issues.append(issue("warning", "unlabelled_inputs", f"{unlabelled} form fields without labels"))

        score = max(0, score)
        return CategoryScore(score=score, status=status_for(score), issues=issues)

    def _score_best_practices(self, ctx: AnalysisContext) -> CategoryScore:
        page, doc = ctx.page, ctx.document
        issues = []
        score = 100

        if not page.is_https:
            score -= 30
            issues.append(issue("error", "no_https", "Page is not served over HTTPS"))

        if not doc.has_doctype:
            score -= 10
            issues.append(issue("warning", "missing_doctype", "Document has no <!DOCTYPE html>", "low"))

        header_charset = "charset=" in page.headers.get("content-type", "").lower()
        if not doc.charset and not header_charset:
            score -= 10
            issues.append(issue("warning", "missing_charset", "No character encoding declared", "low"))

        unsafe = [
            link
            for link in doc.external_links
            if (link.target or "").lower() == "_blank"
            and "noopener" not in link.rel
            and "noreferrer" not in link.rel
        ]
        if unsafe:
            score -= min(10, len(unsafe) * 2)
            issues.append(
                issue(
                    "warning",
                    "unsafe_target_blank",
                    f'{len(unsafe)} external links open a new tab without rel="noopener"',
                    "low",
                )
            )

        score = max(0, score)
        return CategoryScore(score=score, status=status_for(score), issues=issues)

    def _score_seo(self, ctx: AnalysisContext) -> CategoryScore:
        doc = ctx.document
        issues = []
        score = 100

        if not doc.title:
            score -= 20
            issues.append(issue("error", "title_missing", "Missing title tag"))
        if not doc.meta_description:
            score -= 15
            issues.append(issue("error", "description_missing", "Missing meta description"))

        h1_count = len(doc.h1)
        if h1_count == 0:
            score -= 10
            issues.append(issue("error", "h1_missing", "Missing H1 tag"))
        elif h1_count > 1:
            score -= 5
            issues.append(issue("warning", "multiple_h1", f"{h1_count} H1 tags found"))

        if not doc.meta_viewport:
            score -= 15
            issues.append(issue("error", "viewport_missing", "Missing viewport meta tag"))

        score = max(0, score)
        return CategoryScore(score=score, status=status_for(score), issues=issues)
