"""Sitemap and robots.txt checker."""

import asyncio
import logging
import re
from urllib.parse import urlparse

from pydantic import Field

from analyzers.base import (
    AnalysisContext,
    AnalysisReport,
    BaseAnalyzer,
    CamelModel,
    ToolDetails,
    issue,
)
from engine.errors import FetchError, FetchReason, ParseError
from engine.fetcher import FetchResult, canonicalize_url, fetch, origin
from engine.parser import RobotsDocument, SitemapDocument, parse_robots, parse_sitemap

logger = logging.getLogger(__name__)

MAX_SITEMAP_ENTRIES = 50_000
MAX_CROSS_CHECKED_ENTRIES = 500
HALF_SCORE = 50

# W3C datetime: YYYY, YYYY-MM, YYYY-MM-DD or full date-time with timezone
LASTMOD_RE = re.compile(
    r"^\d{4}(-\d{2}(-\d{2}(T\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:\d{2}))?)?)?$"
)


class RobotsRule(CamelModel):
    user_agent: str
    allow: list[str] = []
    disallow: list[str] = []
    crawl_delay: float | None = None


class RobotsCheck(CamelModel):
    exists: bool = False
    url: str = ""
    status: str = "error"
    status_code: int | None = None
    rules: list[RobotsRule] = []
    sitemaps: list[str] = []
    crawl_delay: float | None = None
    score: int = 0
    issues: list[str] = []


class SitemapCheck(CamelModel):
    exists: bool = False
    url: str = ""
    status: str = "error"
    status_code: int | None = None
    kind: str | None = None
    entry_count: int = 0
    declared_in_robots: bool = False
    disallowed_urls: list[str] = []
    score: int = 0
    issues: list[str] = []


class SitemapRobotsDetails(ToolDetails):
    robots: RobotsCheck = Field(default_factory=RobotsCheck)
    sitemap: SitemapCheck = Field(default_factory=SitemapCheck)


def _status(score: int) -> str:
    if score >= 40:
        return "good"
    if score >= 20:
        return "warning"
    return "error"


class SitemapRobotsAnalyzer(BaseAnalyzer):
    """
    Validates robots.txt and the XML sitemap, then cross-references them.

    Each half is worth 50 points and is scored on its own, so a missing
    robots.txt never zeroes a valid sitemap (and vice versa).
    """

    tool_id = "sitemap-robots-checker"
    details_model = SitemapRobotsDetails

    @property
    def name(self) -> str:
        return "Sitemap & Robots.txt Checker"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        site = origin(ctx.final_url)
        robots_url = f"{site}/robots.txt"
        default_sitemap_url = f"{site}/sitemap.xml"

        robots_result, sitemap_result = await asyncio.gather(
            self._fetch(ctx, robots_url), self._fetch(ctx, default_sitemap_url)
        )

        issues = []
        recommendations = []

        robots_doc = None
        if isinstance(robots_result, FetchResult):
            robots_doc = parse_robots(robots_result.body)

        # A sitemap declared in robots.txt takes precedence over the default location
        sitemap_url = default_sitemap_url
        if robots_doc and robots_doc.sitemaps:
            declared = robots_doc.sitemaps[0]
            if canonicalize_url(declared) != canonicalize_url(default_sitemap_url):
                sitemap_url = declared
                sitemap_result = await self._fetch(ctx, declared)

        robots = self._check_robots(robots_url, robots_result, robots_doc, issues, recommendations)
        sitemap = self._check_sitemap(
            ctx, sitemap_url, sitemap_result, robots_doc, issues, recommendations
        )

        if not recommendations:
            recommendations.append("robots.txt and sitemap are correctly configured")

        logger.info(
            f"Sitemap/robots for {site}: robots={robots.score}/50 sitemap={sitemap.score}/50"
        )

        return self.build_report(
            ctx,
            score=robots.score + sitemap.score,
            issues=issues,
            recommendations=recommendations,
            robots=robots,
            sitemap=sitemap,
        )

    async def _fetch(self, ctx: AnalysisContext, url: str) -> FetchResult | FetchError:
        try:
            return await fetch(
                url,
                client=ctx.client,
                timeout=ctx.settings.secondary_fetch_timeout,
                settings=ctx.settings,
            )
        except FetchError as e:
            logger.debug(f"Secondary fetch of {url} failed: {e}")
            return e

    def _missing_reason(self, error: FetchError) -> str:
        if error.reason == FetchReason.HTTP_STATUS:
            return f"returned HTTP {error.status_code}"
        if error.reason == FetchReason.TIMEOUT:
            return "timed out"
        return "could not be reached"

    def _check_robots(
        self,
        url: str,
        result: FetchResult | FetchError,
        doc: RobotsDocument | None,
        issues: list,
        recommendations: list[str],
    ) -> RobotsCheck:
        """Score the robots.txt half (0-50)."""
        check = RobotsCheck(url=url)

        if isinstance(result, FetchError) or doc is None:
            check.status_code = result.status_code if isinstance(result, FetchError) else None
            message = f"robots.txt {self._missing_reason(result)}"
            check.issues.append(message)
            issues.append(issue("warning", "robots_missing", f"{message} - no robots.txt found"))
            recommendations.append("Create a robots.txt file that references your sitemap")
            return check

        check.exists = True
        check.status_code = result.status_code
        check.sitemaps = list(doc.sitemaps)
        check.crawl_delay = doc.crawl_delay
        check.rules = [
            RobotsRule(
                user_agent=", ".join(group.user_agents),
                allow=group.allow,
                disallow=group.disallow,
                crawl_delay=group.crawl_delay,
            )
            for group in doc.groups
        ]
        score = HALF_SCORE

        wildcard = doc.group_for("*")
        if wildcard and "/" in wildcard.disallow and "/" not in wildcard.allow:
            score -= 40
            check.issues.append("Disallow: / blocks all crawlers from the entire site")
            issues.append(
                issue(
                    "error",
                    "robots_disallow_all",
                    "robots.txt blocks all crawlers from the entire site (Disallow: /)",
                )
            )
            recommendations.append("Remove 'Disallow: /' for User-agent: * unless the site should not be indexed")

        if not doc.groups:
            score -= 5
            check.issues.append("No user-agent groups defined")
            issues.append(issue("info", "robots_no_rules", "robots.txt defines no user-agent rules"))

        if not doc.sitemaps:
            score -= 5
            check.issues.append("No Sitemap directive")
            issues.append(issue("info", "robots_no_sitemap", "robots.txt does not reference a sitemap"))
            recommendations.append("Add a 'Sitemap:' directive to robots.txt")

        if doc.invalid_lines:
            score -= 5
            check.issues.append(f"{len(doc.invalid_lines)} unrecognised lines")
            issues.append(
                issue(
                    "warning",
                    "robots_invalid_lines",
                    f"robots.txt has {len(doc.invalid_lines)} unrecognised or malformed lines",
                    "low",
                )
            )

        if doc.crawl_delay and doc.crawl_delay > 10:
            score -= 5
            check.issues.append(f"Crawl-delay of {doc.crawl_delay:g}s")
            issues.append(
                issue("warning", "robots_high_crawl_delay", f"Crawl-delay of {doc.crawl_delay:g}s slows indexing", "low")
            )

        check.score = max(0, score)
        check.status = _status(check.score)
        return check

    def _check_sitemap(
        self,
        ctx: AnalysisContext,
        url: str,
        result: FetchResult | FetchError,
        robots: RobotsDocument | None,
        issues: list,
        recommendations: list[str],
    ) -> SitemapCheck:
        """Score the sitemap half (0-50)."""
        check = SitemapCheck(url=url)
        if robots is not None:
            declared = {canonicalize_url(item) for item in robots.sitemaps}
            check.declared_in_robots = canonicalize_url(url) in declared

        if isinstance(result, FetchError):
            check.status_code = result.status_code
            message = f"Sitemap {self._missing_reason(result)}"
            check.issues.append(message)
            issues.append(issue("error", "sitemap_missing", f"{message} at {url}", "medium"))
            recommendations.append("Create an XML sitemap and submit it to search engines")
            return check

        check.exists = True
        check.status_code = result.status_code
        try:
            document = parse_sitemap(result.body)
        except ParseError as e:
            check.issues.append(str(e))
            issues.append(issue("error", "sitemap_invalid", "Sitemap is not valid XML"))
            recommendations.append("Fix the sitemap so it is well-formed XML using the sitemaps.org schema")
            check.score = 10
            check.status = _status(check.score)
            return check

        check.kind = document.kind
        check.entry_count = len(document.entries)
        score = HALF_SCORE - self._validate_entries(ctx, document, check, issues, recommendations)

        if robots is not None and document.kind == "urlset":
            blocked = [
                entry.loc
                for entry in document.entries[:MAX_CROSS_CHECKED_ENTRIES]
                if entry.loc.startswith(("http://", "https://")) and not robots.can_fetch(entry.loc)
            ]
            if blocked:
                score -= 10
                check.disallowed_urls = blocked[:20]
                check.issues.append(f"{len(blocked)} URLs are disallowed by robots.txt")
                issues.append(
                    issue(
                        "warning",
                        "sitemap_urls_disallowed",
                        f"{len(blocked)} sitemap URLs are blocked by robots.txt",
                    )
                )
                recommendations.append("Remove URLs blocked by robots.txt from the sitemap, or unblock them")

        check.score = max(0, score)
        check.status = _status(check.score)
        return check

    def _validate_entries(
        self,
        ctx: AnalysisContext,
        document: SitemapDocument,
        check: SitemapCheck,
        issues: list,
        recommendations: list[str],
    ) -> int:
        """Return the deduction for entry-level problems."""
        deduction = 0
        entries = document.entries
        site_host = (urlparse(ctx.final_url).hostname or "").lower()

        if not entries:
            check.issues.append("Sitemap has no entries")
            issues.append(issue("warning", "sitemap_empty", "Sitemap contains no URLs"))
            recommendations.append("Add your indexable pages to the sitemap")
            return 20

        if len(entries) > MAX_SITEMAP_ENTRIES:
            deduction += 15
            check.issues.append(f"{len(entries)} entries exceeds the {MAX_SITEMAP_ENTRIES} limit")
            issues.append(
                issue(
                    "error",
                    "sitemap_too_large",
                    f"Sitemap has {len(entries)} URLs (limit is {MAX_SITEMAP_ENTRIES})",
                    "medium",
                )
            )
            recommendations.append("Split the sitemap into several files behind a sitemap index")

        relative = [entry.loc for entry in entries if not entry.loc.startswith(("http://", "https://"))]
        if relative:
            deduction += 10
            check.issues.append(f"{len(relative)} relative URLs")
            issues.append(
                issue("error", "sitemap_relative_urls", f"{len(relative)} sitemap URLs are not absolute", "medium")
            )
            recommendations.append("Use absolute URLs in every <loc> element")

        def _same_site(loc: str) -> bool:
            host = (urlparse(loc).hostname or "").lower()
            return host.removeprefix("www.") == site_host.removeprefix("www.")

        foreign = [
            entry.loc
            for entry in entries
            if entry.loc.startswith(("http://", "https://")) and not _same_site(entry.loc)
        ]
        if foreign:
            deduction += 10
            check.issues.append(f"{len(foreign)} URLs on other hosts")
            issues.append(
                issue(
                    "warning",
                    "sitemap_foreign_urls",
                    f"{len(foreign)} sitemap URLs point to a different host",
                )
            )

        bad_lastmod = [entry for entry in entries if entry.lastmod and not LASTMOD_RE.match(entry.lastmod)]
        if bad_lastmod:
            deduction += 5
            check.issues.append(f"{len(bad_lastmod)} invalid lastmod values")
            issues.append(
                issue(
                    "warning",
                    "sitemap_invalid_lastmod",
                    f"{len(bad_lastmod)} <lastmod> values are not W3C datetime format",
                    "low",
                )
            )

        return deduction
