"""Broken link scanner."""

import asyncio
import logging
from urllib.parse import urlparse

from analyzers.base import (
    AnalysisContext,
    AnalysisReport,
    BaseAnalyzer,
    CamelModel,
    ToolDetails,
    issue,
)
from engine.errors import FetchError, FetchReason
from engine.fetcher import fetch, normalize_url

logger = logging.getLogger(__name__)

TIMEOUT_STATUS = 408
TRANSPORT_ERROR_STATUS = 0
# Servers that reject HEAD with these get a GET instead
HEAD_UNSUPPORTED = {405, 501}


class LinkResult(CamelModel):
    url: str
    status: int
    text: str = ""
    page: str = ""
    internal: bool = False
    error: str | None = None


class BrokenLinkDetails(ToolDetails):
    total_links: int = 0
    checked_links: int = 0
    working_links: int = 0
    skipped_links: int = 0
    unchecked_links: int = 0
    broken_links: list[LinkResult] = []


def is_skipped_domain(url: str, domains: list[str]) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)


class BrokenLinkAnalyzer(BaseAnalyzer):
    """
    Probes every http(s) link on the page.

    Each link gets exactly one probe: a HEAD request, retried as GET within
    the same probe only when the server answers 405 or 501. Probes run under
    a semaphore and each is bounded by ``probe_timeout``.
    """

    tool_id = "broken-link-scanner"
    details_model = BrokenLinkDetails

    @property
    def name(self) -> str:
        return "Broken Link Scanner"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        settings = ctx.settings
        candidates = self._collect_links(ctx)
        skipped, probe_targets = [], []
        for link in candidates:
            if is_skipped_domain(link["url"], settings.link_check_skip_domains):
                skipped.append(link)
            else:
                probe_targets.append(link)

        unchecked = max(0, len(probe_targets) - settings.max_links_to_check)
        probe_targets = probe_targets[: settings.max_links_to_check]

        semaphore = asyncio.Semaphore(settings.link_check_concurrency)

        async def _bounded(link: dict) -> LinkResult:
            async with semaphore:
                return await self._probe(ctx, link)

        results = await asyncio.gather(*(_bounded(link) for link in probe_targets))

        broken = [result for result in results if not self._is_working(result.status)]
        working = len(results) - len(broken)
        score = (working / len(results) * 100) if results else 100

        issues = []
        for result in broken:
            kind = "Internal" if result.internal else "External"
            if result.status:
                detail = f"HTTP {result.status}"
            else:
                detail = result.error or "connection failed"
            issues.append(
                issue(
                    "error",
                    "broken_link",
                    f"{kind} link {result.url} is broken ({detail})",
                    "high" if result.internal else "medium",
                )
            )
        if skipped:
            issues.append(
                issue(
                    "info",
                    "links_skipped",
                    f"{len(skipped)} social media links were not checked "
                    "(these sites block automated requests)",
                )
            )
        if unchecked:
            issues.append(
                issue(
                    "info",
                    "links_truncated",
                    f"Only the first {settings.max_links_to_check} links were checked; "
                    f"{unchecked} were not",
                )
            )

        recommendations = []
        if broken:
            recommendations.append(
                f"Fix or remove {len(broken)} broken link(s) - "
                "they hurt user experience and crawl budget"
            )
            if any(result.internal for result in broken):
                recommendations.append("Set up 301 redirects for moved internal pages")
            recommendations.append("Re-scan links regularly to catch link rot early")
        elif results:
            recommendations.append("All checked links are working")
        else:
            recommendations.append(
                "No outgoing links found - consider linking to related internal pages"
            )

        logger.info(
            f"Checked {len(results)} links on {ctx.url}: "
            f"{len(broken)} broken, {len(skipped)} skipped"
        )

        return self.build_report(
            ctx,
            score=score,
            issues=issues,
            recommendations=recommendations,
            total_links=len(candidates),
            checked_links=len(results),
            working_links=working,
            skipped_links=len(skipped),
            unchecked_links=unchecked,
            broken_links=broken,
        )

    def _collect_links(self, ctx: AnalysisContext) -> list[dict]:
        """Unique http(s) links, in page order."""
        seen = {}
        for link in ctx.document.links:
            if link.raw_href.startswith("#") or not link.is_http:
                continue
            try:
                key = normalize_url(link.href)
            except ValueError:
                continue
            if key not in seen:
                seen[key] = {
                    "url": key,
                    "text": link.text[:100],
                    "internal": link.is_internal,
                }
        return list(seen.values())

    async def _probe(self, ctx: AnalysisContext, link: dict) -> LinkResult:
        """One probe per link. Never raises."""
        result = LinkResult(
            url=link["url"],
            status=TRANSPORT_ERROR_STATUS,
            text=link["text"],
            page=ctx.url,
            internal=link["internal"],
        )
        timeout = ctx.settings.probe_timeout

        try:
            result.status = await asyncio.wait_for(
                self._request(ctx, link["url"], timeout), timeout=timeout
            )
        except asyncio.TimeoutError:
            result.status = TIMEOUT_STATUS
            result.error = f"Timed out after {timeout:g}s"
        except FetchError as e:
            if e.reason == FetchReason.TIMEOUT:
                result.status = TIMEOUT_STATUS
            result.error = str(e)

        logger.debug(f"Probe {result.url} -> {result.status}")
        return result

    async def _request(self, ctx: AnalysisContext, url: str, timeout: float) -> int:
        options = {
            "client": ctx.client,
            "timeout": timeout,
            "raise_for_status": False,
            "settings": ctx.settings,
        }
        page = await fetch(url, method="HEAD", **options)
        if page.status_code in HEAD_UNSUPPORTED:
            page = await fetch(url, method="GET", **options)
        return page.status_code

    def _is_working(self, status: int) -> bool:
        return 200 <= status < 400
