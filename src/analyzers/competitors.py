"""Competitor comparison."""

import asyncio
import logging
from collections import Counter
from urllib.parse import urlparse

from pydantic import Field
from pydantic.alias_generators import to_camel

from analyzers.base import (
    AnalysisContext,
    AnalysisReport,
    BaseAnalyzer,
    CamelModel,
    ToolDetails,
    issue,
)
from engine.errors import FetchError
from engine.fetcher import fetch, normalize_url
from engine.parser import ParsedDocument, contains_phrase, keyword_counts, parse

logger = logging.getLogger(__name__)

# Metrics where more is better; title/description length are judged on range
VOLUME_METRICS = ("word_count", "heading_count", "image_count", "internal_links")

TITLE_RANGE = (30, 60)
DESCRIPTION_RANGE = (50, 160)

PROMINENT_KEYWORDS = 10
MAX_GAPS = 15
MAX_SUGGESTIONS = 4

# Never suggested as competitors
PLATFORM_DOMAINS = (
    "google.com",
    "github.com",
    "youtube.com",
    "wikipedia.org",
    "apple.com",
    "microsoft.com",
    "amazon.com",
)


class PageMetrics(CamelModel):
    title_length: int = 0
    description_length: int = 0
    word_count: int = 0
    heading_count: int = 0
    image_count: int = 0
    internal_links: int = 0


class CompetitorEntry(CamelModel):
    url: str
    domain: str
    metrics: PageMetrics | None = None
    differences: dict[str, int] = {}  # camelCase metric -> target minus competitor
    top_keywords: list[str] = []
    strengths: list[str] = []
    weaknesses: list[str] = []
    error: str | None = None


class CompetitiveGap(CamelModel):
    keyword: str
    competitors: int
    occurrences: int


class CompetitorDetails(ToolDetails):
    target: PageMetrics = Field(default_factory=PageMetrics)
    competitors: list[CompetitorEntry] = []
    competitive_gaps: list[CompetitiveGap] = []
    suggested_competitors: list[str] = []


def page_metrics(document: ParsedDocument) -> PageMetrics:
    return PageMetrics(
        title_length=len(document.title or ""),
        description_length=len(document.meta_description or ""),
        word_count=document.word_count,
        heading_count=sum(len(texts) for texts in document.headings.values()),
        image_count=len(document.images),
        internal_links=len(document.internal_links),
    )


def prominent_keywords(document: ParsedDocument, limit: int = PROMINENT_KEYWORDS) -> Counter:
    """Keywords weighted toward title, description and headings."""
    counts = Counter()
    headings = ". ".join(text for texts in document.headings.values() for text in texts)
    for text, weight in (
        (document.title or "", 3),
        (document.meta_description or "", 2),
        (headings, 2),
    ):
        for keyword, count in keyword_counts(text).items():
            counts[keyword] += count * weight
    return Counter(dict(counts.most_common(limit)))


def _in_range(value: int, bounds: tuple[int, int]) -> bool:
    return bounds[0] <= value <= bounds[1]


class CompetitorAnalyzer(BaseAnalyzer):
    """
    Compares the page against competitor pages fetched side by side.

    Every competitor is fetched independently; one that fails is reported
    with an error and the rest of the comparison carries on.
    """

    tool_id = "competitor-analyzer"
    details_model = CompetitorDetails

    @property
    def name(self) -> str:
        return "Competitor Analyzer"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        target = page_metrics(ctx.document)
        urls = list(dict.fromkeys(ctx.request.competitor_urls))[: ctx.settings.max_competitors]

        if not urls:
            suggestions = self._suggest_competitors(ctx)
            recommendations = ["Add competitor URLs to compare your page against them"]
            if suggestions:
                recommendations.append(
                    f"Sites your page links to that may be competitors: {', '.join(suggestions)}"
                )
            return self.build_report(
                ctx,
                score=50,
                issues=[issue("info", "no_competitors", "No competitor URLs were supplied")],
                recommendations=recommendations,
                target=target,
                suggested_competitors=suggestions,
            )

        semaphore = asyncio.Semaphore(ctx.settings.competitor_concurrency)
        results = await asyncio.gather(*(self._analyze_competitor(ctx, url, semaphore) for url in urls))
        entries = [entry for entry, _ in results]
        documents = [document for _, document in results if document is not None]

        for entry in entries:
            if entry.metrics is not None:
                self._compare(target, entry)

        gaps = self._find_gaps(ctx.document, documents)
        issues, recommendations = self._findings(target, entries, gaps)
        score = self._score(target, entries, gaps)

        logger.info(
            f"Compared {ctx.final_url} against {len(documents)}/{len(entries)} competitors, score {score}"
        )

        return self.build_report(
            ctx,
            score=score,
            issues=issues,
            recommendations=recommendations,
            target=target,
            competitors=entries,
            competitive_gaps=gaps,
        )

    async def _analyze_competitor(
        self, ctx: AnalysisContext, url: str, semaphore: asyncio.Semaphore
    ) -> tuple[CompetitorEntry, ParsedDocument | None]:
        try:
            normalized = normalize_url(url)
        except ValueError:
            return CompetitorEntry(url=url, domain="", error="Invalid URL"), None

        entry = CompetitorEntry(url=normalized, domain=(urlparse(normalized).hostname or "").lower())
        async with semaphore:
            try:
                page = await fetch(
                    normalized,
                    client=ctx.client,
                    timeout=ctx.settings.secondary_fetch_timeout,
                    settings=ctx.settings,
                )
                document = parse(page.body, page.final_url)
            except FetchError as e:
                logger.warning(f"Competitor {normalized} could not be fetched: {e}")
                entry.error = f"Could not fetch competitor ({e.reason.value})"
                return entry, None

        entry.metrics = page_metrics(document)
        entry.top_keywords = list(prominent_keywords(document))
        return entry, document

    def _compare(self, target: PageMetrics, entry: CompetitorEntry) -> None:
        theirs = entry.metrics
        entry.differences = {
            to_camel(field): getattr(target, field) - getattr(theirs, field)
            for field in PageMetrics.model_fields
        }

        for field in VOLUME_METRICS:
            label = field.replace("_", " ")
            if getattr(theirs, field) > getattr(target, field):
                entry.strengths.append(f"Higher {label}")
            elif getattr(theirs, field) < getattr(target, field):
                entry.weaknesses.append(f"Lower {label}")

        if _in_range(theirs.title_length, TITLE_RANGE) and not _in_range(target.title_length, TITLE_RANGE):
            entry.strengths.append("Better title length")
        if _in_range(theirs.description_length, DESCRIPTION_RANGE) and not _in_range(
            target.description_length, DESCRIPTION_RANGE
        ):
            entry.strengths.append("Better meta description length")

    def _find_gaps(
        self, document: ParsedDocument, competitors: list[ParsedDocument]
    ) -> list[CompetitiveGap]:
        """Keywords prominent on competitors that the target never mentions."""
        target_text = " ".join(
            [document.title or "", document.meta_description or "", document.text]
        )
        seen_on = Counter()
        occurrences = Counter()
        for competitor in competitors:
            for keyword, weight in prominent_keywords(competitor).items():
                seen_on[keyword] += 1
                occurrences[keyword] += weight

        gaps = [
            CompetitiveGap(keyword=keyword, competitors=count, occurrences=occurrences[keyword])
            for keyword, count in seen_on.items()
            if not contains_phrase(target_text, keyword)
        ]
        gaps.sort(key=lambda gap: (gap.competitors, gap.occurrences), reverse=True)
        return gaps[:MAX_GAPS]

    def _findings(
        self, target: PageMetrics, entries: list[CompetitorEntry], gaps: list[CompetitiveGap]
    ) -> tuple[list, list[str]]:
        issues = []
        recommendations = []
        compared = [entry for entry in entries if entry.metrics is not None]

        failed = [entry for entry in entries if entry.error]
        for entry in failed:
            issues.append(
                issue(
                    "warning",
                    "competitor_unavailable",
                    f"Competitor {entry.url} could not be analyzed: {entry.error}",
                    "low",
                )
            )

        if not compared:
            recommendations.append("Check that the competitor URLs are reachable and try again")
            return issues, recommendations

        for field in VOLUME_METRICS:
            average = sum(getattr(entry.metrics, field) for entry in compared) / len(compared)
            if getattr(target, field) < average * 0.5:
                label = field.replace("_", " ")
                issues.append(
                    issue(
                        "warning",
                        f"{field}_below_competitors",
                        f"Your {label} ({getattr(target, field)}) is well below the competitor average ({average:.0f})",
                    )
                )
                recommendations.append(f"Increase your {label} to match competing pages")

        if gaps:
            top = ", ".join(gap.keyword for gap in gaps[:5])
            issues.append(
                issue(
                    "info",
                    "competitive_gaps",
                    f"{len(gaps)} keywords used by competitors are missing from your page",
                )
            )
            recommendations.append(f"Consider covering topics your competitors target: {top}")

        if not recommendations:
            recommendations.append("Your page compares well against the supplied competitors")
        return issues, recommendations

    def _score(
        self, target: PageMetrics, entries: list[CompetitorEntry], gaps: list[CompetitiveGap]
    ) -> int:
        """
        40 base, 10 per volume metric at or above the competitor average,
        10 each for title and description in range, minus 2 per gap (max 10).
        """
        compared = [entry for entry in entries if entry.metrics is not None]
        if not compared:
            return 0

        score = 40
        for field in VOLUME_METRICS:
            average = sum(getattr(entry.metrics, field) for entry in compared) / len(compared)
            if getattr(target, field) >= average:
                score += 10
        if _in_range(target.title_length, TITLE_RANGE):
            score += 10
        if _in_range(target.description_length, DESCRIPTION_RANGE):
            score += 10
        score -= min(10, len(gaps) * 2)
        return score

    def _suggest_competitors(self, ctx: AnalysisContext) -> list[str]:
        """Most-linked external domains, excluding social and platform sites."""
        own = (urlparse(ctx.final_url).hostname or "").lower().removeprefix("www.")
        excluded = tuple(ctx.settings.link_check_skip_domains) + PLATFORM_DOMAINS
        counts = Counter()
        for link in ctx.document.external_links:
            if not link.is_http:
                continue
            host = (urlparse(link.href).hostname or "").lower().removeprefix("www.")
            if not host or host == own or host.endswith(f".{own}"):
                continue
            if any(host == domain or host.endswith(f".{domain}") for domain in excluded):
                continue
            counts[host] += 1
        return [domain for domain, _ in counts.most_common(MAX_SUGGESTIONS)]
