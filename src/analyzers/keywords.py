"""Keyword research and keyword tracking."""

import logging
from collections import Counter
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
from engine.parser import (
    ParsedDocument,
    contains_phrase,
    count_phrase,
    extract_keywords,
    find_phrase,
    keyword_counts,
    tokenize,
)
from providers.seo_data import get_autocomplete_suggestions, get_search_volume

logger = logging.getLogger(__name__)

# Frequency multipliers per page region
SOURCE_WEIGHTS = {"title": 3, "description": 2, "headings": 2, "body": 1}

MAX_PRIMARY_KEYWORDS = 10
MAX_LONG_TAIL_KEYWORDS = 10
MAX_RELATED_KEYWORDS = 10
MAX_TRACKED_KEYWORDS = 20

# Registrable suffixes such as co.uk or com.au
SECOND_LEVEL_SUFFIXES = {"co", "com", "org", "net", "ac", "gov", "edu"}


def _page_regions(doc: ParsedDocument) -> dict[str, str]:
    headings = " . ".join(
        text for level in ("h1", "h2", "h3") for text in doc.headings.get(level, [])
    )
    return {
        "title": doc.title or "",
        "description": doc.meta_description or "",
        "headings": headings,
        "body": doc.text,
    }


def _all_headings(doc: ParsedDocument) -> str:
    return " . ".join(text for texts in doc.headings.values() for text in texts)


# =============================================================================
# Keyword research
# =============================================================================


class ResearchKeyword(CamelModel):
    keyword: str
    frequency: int = 0
    prominence: int = 0
    in_title: bool = False
    in_description: bool = False
    in_headings: bool = False
    search_volume: int | None = None
    cpc: float | None = None
    competition: int | None = None


class RelatedKeyword(CamelModel):
    keyword: str
    source: str = "autocomplete"
    relevance: int = 0


class LongTailKeyword(CamelModel):
    keyword: str
    frequency: int = 0
    search_volume: int | None = None


class KeywordResearchDetails(ToolDetails):
    seed_keyword: str | None = None
    primary_keywords: list[ResearchKeyword] = []
    related_keywords: list[RelatedKeyword] = []
    long_tail_keywords: list[LongTailKeyword] = []
    search_volume_source: str | None = None


class KeywordResearchAnalyzer(BaseAnalyzer):
    """
    Suggests keywords from the page's own content.

    Candidates are ranked by weighted frequency across title, description,
    headings and body. Related keywords come from Google Autocomplete and
    search volume from DataForSEO when credentials are configured.
    """

    tool_id = "keyword-researcher"
    details_model = KeywordResearchDetails

    @property
    def name(self) -> str:
        return "Keyword Researcher"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        doc = ctx.document
        regions = _page_regions(doc)
        seed = (ctx.request.seed_keyword or "").strip().lower() or None

        weighted: Counter[str] = Counter()
        for region, text in regions.items():
            for keyword, count in keyword_counts(text).items():
                weighted[keyword] += count * SOURCE_WEIGHTS[region]

        ranked = [keyword for keyword, _ in weighted.most_common()]
        short = [kw for kw in ranked if len(kw.split()) <= 2]
        long_tail = [kw for kw in ranked if len(kw.split()) >= 3][:MAX_LONG_TAIL_KEYWORDS]

        primary_terms = short[:MAX_PRIMARY_KEYWORDS]
        if seed:
            primary_terms = [seed] + [kw for kw in primary_terms if kw != seed]
            primary_terms = primary_terms[:MAX_PRIMARY_KEYWORDS]

        headings_text = _all_headings(doc)
        primary = [
            self._describe(keyword, doc, headings_text, weighted.get(keyword, 0))
            for keyword in primary_terms
        ]

        related = await self._related_keywords(ctx, seed or (primary_terms[0] if primary_terms else ""))

        volumes = await get_search_volume(
            primary_terms + long_tail,
            client=ctx.client,
            settings=ctx.settings,
            timeout=ctx.settings.secondary_fetch_timeout,
        )
        for entry in primary:
            metric = volumes.get(entry.keyword)
            if metric:
                entry.search_volume = metric.search_volume
                entry.cpc = metric.cpc_usd
                entry.competition = metric.competition
        long_tail_entries = [
            LongTailKeyword(
                keyword=keyword,
                frequency=weighted[keyword],
                search_volume=volumes[keyword].search_volume if keyword in volumes else None,
            )
            for keyword in long_tail
        ]

        score, issues, recommendations = self._score(doc, primary, seed, long_tail_entries)
        if not volumes:
            issues.append(
                issue("info", "search_volume_unavailable", "Search volume data is not available")
            )

        return self.build_report(
            ctx,
            score=score,
            issues=issues,
            recommendations=recommendations,
            seed_keyword=seed,
            primary_keywords=primary,
            related_keywords=related,
            long_tail_keywords=long_tail_entries,
            search_volume_source="dataforseo" if volumes else None,
        )

    def _describe(
        self, keyword: str, doc: ParsedDocument, headings_text: str, frequency: int
    ) -> ResearchKeyword:
        entry = ResearchKeyword(
            keyword=keyword,
            frequency=frequency,
            in_title=contains_phrase(doc.title or "", keyword),
            in_description=contains_phrase(doc.meta_description or "", keyword),
            in_headings=contains_phrase(headings_text, keyword),
        )
        entry.prominence = (
            40 * entry.in_title + 25 * entry.in_description + 25 * entry.in_headings
        ) + min(10, count_phrase(doc.words, keyword))
        return entry

    async def _related_keywords(self, ctx: AnalysisContext, seed: str) -> list[RelatedKeyword]:
        if not seed or not ctx.settings.enable_keyword_suggestions:
            return []

        suggestions = await get_autocomplete_suggestions(
            seed, client=ctx.client, timeout=ctx.settings.secondary_fetch_timeout
        )
        seed_words = set(tokenize(seed))
        related = []
        for suggestion in suggestions:
            keyword = suggestion.strip().lower()
            if not keyword or keyword == seed:
                continue
            words = set(tokenize(keyword))
            overlap = len(seed_words & words) / len(seed_words | words) if words else 0
            related.append(RelatedKeyword(keyword=keyword, relevance=round(overlap * 100)))
        return related[:MAX_RELATED_KEYWORDS]

    def _score(
        self,
        doc: ParsedDocument,
        primary: list[ResearchKeyword],
        seed: str | None,
        long_tail: list[LongTailKeyword],
    ) -> tuple[int, list, list[str]]:
        """Reward a page that is focused on its top keyword."""
        issues = []
        recommendations = []

        if not primary:
            issues.append(
                issue("warning", "no_keywords_found", "No meaningful keywords found on the page")
            )
            recommendations.append("Add descriptive text content that targets specific search terms")
            return 0, issues, recommendations

        top = primary[0]
        score = 25
        if top.in_title:
            score += 25
        else:
            issues.append(
                issue("warning", "top_keyword_not_in_title", f'Top keyword "{top.keyword}" is not in the title')
            )
            recommendations.append(f'Include "{top.keyword}" in the page title')

        if top.in_description:
            score += 20
        else:
            issues.append(
                issue(
                    "warning",
                    "top_keyword_not_in_description",
                    f'Top keyword "{top.keyword}" is not in the meta description',
                    "low",
                )
            )
            recommendations.append(f'Mention "{top.keyword}" in the meta description')

        if contains_phrase(" . ".join(doc.h1), top.keyword):
            score += 20
        else:
            issues.append(
                issue("warning", "top_keyword_not_in_h1", f'Top keyword "{top.keyword}" is not in the H1')
            )
            recommendations.append(f'Use "{top.keyword}" in the main H1 heading')

        if seed:
            if find_phrase(doc.words, seed) is not None:
                score += 10
            else:
                issues.append(
                    issue("warning", "seed_not_on_page", f'Seed keyword "{seed}" does not appear on the page')
                )
                recommendations.append(f'Create content that covers "{seed}"')
        elif long_tail:
            score += 10

        if long_tail:
            recommendations.append(
                f'Target long-tail phrases such as "{long_tail[0].keyword}" for easier rankings'
            )
        return score, issues, recommendations


# =============================================================================
# Keyword tracking
# =============================================================================


class TrackedKeyword(CamelModel):
    keyword: str
    rank: int = 0
    prominence: int = 0
    status: str = "absent"
    in_title: bool = False
    in_description: bool = False
    in_h1: bool = False
    in_headings: bool = False
    in_url: bool = False
    occurrences: int = 0
    first_position: int | None = None


class TrackingSummary(CamelModel):
    strong: int = 0
    moderate: int = 0
    weak: int = 0
    absent: int = 0


class KeywordTrackingDetails(ToolDetails):
    tracked_keywords: list[TrackedKeyword] = []
    summary: TrackingSummary = Field(default_factory=TrackingSummary)
    keyword_source: str = "none"


def prominence_status(prominence: int) -> str:
    if prominence >= 70:
        return "strong"
    if prominence >= 40:
        return "moderate"
    if prominence > 0:
        return "weak"
    return "absent"


def domain_keywords(url: str) -> list[str]:
    """Keywords implied by a domain name, e.g. best-coffee.co.uk -> best coffee."""
    host = (urlparse(url).hostname or "").lower()
    labels = [label for label in host.split(".") if label and label != "www"]
    if len(labels) > 1:
        labels = labels[:-1]
    if len(labels) > 1 and labels[-1] in SECOND_LEVEL_SUFFIXES:
        labels = labels[:-1]
    name = labels[-1] if labels else ""
    words = [word for word in name.replace("_", "-").split("-") if word]
    return [" ".join(words)] if words else []


class KeywordTrackingAnalyzer(BaseAnalyzer):
    """Scores how prominently each tracked keyword features on the page."""

    # Prominence points per signal (total 100)
    PROMINENCE = {
        "title": 25,
        "description": 15,
        "h1": 20,
        "headings": 10,
        "url": 10,
        "body": 10,
        "early": 10,
    }

    tool_id = "keyword-tracker"
    details_model = KeywordTrackingDetails

    @property
    def name(self) -> str:
        return "Keyword Tracker"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        doc = ctx.document
        supplied = [kw.strip().lower() for kw in ctx.request.keywords if kw.strip()]

        if supplied:
            keywords, source = list(dict.fromkeys(supplied)), "supplied"
        else:
            keywords = domain_keywords(ctx.final_url)
            keywords += extract_keywords(f"{doc.title or ''} . {' . '.join(doc.h1)}", 3, 5)
            keywords, source = list(dict.fromkeys(keywords)), "derived"
        keywords = keywords[:MAX_TRACKED_KEYWORDS]

        tracked = [self._track(keyword, ctx) for keyword in keywords]
        tracked.sort(key=lambda entry: entry.prominence, reverse=True)
        for position, entry in enumerate(tracked, start=1):
            entry.rank = position

        summary = TrackingSummary()
        for entry in tracked:
            setattr(summary, entry.status, getattr(summary, entry.status) + 1)

        issues = []
        recommendations = []
        for entry in tracked:
            if entry.status == "absent":
                issues.append(
                    issue("warning", "keyword_absent", f'Keyword "{entry.keyword}" does not appear on the page')
                )
                recommendations.append(f'Add content targeting "{entry.keyword}"')
            elif entry.status == "weak":
                issues.append(
                    issue("info", "keyword_weak", f'Keyword "{entry.keyword}" has weak prominence ({entry.prominence})')
                )
                if not entry.in_title:
                    recommendations.append(f'Move "{entry.keyword}" into the title or H1 to strengthen it')

        if not tracked:
            issues.append(issue("info", "no_keywords_tracked", "No keywords to track"))
            recommendations.append("Supply target keywords to track their on-page prominence")
        elif source == "derived":
            recommendations.append("Supply your own target keywords for more precise tracking")

        score = sum(entry.prominence for entry in tracked) / len(tracked) if tracked else 0
        logger.debug(f"Tracked {len(tracked)} keywords on {ctx.url}")

        return self.build_report(
            ctx,
            score=score,
            issues=issues,
            recommendations=recommendations,
            tracked_keywords=tracked,
            summary=summary,
            keyword_source=source,
        )

    def _track(self, keyword: str, ctx: AnalysisContext) -> TrackedKeyword:
        doc = ctx.document
        url_words = tokenize(urlparse(ctx.final_url).path.replace("/", " ").replace("-", " "))
        url_words += tokenize((urlparse(ctx.final_url).hostname or "").replace(".", " ").replace("-", " "))
        occurrences = count_phrase(doc.words, keyword)
        first = find_phrase(doc.words, keyword)

        entry = TrackedKeyword(
            keyword=keyword,
            in_title=contains_phrase(doc.title or "", keyword),
            in_description=contains_phrase(doc.meta_description or "", keyword),
            in_h1=contains_phrase(" . ".join(doc.h1), keyword),
            in_headings=contains_phrase(_all_headings(doc), keyword),
            in_url=find_phrase(url_words, keyword) is not None,
            occurrences=occurrences,
            first_position=first,
        )

        points = self.PROMINENCE
        prominence = (
            points["title"] * entry.in_title
            + points["description"] * entry.in_description
            + points["h1"] * entry.in_h1
            + points["headings"] * (entry.in_headings and not entry.in_h1)
            + points["url"] * entry.in_url
            + min(points["body"], occurrences * 2)
        )
        if first is not None and doc.words:
            position = first / len(doc.words)
            if position <= 0.1:
                prominence += points["early"]
            elif position <= 0.25:
                prominence += points["early"] // 2

        entry.prominence = min(100, prominence)
        entry.status = prominence_status(entry.prominence)
        return entry
