"""Keyword density analysis."""

import logging

from analyzers.base import (
    AnalysisContext,
    AnalysisReport,
    BaseAnalyzer,
    CamelModel,
    ToolDetails,
    issue,
)
from engine.parser import count_phrase, extract_keywords

logger = logging.getLogger(__name__)

# Density thresholds (percent of total words)
STUFFING_DENSITY = 5.0
HIGH_DENSITY = 3.0
LOW_DENSITY = 0.5


class KeywordDensityEntry(CamelModel):
    keyword: str
    count: int = 0
    density: float = 0.0
    status: str = "good"
    verdict: str = "optimal"


class KeywordDensityDetails(ToolDetails):
    total_words: int = 0
    keywords: list[KeywordDensityEntry] = []
    keyword_source: str = "none"  # "supplied", "extracted" or "none"


class KeywordDensityAnalyzer(BaseAnalyzer):
    """Measures how often target keywords appear relative to the page's word count."""

    tool_id = "keyword-density-checker"
    details_model = KeywordDensityDetails

    @property
    def name(self) -> str:
        return "Keyword Density Checker"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        words = ctx.document.words
        total_words = len(words)
        supplied = [kw.strip().lower() for kw in ctx.request.keywords if kw.strip()]

        if total_words == 0:
            return self.build_report(
                ctx,
                score=0,
                issues=[issue("error", "no_content", "No readable text content found on the page")],
                recommendations=["Add indexable text content - search engines cannot rank an empty page"],
                total_words=0,
                keyword_source="supplied" if supplied else "none",
            )

        if supplied:
            keywords, source = list(dict.fromkeys(supplied)), "supplied"
        else:
            keywords, source = extract_keywords(ctx.document.text, 3, 20), "extracted"

        score = 100
        issues = []
        recommendations = []
        entries = []

        for keyword in keywords:
            count = count_phrase(words, keyword)
            density = round(count / total_words * 100, 2)
            entry = KeywordDensityEntry(keyword=keyword, count=count, density=density)

            if count == 0 and source == "extracted":
                continue
            if count == 0:
                entry.status, entry.verdict = "warning", "absent"
                issues.append(issue("warning", "keyword_absent", f'Keyword "{keyword}" does not appear on the page'))
                recommendations.append(f'Work "{keyword}" into the title, headings and body copy')
                score -= 10
            elif density > STUFFING_DENSITY:
                entry.status, entry.verdict = "error", "stuffing"
                issues.append(
                    issue("error", "keyword_stuffing", f'Keyword "{keyword}" density is {density}% - risk of keyword stuffing')
                )
                recommendations.append(f'Reduce usage of "{keyword}" and use natural variations instead')
                score -= 15
            elif density > HIGH_DENSITY:
                entry.status, entry.verdict = "warning", "high"
                issues.append(issue("warning", "keyword_density_high", f'Keyword "{keyword}" density is high ({density}%)'))
                recommendations.append(f'Consider reducing usage of "{keyword}"')
                score -= 8
            elif density < LOW_DENSITY:
                entry.status, entry.verdict = "warning", "low"
                issues.append(
                    issue("warning", "keyword_density_low", f'Keyword "{keyword}" has low density ({density}%)', "low")
                )
                recommendations.append(f'Consider using "{keyword}" more often if it is a target term')
                score -= 3

            entries.append(entry)

        entries.sort(key=lambda entry: entry.density, reverse=True)

        if not keywords:
            issues.append(issue("info", "no_keywords_found", "No meaningful keywords could be extracted"))
        if not recommendations:
            recommendations.append("Keyword density is within optimal range (0.5-3%)")
        if source == "extracted":
            recommendations.append("Specify target keywords for a more focused analysis")

        logger.debug(f"Keyword density for {ctx.url}: {len(entries)} keywords over {total_words} words")

        return self.build_report(
            ctx,
            score=score,
            issues=issues,
            recommendations=recommendations,
            total_words=total_words,
            keywords=entries,
            keyword_source=source,
        )
