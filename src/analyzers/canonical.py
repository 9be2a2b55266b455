"""Canonical URL checker."""

import logging

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

SHORT_TITLE = 30
SHORT_DESCRIPTION = 120


class DuplicateContentSignal(CamelModel):
    url: str
    similarity: int
    issue: str


class CanonicalDetails(ToolDetails):
    canonical_url: str = ""
    status: str = "error"  # good, warning or error
    verdict: str = "missing"  # missing, self-referential or mismatch
    canonical_tags: int = 0
    is_relative: bool = False
    fetched_url: str = ""
    duplicate_content: list[DuplicateContentSignal] = []


class CanonicalAnalyzer(BaseAnalyzer):
    """
    Compares the page's canonical link with the URL that was fetched.

    A canonical matching either the requested or the final (post-redirect)
    URL is self-referential. Anything else is a single mismatch.
    """

    tool_id = "canonical-checker"
    details_model = CanonicalDetails

    @property
    def name(self) -> str:
        return "Canonical URL Checker"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        document = ctx.document
        issues = []
        recommendations = []
        score = 100

        raw = (document.canonical or "").strip()
        resolved = document.canonical_url or ""
        is_relative = bool(raw) and not raw.lower().startswith(("http://", "https://"))

        if not resolved:
            verdict, status = "missing", "error"
            score -= 40
            issues.append(issue("warning", "canonical_missing", "No canonical URL is declared"))
            recommendations.append("Add a self-referencing <link rel=\"canonical\"> to prevent duplicate content issues")
        else:
            candidates = {canonicalize_url(ctx.url), canonicalize_url(ctx.final_url)}
            if canonicalize_url(resolved) in candidates:
                verdict, status = "self-referential", "good"
            else:
                verdict, status = "mismatch", "warning"
                score -= 30
                issues.append(
                    issue(
                        "warning",
                        "canonical_mismatch",
                        f"Canonical URL ({resolved}) points to a different page than {ctx.final_url}",
                    )
                )
                recommendations.append(
                    "Confirm the canonical target is intentional; otherwise point it at this page"
                )

        if document.canonical_count > 1:
            score -= 20
            status = "error"
            issues.append(
                issue(
                    "error",
                    "canonical_multiple",
                    f"{document.canonical_count} canonical tags found; search engines may ignore all of them",
                )
            )
            recommendations.append("Keep exactly one canonical tag per page")

        if is_relative:
            score -= 10
            issues.append(
                issue("warning", "canonical_relative", f"Canonical href is relative ({raw})", "low")
            )
            recommendations.append("Use an absolute URL in the canonical tag")

        duplicate_signals = self._duplicate_signals(ctx)
        if duplicate_signals:
            score -= 5 * len(duplicate_signals)
            issues.append(
                issue(
                    "info",
                    "duplicate_content_risk",
                    "Short or generic title/description increases the risk of duplicate content",
                )
            )
            recommendations.append("Write a unique title and meta description for this page")

        if not recommendations:
            recommendations.append("Canonical URL is properly configured")

        logger.debug(f"Canonical for {ctx.final_url}: {verdict} ({resolved or 'none'})")

        return self.build_report(
            ctx,
            score=score,
            issues=issues,
            recommendations=recommendations,
            canonical_url=resolved,
            status=status,
            verdict=verdict,
            canonical_tags=document.canonical_count,
            is_relative=is_relative,
            fetched_url=ctx.final_url,
            duplicate_content=duplicate_signals,
        )

    def _duplicate_signals(self, ctx: AnalysisContext) -> list[DuplicateContentSignal]:
        signals = []
        title = ctx.document.title or ""
        description = ctx.document.meta_description or ""
        if len(title) < SHORT_TITLE:
            signals.append(
                DuplicateContentSignal(url=ctx.final_url, similarity=85, issue="Short or generic title")
            )
        if len(description) < SHORT_DESCRIPTION:
            signals.append(
                DuplicateContentSignal(
                    url=ctx.final_url, similarity=75, issue="Short or generic meta description"
                )
            )
        return signals
