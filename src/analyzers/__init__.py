"""Beacon analyzers package."""

from analyzers.alt_text import AltTextAnalyzer
from analyzers.backlinks import BacklinkAnalyzer
from analyzers.base import AnalysisContext, AnalysisReport, AnalysisRequest, BaseAnalyzer
from analyzers.broken_links import BrokenLinkAnalyzer
from analyzers.canonical import CanonicalAnalyzer
from analyzers.competitors import CompetitorAnalyzer
from analyzers.keyword_density import KeywordDensityAnalyzer
from analyzers.keywords import KeywordResearchAnalyzer, KeywordTrackingAnalyzer
from analyzers.meta_tags import MetaTagAnalyzer
from analyzers.mobile import MobileAnalyzer
from analyzers.page_speed import PageSpeedAnalyzer
from analyzers.schema import SchemaAnalyzer
from analyzers.sitemap_robots import SitemapRobotsAnalyzer
from analyzers.technical import TechnicalSEOAnalyzer

# The dashboard's tool catalog, in display order
REGISTRY: dict[str, BaseAnalyzer] = {
    analyzer.tool_id: analyzer
    for analyzer in (
        MetaTagAnalyzer(),
        KeywordDensityAnalyzer(),
        BrokenLinkAnalyzer(),
        PageSpeedAnalyzer(),
        MobileAnalyzer(),
        KeywordResearchAnalyzer(),
        KeywordTrackingAnalyzer(),
        SitemapRobotsAnalyzer(),
        BacklinkAnalyzer(),
        CompetitorAnalyzer(),
        TechnicalSEOAnalyzer(),
        SchemaAnalyzer(),
        AltTextAnalyzer(),
        CanonicalAnalyzer(),
    )
}

# Older tool ids still sent by some dashboard screens
ALIASES: dict[str, str] = {
    "keyword-research": "keyword-researcher",
    "mobile-friendly-checker": "mobile-checker",
    "backlink-analyzer": "backlink-scanner",
}

CATALOG_SIZE = 14


def resolve_tool_id(tool_id: str) -> str | None:
    """Registry key for a tool id or alias, or None if unknown."""
    key = (tool_id or "").strip().lower()
    key = ALIASES.get(key, key)
    return key if key in REGISTRY else None


def get_analyzer(tool_id: str) -> BaseAnalyzer | None:
    key = resolve_tool_id(tool_id)
    return REGISTRY[key] if key else None


def validate_registry() -> None:
    """
    Check every catalog entry has a usable implementation.

    Called once at startup so a broken catalog fails fast instead of on
    the first request for that tool.

    Raises:
        RuntimeError: if an entry is missing, misnamed or has an unusable
            details model.
    """
    problems = []
    if len(REGISTRY) != CATALOG_SIZE:
        problems.append(f"expected {CATALOG_SIZE} analyzers, found {len(REGISTRY)}")

    for tool_id, analyzer in REGISTRY.items():
        if analyzer.tool_id != tool_id:
            problems.append(f"{tool_id}: registered under the wrong id ({analyzer.tool_id})")
        if not analyzer.name:
            problems.append(f"{tool_id}: missing display name")
        try:
            analyzer.empty_details()
        except Exception as e:
            problems.append(f"{tool_id}: details model has no zero-value shape ({e})")

    for alias, target in ALIASES.items():
        if target not in REGISTRY:
            problems.append(f"alias {alias} points to unknown tool {target}")

    if problems:
        raise RuntimeError("Invalid analyzer registry: " + "; ".join(problems))


def tool_catalog() -> list[dict[str, str]]:
    return [{"toolId": tool_id, "name": analyzer.name} for tool_id, analyzer in REGISTRY.items()]


__all__ = [
    "ALIASES",
    "REGISTRY",
    "AnalysisContext",
    "AnalysisReport",
    "AnalysisRequest",
    "BaseAnalyzer",
    "get_analyzer",
    "resolve_tool_id",
    "tool_catalog",
    "validate_registry",
]
