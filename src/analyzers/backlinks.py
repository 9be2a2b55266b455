"""Backlink profile analysis."""

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
from providers import BacklinkRecord, get_backlink_provider

logger = logging.getLogger(__name__)

MAX_BACKLINKS = 100
TOP_DOMAINS = 10

# Quality tiers on a 0-100 domain rank
HIGH_QUALITY_RANK = 70
MEDIUM_QUALITY_RANK = 40
TOXIC_SPAM_SCORE = 50
LOW_SPAM_SCORE = 20


class Backlink(CamelModel):
    url: str
    domain: str
    anchor_text: str = ""
    link_type: str = "dofollow"  # dofollow, nofollow, ugc or sponsored
    domain_authority: float = 0.0
    spam_score: float = 0.0
    quality: str = "low"  # high, medium, low or toxic
    first_seen: str | None = None


class ReferringDomain(CamelModel):
    domain: str
    backlinks: int
    domain_authority: float


class OutboundProfile(CamelModel):
    total: int = 0
    internal: int = 0
    external: int = 0
    dofollow: int = 0
    nofollow: int = 0
    unique_domains: int = 0


class BacklinkDetails(ToolDetails):
    source: str | None = None
    total_backlinks: int = 0
    referring_domains: int = 0
    average_domain_authority: float = 0.0
    link_types: dict[str, int] = Field(
        default_factory=lambda: {"dofollow": 0, "nofollow": 0, "ugc": 0, "sponsored": 0}
    )
    quality_distribution: dict[str, int] = Field(
        default_factory=lambda: {"high": 0, "medium": 0, "low": 0, "toxic": 0}
    )
    backlinks: list[Backlink] = []
    top_referring_domains: list[ReferringDomain] = []
    outbound_links: OutboundProfile = Field(default_factory=OutboundProfile)


def link_type(rel: list[str]) -> str:
    """Classify a link by its rel attribute values."""
    values = {value.lower() for value in rel}
    if "sponsored" in values:
        return "sponsored"
    if "ugc" in values:
        return "ugc"
    if "nofollow" in values:
        return "nofollow"
    return "dofollow"


def link_quality(domain_rank: float, spam_score: float) -> str:
    if spam_score > TOXIC_SPAM_SCORE:
        return "toxic"
    if domain_rank >= HIGH_QUALITY_RANK:
        return "high"
    if domain_rank >= MEDIUM_QUALITY_RANK:
        return "medium"
    return "low"


class BacklinkAnalyzer(BaseAnalyzer):
    """
    Scores the site's inbound link profile.

    Backlink data comes from an external provider. Without one the report
    says so instead of inventing links; the page's own outbound profile is
    still returned.
    """

    tool_id = "backlink-scanner"
    details_model = BacklinkDetails

    @property
    def name(self) -> str:
        return "Backlink Scanner"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        outbound = self._outbound_profile(ctx)
        provider = get_backlink_provider(ctx.settings, ctx.client)

        if provider is None:
            return self.build_report(
                ctx,
                score=0,
                issues=[
                    issue(
                        "info",
                        "backlink_source_unavailable",
                        "No backlink data source is configured, so inbound links could not be checked",
                    )
                ],
                recommendations=[
                    "Connect a backlink data provider to see your inbound link profile",
                    "Create linkable assets like guides, studies and tools",
                ],
                outbound_links=outbound,
            )

        records = await provider.get_backlinks(ctx.final_url, limit=MAX_BACKLINKS)
        backlinks = [self._classify(record) for record in records]

        details = self._summarise(backlinks)
        score = self._score(backlinks, details["average_domain_authority"])
        issues, recommendations = self._findings(backlinks, details)

        logger.info(
            f"Backlinks for {ctx.final_url}: {len(backlinks)} links from "
            f"{details['referring_domains']} domains, score {score}"
        )

        return self.build_report(
            ctx,
            score=score,
            issues=issues,
            recommendations=recommendations,
            source=provider.name,
            backlinks=backlinks,
            outbound_links=outbound,
            **details,
        )

    def _classify(self, record: BacklinkRecord) -> Backlink:
        return Backlink(
            url=record.source_url,
            domain=record.domain,
            anchor_text=record.anchor_text,
            link_type=link_type(record.rel),
            domain_authority=round(record.domain_rank, 1),
            spam_score=round(record.spam_score, 1),
            quality=link_quality(record.domain_rank, record.spam_score),
            first_seen=record.first_seen,
        )

    def _summarise(self, backlinks: list[Backlink]) -> dict:
        per_domain = Counter(link.domain for link in backlinks)
        authority = {}
        for link in backlinks:
            authority[link.domain] = max(authority.get(link.domain, 0.0), link.domain_authority)

        top_domains = sorted(
            (
                ReferringDomain(domain=domain, backlinks=count, domain_authority=authority[domain])
                for domain, count in per_domain.items()
            ),
            key=lambda item: (item.domain_authority, item.backlinks),
            reverse=True,
        )[:TOP_DOMAINS]

        link_types = {"dofollow": 0, "nofollow": 0, "ugc": 0, "sponsored": 0}
        quality = {"high": 0, "medium": 0, "low": 0, "toxic": 0}
        for link in backlinks:
            link_types[link.link_type] += 1
            quality[link.quality] += 1

        average = 0.0
        if backlinks:
            average = round(sum(link.domain_authority for link in backlinks) / len(backlinks), 1)

        return {
            "total_backlinks": len(backlinks),
            "referring_domains": len(per_domain),
            "average_domain_authority": average,
            "link_types": link_types,
            "quality_distribution": quality,
            "top_referring_domains": top_domains,
        }

    def _score(self, backlinks: list[Backlink], average_authority: float) -> int:
        """Quantity, authority, high-quality share, low spam and follow ratio."""
        dofollow = sum(1 for link in backlinks if link.link_type == "dofollow")
        high_quality = sum(1 for link in backlinks if link.domain_authority >= HIGH_QUALITY_RANK)
        low_spam = sum(1 for link in backlinks if link.spam_score <= LOW_SPAM_SCORE)

        score = 0.0
        score += min(30, len(backlinks) * 2)
        score += min(40, average_authority * 0.4)
        score += min(15, high_quality * 3)
        score += min(10, low_spam * 2)
        score += 5 if dofollow > len(backlinks) - dofollow else 0
        return round(score)

    def _findings(self, backlinks: list[Backlink], details: dict) -> tuple[list, list[str]]:
        issues = []
        recommendations = []

        if not backlinks:
            issues.append(issue("warning", "no_backlinks", "No backlinks were found for this site"))
            recommendations.extend(
                [
                    "Start with directory submissions and industry listings",
                    "Create shareable content to attract natural backlinks",
                ]
            )
            return issues, recommendations

        average = details["average_domain_authority"]
        types = details["link_types"]
        nofollow = len(backlinks) - types["dofollow"]
        toxic = details["quality_distribution"]["toxic"]
        high = details["quality_distribution"]["high"]

        recommendations.append(
            f"Found {len(backlinks)} backlinks from {details['referring_domains']} referring domains"
        )

        if average < 50:
            issues.append(
                issue(
                    "warning",
                    "low_domain_authority",
                    f"Average referring domain authority is low ({average}/100)",
                    "low",
                )
            )
            recommendations.append("Focus on acquiring backlinks from higher authority domains (DA 50+)")

        if high < len(backlinks) * 0.3:
            recommendations.append("Aim for more high-quality backlinks (DA 70+) to improve link profile")

        if types["dofollow"] < nofollow:
            issues.append(
                issue(
                    "info",
                    "mostly_nofollow",
                    f"Only {types['dofollow']} of {len(backlinks)} backlinks pass link equity",
                )
            )
            recommendations.append("Work on getting more dofollow links for better SEO value")

        if toxic:
            issues.append(
                issue("warning", "toxic_backlinks", f"{toxic} backlinks have a high spam score", "high")
            )
            recommendations.append(f"Consider disavowing {toxic} potentially spammy backlinks")

        recommendations.append("Use diverse anchor text to maintain a natural link profile")
        return issues, recommendations

    def _outbound_profile(self, ctx: AnalysisContext) -> OutboundProfile:
        links = [link for link in ctx.document.links if link.is_http]
        external = [link for link in links if not link.is_internal]
        nofollow = sum(1 for link in links if link_type(link.rel) != "dofollow")
        domains = {(urlparse(link.href).hostname or "").lower() for link in external}
        domains.discard("")
        return OutboundProfile(
            total=len(links),
            internal=len(links) - len(external),
            external=len(external),
            dofollow=len(links) - nofollow,
            nofollow=nofollow,
            unique_domains=len(domains),
        )
