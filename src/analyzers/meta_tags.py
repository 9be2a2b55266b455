"""Meta tag analysis."""

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

logger = logging.getLogger(__name__)

TITLE_MIN, TITLE_MAX = 30, 60
DESCRIPTION_MIN, DESCRIPTION_MAX = 50, 160


class MetaBlock(CamelModel):
    content: str = ""
    length: int | None = None
    status: str = "error"
    verdict: str = "unavailable"
    recommendation: str = ""


class OpenGraphBlock(MetaBlock):
    title: str = ""
    description: str = ""
    image: str = ""
    url: str = ""


class TwitterBlock(MetaBlock):
    card: str = ""
    title: str = ""
    description: str = ""
    image: str = ""


class HreflangBlock(MetaBlock):
    alternates: list[dict[str, str]] = []


class MetaTagDetails(ToolDetails):
    title: MetaBlock = Field(default_factory=MetaBlock)
    description: MetaBlock = Field(default_factory=MetaBlock)
    keywords: MetaBlock = Field(default_factory=MetaBlock)
    viewport: MetaBlock = Field(default_factory=MetaBlock)
    robots: MetaBlock = Field(default_factory=MetaBlock)
    open_graph: OpenGraphBlock = Field(default_factory=OpenGraphBlock)
    twitter: TwitterBlock = Field(default_factory=TwitterBlock)
    canonical: MetaBlock = Field(default_factory=MetaBlock)
    hreflang: HreflangBlock = Field(default_factory=HreflangBlock)


class MetaTagAnalyzer(BaseAnalyzer):
    """
    Checks the head metadata search engines and social networks read.

    Checks:
    - Title and meta description (presence, length)
    - Meta keywords (discouraged)
    - Viewport and robots directives
    - Open Graph / Twitter Card completeness
    - Canonical link and hreflang alternates
    """

    tool_id = "meta-tag-analyzer"
    details_model = MetaTagDetails

    @property
    def name(self) -> str:
        return "Meta Tag Analyzer"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        doc = ctx.document
        checks = {
            "title": self._check_title(doc.title or ""),
            "description": self._check_description(doc.meta_description or ""),
            "keywords": self._check_keywords(doc.meta_keywords or ""),
            "viewport": self._check_viewport(doc.meta_viewport or ""),
            "robots": self._check_robots(
                doc.meta_robots or "", ctx.page.headers.get("x-robots-tag", "")
            ),
            "open_graph": self._check_open_graph(doc.open_graph, ctx.final_url),
            "twitter": self._check_twitter(doc.twitter),
            "canonical": self._check_canonical(doc.canonical or ""),
            "hreflang": self._check_hreflang(doc.hreflang),
        }

        score = 100 - sum(check["deduction"] for check in checks.values())
        logger.debug(f"Meta tag deductions for {ctx.url}: {100 - score}")
        issues = [found for check in checks.values() for found in check["issues"]]
        recommendations = [
            check["block"].recommendation
            for check in checks.values()
            if check["issues"] and check["block"].recommendation
        ]
        if not recommendations:
            recommendations.append("Meta tags are well configured - keep them in sync with page content")

        return self.build_report(
            ctx,
            score=score,
            issues=issues,
            recommendations=recommendations,
            **{name: check["block"] for name, check in checks.items()},
        )

    def _check_title(self, title: str) -> dict:
        """Check title tag."""
        length = len(title)
        result = {"deduction": 0, "issues": []}

        if length == 0:
            block = MetaBlock(
                content="",
                length=0,
                status="error",
                verdict="missing",
                recommendation="Add a unique, descriptive <title> tag - it is critical for SEO",
            )
            result["issues"].append(issue("error", "title_missing", "Missing title tag"))
            result["deduction"] = 20
        elif length < TITLE_MIN:
            block = MetaBlock(
                content=title,
                length=length,
                status="warning",
                verdict="too_short",
                recommendation=f"Lengthen the title to {TITLE_MIN}-{TITLE_MAX} characters with descriptive keywords",
            )
            result["issues"].append(
                issue("warning", "title_too_short", f"Title too short ({length} chars, recommend {TITLE_MIN}-{TITLE_MAX})")
            )
            result["deduction"] = 5
        elif length > TITLE_MAX:
            block = MetaBlock(
                content=title,
                length=length,
                status="warning",
                verdict="too_long",
                recommendation=f"Shorten the title to at most {TITLE_MAX} characters so it is not truncated in results",
            )
            result["issues"].append(
                issue("warning", "title_too_long", f"Title too long ({length} chars, recommend {TITLE_MIN}-{TITLE_MAX})")
            )
            result["deduction"] = 5
        else:
            block = MetaBlock(
                content=title,
                length=length,
                status="good",
                verdict="optimal",
                recommendation="Title length is optimal for SEO",
            )

        result["block"] = block
        return result

    def _check_description(self, description: str) -> dict:
        """Check meta description."""
        length = len(description)
        result = {"deduction": 0, "issues": []}

        if length == 0:
            block = MetaBlock(
                length=0,
                status="error",
                verdict="missing",
                recommendation="Write a meta description that summarises the page in 120-160 characters",
            )
            result["issues"].append(issue("error", "description_missing", "Missing meta description"))
            result["deduction"] = 15
        elif length < DESCRIPTION_MIN:
            block = MetaBlock(
                content=description,
                length=length,
                status="warning",
                verdict="too_short",
                recommendation="Expand the meta description so it fully describes the page",
            )
            result["issues"].append(
                issue("warning", "description_too_short", f"Meta description too short ({length} chars)", "low")
            )
            result["deduction"] = 3
        elif length > DESCRIPTION_MAX:
            block = MetaBlock(
                content=description,
                length=length,
                status="warning",
                verdict="too_long",
                recommendation=f"Trim the meta description to {DESCRIPTION_MAX} characters or fewer",
            )
            result["issues"].append(
                issue("warning", "description_too_long", f"Meta description too long ({length} chars)", "low")
            )
            result["deduction"] = 3
        else:
            block = MetaBlock(
                content=description,
                length=length,
                status="good",
                verdict="optimal",
                recommendation="Description length is within optimal range",
            )

        result["block"] = block
        return result

    def _check_keywords(self, keywords: str) -> dict:
        """Meta keywords are ignored by search engines and leak targeting to competitors."""
        if keywords:
            return {
                "block": MetaBlock(
                    content=keywords,
                    status="warning",
                    verdict="present",
                    recommendation="Remove the meta keywords tag - search engines ignore it",
                ),
                "deduction": 2,
                "issues": [issue("warning", "meta_keywords_present", "Meta keywords tag present", "low")],
            }
        return {
            "block": MetaBlock(status="good", verdict="absent", recommendation="Meta keywords are not needed"),
            "deduction": 0,
            "issues": [],
        }

    def _check_viewport(self, viewport: str) -> dict:
        normalized = viewport.replace(" ", "").lower()
        if not viewport:
            return {
                "block": MetaBlock(
                    status="error",
                    verdict="missing",
                    recommendation='Add <meta name="viewport" content="width=device-width, initial-scale=1">',
                ),
                "deduction": 15,
                "issues": [issue("error", "viewport_missing", "Missing viewport meta tag")],
            }
        if "width=device-width" not in normalized:
            return {
                "block": MetaBlock(
                    content=viewport,
                    status="warning",
                    verdict="misconfigured",
                    recommendation="Viewport meta tag should include width=device-width",
                ),
                "deduction": 5,
                "issues": [issue("warning", "viewport_misconfigured", "Viewport not set to width=device-width")],
            }
        return {
            "block": MetaBlock(
                content=viewport,
                status="good",
                verdict="configured",
                recommendation="Viewport meta tag is properly configured for mobile",
            ),
            "deduction": 0,
            "issues": [],
        }

    def _check_robots(self, robots: str, x_robots_tag: str) -> dict:
        """Check robots meta tag and X-Robots-Tag header."""
        directives = f"{robots} {x_robots_tag}".lower()
        content = robots or "index, follow"

        if "noindex" in directives:
            return {
                "block": MetaBlock(
                    content=content,
                    status="warning",
                    verdict="noindex",
                    recommendation="Robots directives prevent indexing - remove noindex unless intentional",
                ),
                "deduction": 10,
                "issues": [issue("warning", "robots_noindex", "Page is set to noindex")],
            }

        result = {
            "block": MetaBlock(
                content=content,
                status="good",
                verdict="indexable",
                recommendation="Robots directives allow indexing",
            ),
            "deduction": 0,
            "issues": [],
        }
        if "nofollow" in directives:
            result["issues"].append(issue("info", "robots_nofollow", "Page is set to nofollow"))
        return result

    def _check_open_graph(self, og: dict, page_url: str) -> dict:
        block = OpenGraphBlock(
            title=og.get("og:title", ""),
            description=og.get("og:description", ""),
            image=og.get("og:image", ""),
            url=og.get("og:url", "") or page_url,
            content=og.get("og:title", ""),
        )
        missing = [tag for tag in ("og:title", "og:description", "og:image") if not og.get(tag)]

        if not og.get("og:title") or not og.get("og:description"):
            block.status = "warning"
            block.verdict = "incomplete" if og else "missing"
            block.recommendation = f"Add Open Graph tags for social sharing: {', '.join(missing)}"
            return {
                "block": block,
                "deduction": 3,
                "issues": [issue("warning", "open_graph_incomplete", f"Missing Open Graph tags: {', '.join(missing)}", "low")],
            }

        block.status = "good"
        block.verdict = "complete"
        block.recommendation = "Open Graph tags are properly configured for social sharing"
        result = {"block": block, "deduction": 0, "issues": []}
        if missing:
            result["issues"].append(issue("info", "open_graph_image_missing", "Open Graph image is missing"))
        return result

    def _check_twitter(self, twitter: dict) -> dict:
        block = TwitterBlock(
            card=twitter.get("twitter:card", ""),
            title=twitter.get("twitter:title", ""),
            description=twitter.get("twitter:description", ""),
            image=twitter.get("twitter:image", ""),
            content=twitter.get("twitter:card", ""),
        )

        if not block.card:
            block.status = "warning"
            block.verdict = "missing"
            block.recommendation = "Add Twitter Card tags (twitter:card, twitter:title, twitter:description)"
            return {
                "block": block,
                "deduction": 0,
                "issues": [issue("info", "twitter_card_missing", "No Twitter Card tags found")],
            }

        if not block.title or not block.description:
            block.status = "warning"
            block.verdict = "incomplete"
            block.recommendation = "Twitter Card is configured but missing title or description"
            return {
                "block": block,
                "deduction": 2,
                "issues": [issue("warning", "twitter_card_incomplete", "Incomplete Twitter Card tags", "low")],
            }

        block.status = "good"
        block.verdict = "complete"
        block.recommendation = "Twitter Card tags are properly configured"
        return {"block": block, "deduction": 0, "issues": []}

    def _check_canonical(self, canonical: str) -> dict:
        if not canonical:
            return {
                "block": MetaBlock(
                    status="warning",
                    verdict="missing",
                    recommendation="Add a canonical URL to prevent duplicate content issues",
                ),
                "deduction": 5,
                "issues": [issue("warning", "canonical_missing", "Missing canonical URL")],
            }
        return {
            "block": MetaBlock(
                content=canonical,
                status="good",
                verdict="present",
                recommendation="Canonical URL is set",
            ),
            "deduction": 0,
            "issues": [],
        }

    def _check_hreflang(self, alternates: list[dict]) -> dict:
        # Optional, never penalised
        block = HreflangBlock(
            content=", ".join(alt["lang"] for alt in alternates),
            alternates=alternates,
            status="good",
            verdict="present" if alternates else "absent",
            recommendation=(
                "Hreflang alternates are configured for language targeting"
                if alternates
                else "Add hreflang alternates if the site serves multiple languages"
            ),
        )
        result = {"block": block, "deduction": 0, "issues": []}
        langs = [alt["lang"].lower() for alt in alternates]
        if alternates and "x-default" not in langs:
            result["issues"].append(issue("info", "hreflang_no_default", "Hreflang set has no x-default entry"))
        return result


