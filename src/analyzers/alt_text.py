"""Image alt text coverage."""

import logging
import re

from analyzers.base import (
    AnalysisContext,
    AnalysisReport,
    BaseAnalyzer,
    CamelModel,
    ToolDetails,
    issue,
)
from engine.parser import ImageInfo

logger = logging.getLogger(__name__)

MIN_ALT_LENGTH = 5
MAX_ALT_LENGTH = 125
MAX_REPORTED_IMAGES = 50

FILENAME_RE = re.compile(
    r"(\.(jpe?g|png|gif|webp|svg|avif|bmp)$)|(^(img|image|dsc|photo|pic|screenshot)[-_ ]?\d+)",
    re.IGNORECASE,
)
GENERIC_ALT = {
    "image",
    "img",
    "photo",
    "picture",
    "pic",
    "graphic",
    "logo",
    "icon",
    "banner",
    "untitled",
    "placeholder",
    "alt",
}


class ImageIssue(CamelModel):
    src: str
    alt: str = ""
    issue: str
    severity: str


class AltTextDetails(ToolDetails):
    total_images: int = 0
    images_with_alt: int = 0
    images_without_alt: int = 0
    images_with_poor_alt: int = 0
    alt_text_coverage: float = 100.0
    image_issues: list[ImageIssue] = []


def alt_problem(alt: str) -> str | None:
    """Describe what is wrong with a non-empty alt text, or None if it looks fine."""
    text = alt.strip()
    if FILENAME_RE.search(text):
        return "Alt text looks like a file name"
    if text.lower() in GENERIC_ALT:
        return "Alt text is generic"
    if len(text) < MIN_ALT_LENGTH:
        return "Alt text too short"
    if len(text) > MAX_ALT_LENGTH:
        return "Alt text too long"
    return None


class AltTextAnalyzer(BaseAnalyzer):
    """Share of images with a non-empty alt attribute, plus alt text quality."""

    tool_id = "alt-text-checker"
    details_model = AltTextDetails

    @property
    def name(self) -> str:
        return "Alt Text Checker"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        images: list[ImageInfo] = ctx.document.images
        total = len(images)

        if total == 0:
            return self.build_report(
                ctx,
                score=100,
                issues=[issue("info", "no_images", "No images found on the page")],
                recommendations=["No images to check - remember alt text when adding images"],
            )

        missing = []
        poor = []
        image_issues = []
        for image in images:
            alt = (image.alt or "").strip()
            if not alt:
                missing.append(image)
                image_issues.append(
                    ImageIssue(src=image.src, alt="", issue="Missing alt text", severity="high")
                )
                continue
            problem = alt_problem(alt)
            if problem:
                poor.append(image)
                image_issues.append(
                    ImageIssue(src=image.src, alt=alt, issue=problem, severity="medium")
                )

        with_alt = total - len(missing)
        coverage = round(with_alt / total * 100, 1)
        good = with_alt - len(poor)
        score = round((good + 0.5 * len(poor)) / total * 100)

        issues = []
        recommendations = []
        if missing:
            issues.append(
                issue("error", "alt_missing", f"{len(missing)} of {total} images have no alt text")
            )
            recommendations.append(f"Add alt text to {len(missing)} images")
        if poor:
            issues.append(
                issue(
                    "warning",
                    "alt_poor_quality",
                    f"{len(poor)} images have short, generic or filename-like alt text",
                )
            )
            recommendations.append(f"Improve alt text for {len(poor)} images with short, specific descriptions")
        if not recommendations:
            recommendations.append("All images have appropriate alt text")

        return self.build_report(
            ctx,
            score=score,
            issues=issues,
            recommendations=recommendations,
            total_images=total,
            images_with_alt=with_alt,
            images_without_alt=len(missing),
            images_with_poor_alt=len(poor),
            alt_text_coverage=coverage,
            image_issues=image_issues[:MAX_REPORTED_IMAGES],
        )
