"""Mobile-friendliness checks."""

import logging
import re

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

MIN_TOUCH_TARGET_PX = 48
MIN_FONT_SIZE_PX = 12
MAX_FIXED_WIDTH_PX = 480

MEDIA_QUERY_RE = re.compile(r"@media[^{]*\((?:max|min)-(?:device-)?width", re.IGNORECASE)
FONT_SIZE_RE = re.compile(r"font-size\s*:\s*(\d+(?:\.\d+)?)px", re.IGNORECASE)
WIDTH_RE = re.compile(r"(?<![-\w])width\s*:\s*(\d+(?:\.\d+)?)px", re.IGNORECASE)
HEIGHT_RE = re.compile(r"(?<![-\w])height\s*:\s*(\d+(?:\.\d+)?)px", re.IGNORECASE)


class ViewportCheck(CamelModel):
    configured: bool = False
    content: str = ""
    zoom_disabled: bool = False
    status: str = "error"


class TouchTargetCheck(CamelModel):
    total: int = 0
    too_small: int = 0
    status: str = "error"


class TextSizeCheck(CamelModel):
    readable: bool = False
    small_font_declarations: int = 0
    status: str = "error"


class ContentWidthCheck(CamelModel):
    fits_screen: bool = False
    fixed_width_elements: int = 0
    status: str = "error"


class MediaQueryCheck(CamelModel):
    count: int = 0
    status: str = "error"


class ResponsiveImageCheck(CamelModel):
    total: int = 0
    responsive: int = 0
    status: str = "error"


class MobileDetails(ToolDetails):
    is_mobile_friendly: bool = False
    viewport: ViewportCheck = Field(default_factory=ViewportCheck)
    touch_targets: TouchTargetCheck = Field(default_factory=TouchTargetCheck)
    text_size: TextSizeCheck = Field(default_factory=TextSizeCheck)
    content_width: ContentWidthCheck = Field(default_factory=ContentWidthCheck)
    media_queries: MediaQueryCheck = Field(default_factory=MediaQueryCheck)
    responsive_images: ResponsiveImageCheck = Field(default_factory=ResponsiveImageCheck)


def _px_values(pattern: re.Pattern, css: str) -> list[float]:
    return [float(value) for value in pattern.findall(css or "")]


class MobileAnalyzer(BaseAnalyzer):
    """
    Static mobile-friendliness review.

    Checks:
    - Viewport meta (presence, device-width, zoom)
    - Media queries in inline CSS and <link media>
    - Responsive images (srcset / <picture>)
    - Touch target sizes, small fonts and fixed-width elements in inline styles
    """

    tool_id = "mobile-checker"
    details_model = MobileDetails

    @property
    def name(self) -> str:
        return "Mobile-Friendly Checker"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        doc = ctx.document
        issues = []
        recommendations = []
        score = 100

        viewport = self._check_viewport(doc.meta_viewport or "")
        if not viewport.content:
            score -= 30
            issues.append(issue("error", "viewport_missing", "Missing viewport meta tag"))
            recommendations.append(
                'Add <meta name="viewport" content="width=device-width, initial-scale=1">'
            )
        elif not viewport.configured:
            score -= 15
            issues.append(
                issue("warning", "viewport_misconfigured", "Viewport does not use width=device-width")
            )
            recommendations.append("Set the viewport width to device-width")
        if viewport.zoom_disabled:
            score -= 10
            issues.append(
                issue("warning", "zoom_disabled", "Viewport disables user zoom", "medium")
            )
            recommendations.append("Allow users to zoom: remove user-scalable=no and maximum-scale=1")

        media = self._check_media_queries(ctx)
        if media.count == 0:
            score -= 10
            issues.append(issue("warning", "no_media_queries", "No responsive media queries detected", "low"))
            recommendations.append("Use CSS media queries to adapt layouts to small screens")

        images = self._check_responsive_images(ctx)
        if images.total and images.responsive == 0:
            score -= 5
            issues.append(
                issue("info", "no_responsive_images", "No images use srcset or <picture>")
            )
            recommendations.append("Serve responsive images with srcset so phones download smaller files")

        touch = self._check_touch_targets(ctx)
        if touch.too_small:
            score -= min(15, touch.too_small * 5)
            issues.append(
                issue(
                    "warning",
                    "small_touch_targets",
                    f"{touch.too_small} tap targets are smaller than {MIN_TOUCH_TARGET_PX}px",
                )
            )
            recommendations.append(f"Make buttons and links at least {MIN_TOUCH_TARGET_PX}x{MIN_TOUCH_TARGET_PX}px")

        text = self._check_text_size(ctx)
        if not text.readable:
            score -= min(15, text.small_font_declarations * 5)
            issues.append(
                issue(
                    "warning",
                    "small_font_size",
                    f"{text.small_font_declarations} font sizes below {MIN_FONT_SIZE_PX}px",
                )
            )
            recommendations.append(f"Use a base font size of at least {MIN_FONT_SIZE_PX}px (16px recommended)")

        width = self._check_content_width(ctx)
        if not width.fits_screen:
            score -= min(20, width.fixed_width_elements * 10)
            issues.append(
                issue(
                    "error",
                    "fixed_width_content",
                    f"{width.fixed_width_elements} elements have fixed widths over {MAX_FIXED_WIDTH_PX}px",
                    "medium",
                )
            )
            recommendations.append("Replace fixed pixel widths with max-width or percentages")

        score = max(0, score)
        is_mobile_friendly = viewport.configured and score >= 70
        if not recommendations:
            recommendations.append("Page follows mobile-friendly best practices")

        return self.build_report(
            ctx,
            score=score,
            issues=issues,
            recommendations=recommendations,
            is_mobile_friendly=is_mobile_friendly,
            viewport=viewport,
            touch_targets=touch,
            text_size=text,
            content_width=width,
            media_queries=media,
            responsive_images=images,
        )

    def _check_viewport(self, content: str) -> ViewportCheck:
        normalized = content.replace(" ", "").lower()
        configured = "width=device-width" in normalized

        zoom_disabled = "user-scalable=no" in normalized or "user-scalable=0" in normalized
        match = re.search(r"maximum-scale=([\d.]+)", normalized)
        if match:
            try:
                zoom_disabled = zoom_disabled or float(match.group(1)) <= 1
            except ValueError:
                pass

        if configured and not zoom_disabled:
            status = "good"
        elif content:
            status = "warning"
        else:
            status = "error"
        return ViewportCheck(
            configured=configured, content=content, zoom_disabled=zoom_disabled, status=status
        )

    def _check_media_queries(self, ctx: AnalysisContext) -> MediaQueryCheck:
        count = sum(len(MEDIA_QUERY_RE.findall(css)) for css in ctx.document.inline_css)
        count += sum(
            1
            for sheet in ctx.document.stylesheets
            if sheet.media and "width" in sheet.media.lower()
        )
        return MediaQueryCheck(count=count, status="good" if count else "warning")

    def _check_responsive_images(self, ctx: AnalysisContext) -> ResponsiveImageCheck:
        images = ctx.document.images
        responsive = sum(1 for img in images if img.srcset or img.in_picture)
        if not images or responsive == len(images):
            status = "good"
        elif responsive:
            status = "warning"
        else:
            status = "error"
        return ResponsiveImageCheck(total=len(images), responsive=responsive, status=status)

    def _check_touch_targets(self, ctx: AnalysisContext) -> TouchTargetCheck:
        elements = ctx.document.interactive
        too_small = 0
        for element in elements:
            sizes = _px_values(WIDTH_RE, element.style) + _px_values(HEIGHT_RE, element.style)
            if any(size < MIN_TOUCH_TARGET_PX for size in sizes):
                too_small += 1
        return TouchTargetCheck(
            total=len(elements),
            too_small=too_small,
            status="good" if too_small == 0 else ("warning" if too_small < 5 else "error"),
        )

    def _check_text_size(self, ctx: AnalysisContext) -> TextSizeCheck:
        styles = list(ctx.document.inline_css) + [el.style for el in ctx.document.styled_elements]
        small = sum(
            1
            for css in styles
            for size in _px_values(FONT_SIZE_RE, css)
            if size < MIN_FONT_SIZE_PX
        )
        return TextSizeCheck(
            readable=small == 0,
            small_font_declarations=small,
            status="good" if small == 0 else "warning",
        )

    def _check_content_width(self, ctx: AnalysisContext) -> ContentWidthCheck:
        fixed = sum(
            1
            for element in ctx.document.styled_elements
            if any(width > MAX_FIXED_WIDTH_PX for width in _px_values(WIDTH_RE, element.style))
        )
        logger.debug(f"{fixed} fixed-width elements on {ctx.url}")
        return ContentWidthCheck(
            fits_screen=fixed == 0,
            fixed_width_elements=fixed,
            status="good" if fixed == 0 else "error",
        )
