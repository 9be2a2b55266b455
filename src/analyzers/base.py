"""Base analyzer interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import ClassVar, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, field_validator
from pydantic.alias_generators import to_camel

from config import Settings
from engine.fetcher import FetchResult
from engine.parser import ParsedDocument

IssueType = Literal["error", "warning", "info"]
Severity = Literal["high", "medium", "low"]
Status = Literal["good", "warning", "error"]

DEFAULT_SEVERITY = {"error": "high", "warning": "medium", "info": "low"}


class CamelModel(BaseModel):
    """Serialises with camelCase keys, the dashboard's wire contract."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Issue(CamelModel):
    type: IssueType
    message: str
    severity: Severity
    code: str


def issue(
    type: IssueType,
    code: str,
    message: str,
    severity: Severity | None = None,
) -> Issue:
    """Build an Issue, defaulting severity from its type."""
    return Issue(
        type=type,
        code=code,
        message=message,
        severity=severity or DEFAULT_SEVERITY[type],
    )


class ToolDetails(CamelModel):
    """Tool-specific report fields. Field defaults are the zero-value shape."""


class AnalysisReport(CamelModel):
    """Standard result format for all analyzers."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    url: str
    tool_id: str
    score: int = 0  # Always 0-100
    issues: list[Issue] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    is_fallback: bool = False
    details: SerializeAsAny[ToolDetails] = Field(default_factory=ToolDetails)

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, value) -> int:
        if value is None:
            return 0
        return max(0, min(100, round(float(value))))

    @field_validator("issues", "recommendations", mode="before")
    @classmethod
    def never_null(cls, value):
        return [] if value is None else value

    def to_dict(self) -> dict:
        """Flat camelCase payload: common fields plus the tool's details."""
        data = self.model_dump(by_alias=True, exclude={"details"})
        data.update(self.details.model_dump(by_alias=True))
        return data

    def to_record(self, user_id: str, project_id: str | None = None) -> dict:
        """Shape stored by the persistence layer."""
        return {
            "userId": user_id,
            "projectId": project_id,
            "toolId": self.tool_id,
            "url": self.url,
            "results": self.to_dict(),
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }


@dataclass(frozen=True)
class AnalysisRequest:
    """One analysis call. Immutable once built."""

    tool_id: str
    url: str
    keywords: tuple[str, ...] = ()
    seed_keyword: str | None = None
    competitor_urls: tuple[str, ...] = ()


@dataclass
class AnalysisContext:
    """Everything an analyzer may read while producing its report."""

    request: AnalysisRequest
    page: FetchResult
    document: ParsedDocument
    client: httpx.AsyncClient
    settings: Settings

    @property
    def url(self) -> str:
        return self.request.url

    @property
    def final_url(self) -> str:
        return self.page.final_url


class BaseAnalyzer(ABC):
    """Abstract base class for all analyzers."""

    tool_id: ClassVar[str]
    details_model: ClassVar[type[ToolDetails]] = ToolDetails

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the analyzer's display name."""
        pass

    @abstractmethod
    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        """
        Run analysis on a fetched and parsed page.

        Args:
            ctx: Request, page, parsed document and shared client

        Returns:
            AnalysisReport with score, issues and tool details
        """
        pass

    def build_report(
        self,
        ctx: AnalysisContext,
        *,
        score: float,
        issues: list[Issue],
        recommendations: list[str],
        **details,
    ) -> AnalysisReport:
        return AnalysisReport(
            url=ctx.url,
            tool_id=self.tool_id,
            score=score,
            issues=issues,
            recommendations=recommendations,
            details=self.details_model(**details),
        )

    def empty_details(self) -> ToolDetails:
        return self.details_model()


def status_for(score: float) -> str:
    """Four-band rating used across sub-scores."""
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "needs-improvement"
    return "poor"
