"""Pydantic schemas for API request/response validation."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Request Schemas (what clients send to us)
# =============================================================================


class AnalyzeRequest(ApiModel):
    """Request body for running one analysis tool."""

    tool_id: str = Field(
        ...,
        description="Tool to run, e.g. meta-tag-analyzer",
        examples=["meta-tag-analyzer"],
    )
    url: str = Field(
        ...,
        description="Absolute http(s) URL of the page to analyze",
        examples=["https://example.com"],
    )
    keywords: list[str] | str | None = Field(
        default=None,
        description="Target keywords, as a list or comma-separated string",
        examples=[["seo tools", "site audit"]],
    )
    seed_keyword: str | None = Field(
        default=None,
        description="Seed keyword for keyword research",
    )
    competitor_urls: list[str] | None = Field(
        default=None,
        description="Competitor pages for the competitor analyzer",
    )
    project_id: str | None = Field(
        default=None,
        description="Dashboard project the result belongs to",
    )

    def params(self) -> dict:
        return {
            "keywords": self.keywords,
            "seedKeyword": self.seed_keyword,
            "competitorUrls": self.competitor_urls,
        }


class SiteAuditRequest(ApiModel):
    """Request body for running several tools against one URL."""

    url: str = Field(..., examples=["https://example.com"])
    tool_ids: list[str] | None = Field(
        default=None,
        description="Tools to run; defaults to the whole catalog",
    )
    keywords: list[str] | str | None = None
    seed_keyword: str | None = None
    competitor_urls: list[str] | None = None

    def params(self) -> dict:
        return {
            "keywords": self.keywords,
            "seedKeyword": self.seed_keyword,
            "competitorUrls": self.competitor_urls,
        }


# =============================================================================
# Response Schemas (what we send back to clients)
# =============================================================================


class AnalyzeResponse(ApiModel):
    """Envelope returned by POST /analyze. Always 200-shaped for valid requests."""

    success: bool = True
    results: dict
    tool_id: str
    url: str
    timestamp: datetime
    charged: bool = False


class SiteAuditResponse(ApiModel):
    url: str
    results: dict[str, dict]
    overall_score: int
    timestamp: datetime


class ToolInfo(ApiModel):
    tool_id: str
    name: str


class ToolListResponse(ApiModel):
    tools: list[ToolInfo]
    aliases: dict[str, str]
    count: int


class ErrorResponse(ApiModel):
    success: bool = False
    error: str
    message: str


# =============================================================================
# Health Check
# =============================================================================


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str = "healthy"
    service: str = "beacon"
    version: str = "0.1.0"
    tools: int = 0
