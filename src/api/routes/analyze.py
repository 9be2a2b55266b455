"""Analysis endpoints."""

import logging
from datetime import datetime, timezone

import httpx
from fastapi import APIRouter, Depends, Header, HTTPException, status

from analyzers import REGISTRY
from api.dependencies import get_http_client, get_usage_tracker
from api.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    ErrorResponse,
    SiteAuditRequest,
    SiteAuditResponse,
)
from api.usage import SEO_TOOLS, UsageTracker
from engine.errors import CallerError
from engine.orchestrator import analyze, analyze_many

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyze", tags=["Analysis"])


def _check_quota(tracker: UsageTracker, user_id: str | None) -> None:
    """Refuse with 403 before any work when the user is out of quota."""
    if not user_id:
        return
    result = tracker.track_usage(user_id, SEO_TOOLS, 0)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "success": False,
                "error": "limit_reached",
                "message": result.message,
                "currentUsage": result.current_usage,
                "limit": result.limit,
            },
        )


def _bad_request(e: CallerError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"success": False, "error": "invalid_request", "message": str(e)},
    )


@router.post(
    "",
    response_model=AnalyzeResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="Run an analysis tool",
    description="Fetch the URL and run one tool. Degraded results carry isFallback=true.",
)
async def run_analysis(
    request: AnalyzeRequest,
    x_user_id: str | None = Header(default=None),
    client: httpx.AsyncClient = Depends(get_http_client),
    tracker: UsageTracker = Depends(get_usage_tracker),
) -> AnalyzeResponse:
    """
    Run one analyzer.

    Usage is recorded only for non-fallback reports, so an unreachable site
    never costs the user quota.
    """
    _check_quota(tracker, x_user_id)

    try:
        report = await analyze(request.tool_id, request.url, request.params(), client=client)
    except CallerError as e:
        raise _bad_request(e) from e

    charged = False
    if x_user_id and not report.is_fallback:
        charged = tracker.track_usage(x_user_id, SEO_TOOLS, 1).success

    return AnalyzeResponse(
        results=report.to_dict(),
        tool_id=report.tool_id,
        url=report.url,
        timestamp=datetime.now(timezone.utc),
        charged=charged,
    )


@router.post(
    "/site",
    response_model=SiteAuditResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="Run several tools against one URL",
    description="Runs the requested tools (default: all) concurrently over a single page fetch.",
)
async def run_site_audit(
    request: SiteAuditRequest,
    x_user_id: str | None = Header(default=None),
    client: httpx.AsyncClient = Depends(get_http_client),
    tracker: UsageTracker = Depends(get_usage_tracker),
) -> SiteAuditResponse:
    _check_quota(tracker, x_user_id)

    tool_ids = request.tool_ids or list(REGISTRY)
    try:
        reports = await analyze_many(tool_ids, request.url, request.params(), client=client)
    except CallerError as e:
        raise _bad_request(e) from e

    completed = [report for report in reports.values() if not report.is_fallback]
    if x_user_id:
        for _ in completed:
            if not tracker.track_usage(x_user_id, SEO_TOOLS, 1).success:
                break

    overall = round(sum(r.score for r in completed) / len(completed)) if completed else 0
    url = next(iter(reports.values())).url

    return SiteAuditResponse(
        url=url,
        results={tool_id: report.to_dict() for tool_id, report in reports.items()},
        overall_score=overall,
        timestamp=datetime.now(timezone.utc),
    )
