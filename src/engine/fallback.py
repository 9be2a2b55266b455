"""
Fallback wrapper.

Every analyzer invocation goes through ``run``; whatever goes wrong, the
caller gets a schema-valid report. Degraded reports carry ``isFallback``
so usage metering can skip them.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from analyzers.base import AnalysisReport, BaseAnalyzer, issue
from engine.errors import AnalyzerInternalError, DeadlineExceeded, FetchError, FetchReason, ParseError

logger = logging.getLogger(__name__)

GENERIC_RECOMMENDATIONS = [
    "Check URL accessibility",
    "Ensure website allows automated requests",
    "Try again in a few minutes",
]


def describe_failure(url: str, exc: BaseException) -> str:
    """User-facing explanation of a failure. Never includes raw exception text."""
    if isinstance(exc, FetchError):
        if exc.reason == FetchReason.TIMEOUT:
            return f"The website {url} took too long to respond - check that it is online"
        if exc.reason == FetchReason.DNS:
            return f"The domain for {url} could not be resolved - check the URL is correct"
        if exc.reason == FetchReason.TLS:
            return f"A secure connection to {url} could not be established - check its SSL certificate"
        if exc.reason == FetchReason.HTTP_STATUS:
            return f"{url} returned HTTP {exc.status_code} - check URL accessibility"
        return f"{url} could not be retrieved - check URL accessibility"
    if isinstance(exc, (DeadlineExceeded, asyncio.TimeoutError)):
        return f"Analysis of {url} did not finish in time - the site may be slow or very large"
    if isinstance(exc, ParseError):
        return f"The content at {url} could not be parsed"
    return "The analysis could not be completed due to an internal error - please try again"


def build_fallback_report(analyzer: BaseAnalyzer, url: str, exc: BaseException) -> AnalysisReport:
    """Zero-score report in the analyzer's own shape."""
    return AnalysisReport(
        url=url,
        tool_id=analyzer.tool_id,
        score=0,
        issues=[issue("error", "analysis_failed", describe_failure(url, exc), "high")],
        recommendations=list(GENERIC_RECOMMENDATIONS),
        is_fallback=True,
        details=analyzer.empty_details(),
    )


async def run(
    operation: Callable[[], Awaitable[AnalysisReport]],
    analyzer: BaseAnalyzer,
    url: str,
) -> AnalysisReport:
    """
    Await ``operation`` and convert any failure into a fallback report.

    Only task cancellation propagates.
    """
    try:
        return await operation()
    except asyncio.CancelledError:
        raise
    except (FetchError, ParseError, DeadlineExceeded, asyncio.TimeoutError) as e:
        logger.warning(f"{analyzer.tool_id} fell back for {url}: {e}")
        return build_fallback_report(analyzer, url, e)
    except Exception as e:
        logger.exception(f"{analyzer.tool_id} failed unexpectedly for {url}")
        fault = AnalyzerInternalError(f"{analyzer.tool_id}: {type(e).__name__}")
        fault.__cause__ = e
        return build_fallback_report(analyzer, url, fault)
