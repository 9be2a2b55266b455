"""
Analysis orchestrator.

Validates a request, fetches and parses the target page, then dispatches
to the analyzer through the fallback wrapper under an overall deadline.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Iterable
from contextlib import asynccontextmanager
from urllib.parse import urlsplit

import httpx

from analyzers import REGISTRY, resolve_tool_id
from analyzers.base import AnalysisContext, AnalysisReport, AnalysisRequest
from config import Settings, settings as default_settings
from engine import fallback
from engine.errors import CallerError, DeadlineExceeded
from engine.fetcher import FetchResult, build_client, fetch, normalize_url
from engine.parser import ParsedDocument, parse

logger = logging.getLogger(__name__)


def validate_url(url: str) -> str:
    """
    Check a caller-supplied URL and return its normalized form.

    Raises:
        CallerError: if the URL is not an absolute http(s) URL.
    """
    value = (url or "").strip()
    try:
        parts = urlsplit(value)
    except ValueError as e:
        raise CallerError(f"Invalid URL {url!r}: {e}") from e
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        raise CallerError(f"URL must be an absolute http(s) URL: {url!r}")
    try:
        normalized = normalize_url(value)
    except ValueError as e:
        raise CallerError(f"Invalid URL {url!r}: {e}") from e
    if not urlsplit(normalized).hostname:
        raise CallerError(f"URL has no host: {url!r}")
    return normalized


def _string_list(value) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())


def build_request(
    tool_id: str,
    url: str,
    params: dict | None = None,
    *,
    settings: Settings = default_settings,
) -> AnalysisRequest:
    """
    Build the immutable request for one analysis.

    ``params`` accepts camelCase or snake_case keys: keywords,
    seedKeyword and competitorUrls. Comma-separated strings are split.

    Raises:
        CallerError: for an unknown tool id or an unusable URL.
    """
    key = resolve_tool_id(tool_id)
    if key is None:
        raise CallerError(f"Unknown tool: {tool_id!r}")

    params = params or {}
    seed = params.get("seedKeyword", params.get("seed_keyword"))
    competitors = _string_list(params.get("competitorUrls", params.get("competitor_urls")))

    return AnalysisRequest(
        tool_id=key,
        url=validate_url(url),
        keywords=_string_list(params.get("keywords")),
        seed_keyword=seed.strip() if isinstance(seed, str) and seed.strip() else None,
        competitor_urls=competitors[: settings.max_competitors],
    )


@asynccontextmanager
async def _client_scope(client: httpx.AsyncClient | None, settings: Settings):
    """Use the caller's client, or own one for the duration of the call."""
    if client is not None:
        yield client
        return
    async with build_client(settings) as owned:
        yield owned


async def _load(
    url: str, client: httpx.AsyncClient, settings: Settings
) -> tuple[FetchResult, ParsedDocument]:
    page = await fetch(url, client=client, settings=settings)
    return page, parse(page.body, page.final_url)


async def _within_deadline(operation, seconds: float) -> AnalysisReport:
    try:
        return await asyncio.wait_for(operation, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise DeadlineExceeded(seconds) from e


async def analyze(
    tool_id: str,
    url: str,
    params: dict | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    settings: Settings = default_settings,
) -> AnalysisReport:
    """
    Run one analyzer against a URL.

    Returns a report for every valid request; fetch failures, parse
    problems, analyzer faults and the overall deadline all yield a
    fallback report.

    Raises:
        CallerError: for an unknown tool id or an invalid URL.
    """
    request = build_request(tool_id, url, params, settings=settings)
    analyzer = REGISTRY[request.tool_id]
    logger.info(f"Running {request.tool_id} for {request.url}")

    async with _client_scope(client, settings) as http:

        async def operation() -> AnalysisReport:
            page, document = await _load(request.url, http, settings)
            ctx = AnalysisContext(
                request=request, page=page, document=document, client=http, settings=settings
            )
            return await analyzer.analyze(ctx)

        return await fallback.run(
            lambda: _within_deadline(operation(), settings.analysis_deadline),
            analyzer,
            request.url,
        )


async def analyze_many(
    tool_ids: Iterable[str],
    url: str,
    params: dict | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    settings: Settings = default_settings,
) -> dict[str, AnalysisReport]:
    """
    Run several analyzers against one URL concurrently.

    The page is fetched and parsed once and shared. Each tool gets its own
    deadline and fallback, so one failing tool never affects the others.

    Raises:
        CallerError: if no tools are given, a tool id is unknown or the
            URL is invalid.
    """
    base = None
    requests = {}
    for tool_id in tool_ids:
        if base is None:
            base = build_request(tool_id, url, params, settings=settings)
            request = base
        else:
            key = resolve_tool_id(tool_id)
            if key is None:
                raise CallerError(f"Unknown tool: {tool_id!r}")
            request = dataclasses.replace(base, tool_id=key)
        requests.setdefault(request.tool_id, request)

    if not requests:
        raise CallerError("At least one tool id is required")

    logger.info(f"Running {len(requests)} tools for {base.url}")

    async with _client_scope(client, settings) as http:
        page_task = asyncio.ensure_future(_load(base.url, http, settings))

        async def run_one(request: AnalysisRequest) -> tuple[str, AnalysisReport]:
            analyzer = REGISTRY[request.tool_id]

            async def operation() -> AnalysisReport:
                # Shielded so one tool's deadline does not cancel the shared fetch
                page, document = await asyncio.shield(page_task)
                ctx = AnalysisContext(
                    request=request, page=page, document=document, client=http, settings=settings
                )
                return await analyzer.analyze(ctx)

            report = await fallback.run(
                lambda: _within_deadline(operation(), settings.analysis_deadline),
                analyzer,
                request.url,
            )
            return request.tool_id, report

        try:
            results = await asyncio.gather(*(run_one(request) for request in requests.values()))
        finally:
            page_task.cancel()

    return dict(results)
