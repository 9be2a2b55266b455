"""Celery tasks for running analyses in the background."""

import asyncio

from celery.utils.log import get_task_logger

from analyzers import REGISTRY
from engine.errors import CallerError
from engine.orchestrator import analyze, analyze_many
from worker.celery_app import celery_app

# Logger for tasks
logger = get_task_logger(__name__)


@celery_app.task(bind=True, name="worker.tasks.run_tool_analysis")
def run_tool_analysis(self, tool_id: str, url: str, params: dict | None = None) -> dict:
    """
    Run one analyzer and return the serialised report.

    Invalid requests return an error payload instead of retrying; every
    other failure is already a fallback report.
    """
    logger.info(f"Running {tool_id} for {url}")

    try:
        report = asyncio.run(analyze(tool_id, url, params))
    except CallerError as e:
        logger.warning(f"Rejected {tool_id} for {url}: {e}")
        return {"success": False, "error": str(e), "toolId": tool_id, "url": url}

    return {"success": True, "results": report.to_dict(), "toolId": report.tool_id, "url": report.url}


@celery_app.task(bind=True, name="worker.tasks.run_site_audit")
def run_site_audit(
    self,
    url: str,
    tool_ids: list[str] | None = None,
    params: dict | None = None,
) -> dict:
    """
    Run several analyzers over one page fetch.

    Defaults to the whole catalog.
    """
    tool_ids = tool_ids or list(REGISTRY)
    logger.info(f"Running site audit for {url} ({len(tool_ids)} tools)")

    try:
        reports = asyncio.run(analyze_many(tool_ids, url, params))
    except CallerError as e:
        logger.warning(f"Rejected site audit for {url}: {e}")
        return {"success": False, "error": str(e), "url": url}

    fallbacks = [tool_id for tool_id, report in reports.items() if report.is_fallback]
    if fallbacks:
        logger.warning(f"Site audit for {url}: {len(fallbacks)} tools fell back ({', '.join(fallbacks)})")

    return {
        "success": True,
        "url": url,
        "results": {tool_id: report.to_dict() for tool_id, report in reports.items()},
    }
