"""
External SEO data providers.

Uses free sources where possible (Google Autocomplete) and DataForSEO when
credentials are configured. Every lookup degrades to an empty result; a
provider outage never fails an analysis.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import urlparse

import httpx

from config import Settings

logger = logging.getLogger(__name__)

AUTOCOMPLETE_URL = "https://suggestqueries.google.com/complete/search"
DATAFORSEO_BASE_URL = "https://api.dataforseo.com/v3"
DEFAULT_LOCATION_CODE = 2840  # United States
DEFAULT_LANGUAGE_CODE = "en"

PROVIDER_ERRORS = (httpx.HTTPError, asyncio.TimeoutError, ValueError, KeyError, TypeError)


@dataclass
class KeywordMetric:
    search_volume: int | None = None
    cpc_usd: float | None = None
    competition: int | None = None  # 0-100


@dataclass
class BacklinkRecord:
    source_url: str
    domain: str
    anchor_text: str = ""
    rel: list[str] = field(default_factory=list)
    domain_rank: float = 0.0  # 0-100
    spam_score: float = 0.0  # 0-100
    first_seen: str | None = None


async def get_autocomplete_suggestions(
    seed: str, *, client: httpx.AsyncClient, timeout: float
) -> list[str]:
    """Google Autocomplete suggestions for a seed phrase."""
    if not seed or not seed.strip():
        return []

    try:
        response = await asyncio.wait_for(
            client.get(
                AUTOCOMPLETE_URL,
                params={"client": "firefox", "q": seed.strip()},
                timeout=timeout,
            ),
            timeout=timeout,
        )
        if response.status_code != 200:
            return []
        data = response.json()
    except PROVIDER_ERRORS as e:
        logger.warning(f"Autocomplete lookup failed for {seed!r}: {e}")
        return []

    # Format: ["seed", ["suggestion 1", "suggestion 2", ...], ...]
    if isinstance(data, list) and len(data) > 1 and isinstance(data[1], list):
        return [item for item in data[1] if isinstance(item, str)]
    return []


def _dataforseo_auth(settings: Settings) -> httpx.BasicAuth | None:
    if not settings.dataforseo_login or not settings.dataforseo_password:
        return None
    return httpx.BasicAuth(settings.dataforseo_login, settings.dataforseo_password)


def _first_result_items(payload: dict) -> list[dict]:
    tasks = payload.get("tasks") or []
    if not tasks:
        return []
    results = tasks[0].get("result") or []
    if not results:
        return []
    return results[0].get("items") or []


async def get_search_volume(
    keywords: list[str],
    *,
    client: httpx.AsyncClient,
    settings: Settings,
    timeout: float,
) -> dict[str, KeywordMetric]:
    """
    Monthly search volume per keyword from DataForSEO.

    Returns an empty dict when credentials are missing or the call fails,
    so callers report volume as unknown.
    """
    auth = _dataforseo_auth(settings)
    if auth is None or not keywords:
        return {}

    body = [
        {
            "keywords": keywords,
            "location_code": DEFAULT_LOCATION_CODE,
            "language_code": DEFAULT_LANGUAGE_CODE,
        }
    ]
    try:
        response = await asyncio.wait_for(
            client.post(
                f"{DATAFORSEO_BASE_URL}/keywords_data/google_ads/search_volume/live",
                json=body,
                auth=auth,
                timeout=timeout,
            ),
            timeout=timeout,
        )
        response.raise_for_status()
        payload = response.json()
        tasks = payload.get("tasks") or []
        items = (tasks[0].get("result") or []) if tasks else []
    except PROVIDER_ERRORS as e:
        logger.warning(f"Search volume lookup failed: {e}")
        return {}

    metrics = {}
    for item in items:
        keyword = item.get("keyword")
        if not keyword:
            continue
        volume = item.get("search_volume")
        cpc = item.get("cpc")
        competition = item.get("competition_index")
        metrics[keyword.lower()] = KeywordMetric(
            search_volume=volume if isinstance(volume, int) else None,
            cpc_usd=float(cpc) if isinstance(cpc, (int, float)) else None,
            competition=round(competition) if isinstance(competition, (int, float)) else None,
        )
    return metrics


class BacklinkProvider(Protocol):
    """A source of backlink records for a target domain."""

    name: str

    async def get_backlinks(self, target: str, limit: int = 100) -> list[BacklinkRecord]:
        ...


class DataForSEOBacklinkProvider:
    """Backlinks from the DataForSEO backlinks API."""

    name = "dataforseo"

    def __init__(self, client: httpx.AsyncClient, auth: httpx.BasicAuth, timeout: float):
        self.client = client
        self.auth = auth
        self.timeout = timeout

    async def get_backlinks(self, target: str, limit: int = 100) -> list[BacklinkRecord]:
        domain = (urlparse(target).hostname or target).lower()
        body = [{"target": domain, "limit": limit, "mode": "as_is"}]

        try:
            response = await asyncio.wait_for(
                self.client.post(
                    f"{DATAFORSEO_BASE_URL}/backlinks/backlinks/live",
                    json=body,
                    auth=self.auth,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
            response.raise_for_status()
            items = _first_result_items(response.json())
        except PROVIDER_ERRORS as e:
            logger.warning(f"Backlink lookup failed for {domain}: {e}")
            return []

        records = []
        for item in items:
            try:
                record = _backlink_record(item)
            except (AttributeError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed backlink item for {domain}: {e}")
                continue
            if record is not None:
                records.append(record)
        return records


def _backlink_record(item: dict) -> BacklinkRecord | None:
    source_url = item.get("url_from")
    if not source_url:
        return None
    rel = [] if item.get("dofollow", True) else ["nofollow"]
    for attr in item.get("attributes") or []:
        if attr in ("ugc", "sponsored", "nofollow") and attr not in rel:
            rel.append(attr)
    return BacklinkRecord(
        source_url=str(source_url),
        domain=str(item.get("domain_from") or urlparse(str(source_url)).hostname or "").lower(),
        anchor_text=str(item.get("anchor") or ""),
        rel=rel,
        # DataForSEO ranks are 0-1000
        domain_rank=min(100.0, float(item.get("domain_from_rank") or 0) / 10),
        spam_score=float(item.get("backlink_spam_score") or 0),
        first_seen=item.get("first_seen"),
    )


def get_backlink_provider(
    settings: Settings, client: httpx.AsyncClient
) -> BacklinkProvider | None:
    """The configured backlink source, or None when no source is configured."""
    auth = _dataforseo_auth(settings)
    if auth is None:
        return None
    return DataForSEOBacklinkProvider(client, auth, settings.secondary_fetch_timeout)
