"""Bounded-timeout HTTP fetcher with manual redirect handling."""

import asyncio
import logging
import socket
import ssl
import time
from dataclasses import dataclass, field
from urllib.parse import urlsplit, urlunsplit

import httpx

from config import Settings, settings as default_settings
from engine.errors import FetchError, FetchReason

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

_DEFAULT_PORTS = {"http": 80, "https": 443}

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "temporary failure in name resolution",
    "no address associated",
    "name resolution",
)
_TLS_MARKERS = ("ssl", "certificate", "tls")


@dataclass(frozen=True)
class FetchResult:
    """A completed HTTP exchange. Transient, discarded after analysis."""

    url: str
    final_url: str
    status_code: int
    headers: dict[str, str]
    body: str
    duration_ms: int
    redirects: tuple[str, ...] = field(default_factory=tuple)
    content_length: int = 0

    @property
    def is_https(self) -> bool:
        return self.final_url.startswith("https://")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def normalize_url(url: str) -> str:
    """
    Normalize a URL before dispatch.

    Adds https:// when the scheme is missing, lowercases scheme and host,
    drops default ports and fragments, and uses "/" for an empty path.
    Raises ValueError for unparseable ports.
    """
    value = (url or "").strip()
    if value.startswith("//"):
        value = f"https:{value}"
    elif "://" not in value:
        value = f"https://{value}"

    parts = urlsplit(value)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"

    netloc = host
    port = parts.port
    if port and port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))


def canonicalize_url(url: str) -> str:
    """Normalize a URL for equality comparisons (trailing slash insensitive)."""
    try:
        normalized = normalize_url(url)
    except ValueError:
        return (url or "").strip()
    parts = urlsplit(normalized)
    path = parts.path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def origin(url: str) -> str:
    """Return scheme://host[:port] for a URL."""
    parts = urlsplit(normalize_url(url))
    return f"{parts.scheme}://{parts.netloc}"


def build_client(settings: Settings | None = None) -> httpx.AsyncClient:
    """Create the shared async client used for one analysis request."""
    settings = settings or default_settings
    return httpx.AsyncClient(
        timeout=settings.http_timeout,
        follow_redirects=False,
        headers={"User-Agent": settings.user_agent, **DEFAULT_HEADERS},
        limits=httpx.Limits(max_connections=max(10, settings.link_check_concurrency * 2)),
    )


async def fetch(
    url: str,
    *,
    client: httpx.AsyncClient,
    timeout: float | None = None,
    max_redirects: int | None = None,
    user_agent: str | None = None,
    method: str = "GET",
    raise_for_status: bool = True,
    settings: Settings | None = None,
) -> FetchResult:
    """
    Retrieve a URL.

    The whole exchange, redirects included, is bounded by ``timeout``;
    on expiry the in-flight request is cancelled.

    Raises:
        FetchError: on transport failure, timeout, too many redirects, or
            (when ``raise_for_status``) a non-2xx final status.
    """
    settings = settings or default_settings
    timeout = settings.http_timeout if timeout is None else timeout
    max_redirects = settings.max_redirects if max_redirects is None else max_redirects
    headers = {"User-Agent": user_agent} if user_agent else None

    try:
        target = normalize_url(url)
    except ValueError as e:
        raise FetchError(FetchReason.UNKNOWN, url, f"Invalid URL: {e}") from e

    started = time.perf_counter()
    try:
        response, redirects = await asyncio.wait_for(
            _send_following_redirects(
                client, method, target, headers, timeout, max_redirects
            ),
            timeout=timeout,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise FetchError(
            FetchReason.TIMEOUT, target, f"Timed out after {timeout:g}s"
        ) from e
    except httpx.HTTPError as e:
        raise FetchError(_classify(e), target, str(e) or type(e).__name__) from e
    except (httpx.InvalidURL, ValueError) as e:
        # Malformed hosts (bad IDNA labels, bad ports) surface from build_request
        raise FetchError(FetchReason.UNKNOWN, target, f"Invalid URL: {e}") from e

    duration_ms = round((time.perf_counter() - started) * 1000)
    result = FetchResult(
        url=target,
        final_url=str(response.url),
        status_code=response.status_code,
        headers=dict(response.headers),
        body=response.text if method.upper() != "HEAD" else "",
        duration_ms=duration_ms,
        redirects=tuple(redirects),
        content_length=len(response.content),
    )

    logger.debug(
        f"{method} {target} -> {result.status_code} in {duration_ms}ms "
        f"({len(redirects)} redirects)"
    )

    if raise_for_status and not result.ok:
        raise FetchError(
            FetchReason.HTTP_STATUS,
            target,
            f"HTTP {result.status_code}",
            status_code=result.status_code,
        )

    return result


async def _send_following_redirects(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: dict | None,
    timeout: float,
    max_redirects: int,
) -> tuple[httpx.Response, list[str]]:
    """Send a request and follow redirects by hand, recording each hop."""
    redirects: list[str] = []
    request = client.build_request(method, url, headers=headers, timeout=timeout)

    while True:
        response = await client.send(request, follow_redirects=False)
        next_request = response.next_request
        if next_request is None:
            return response, redirects

        if len(redirects) >= max_redirects:
            await response.aclose()
            raise FetchError(
                FetchReason.UNKNOWN,
                url,
                f"Exceeded {max_redirects} redirects",
                status_code=response.status_code,
            )

        redirects.append(str(response.url))
        await response.aclose()
        request = next_request


def _exception_chain(exc: BaseException):
    seen = set()
    current = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _classify(exc: httpx.HTTPError) -> FetchReason:
    """Map an httpx transport error onto a FetchReason."""
    if isinstance(exc, httpx.TimeoutException):
        return FetchReason.TIMEOUT

    for link in _exception_chain(exc):
        if isinstance(link, ssl.SSLError):
            return FetchReason.TLS
        if isinstance(link, socket.gaierror):
            return FetchReason.DNS

    text = " ".join(str(link) for link in _exception_chain(exc)).lower()
    if any(marker in text for marker in _DNS_MARKERS):
        return FetchReason.DNS
    if any(marker in text for marker in _TLS_MARKERS):
        return FetchReason.TLS
    return FetchReason.UNKNOWN
