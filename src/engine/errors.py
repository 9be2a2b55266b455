"""Error taxonomy for the analysis engine."""

import enum


class AnalysisError(Exception):
    """Base class for analysis engine errors."""


class CallerError(AnalysisError, ValueError):
    """Bad request: unknown tool id or unusable URL. Never wrapped into a fallback."""


class FetchReason(str, enum.Enum):
    """Why a fetch failed."""

    TIMEOUT = "timeout"
    DNS = "dns"
    TLS = "tls"
    HTTP_STATUS = "http_status"
    UNKNOWN = "unknown"


class FetchError(AnalysisError):
    """Network, timeout or status failure while retrieving a URL."""

    def __init__(
        self,
        reason: FetchReason,
        url: str,
        message: str = "",
        status_code: int | None = None,
    ):
        self.reason = FetchReason(reason)
        self.url = url
        self.status_code = status_code
        super().__init__(message or f"{self.reason.value} fetching {url}")


class ParseError(AnalysisError):
    """Content could not be parsed (e.g. malformed sitemap XML)."""


class AnalyzerInternalError(AnalysisError):
    """Unexpected fault inside an analyzer."""


class DeadlineExceeded(AnalysisError):
    """The overall analysis deadline expired."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        super().__init__(f"Analysis exceeded {seconds:g}s deadline")
