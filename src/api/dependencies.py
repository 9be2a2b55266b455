"""FastAPI dependencies."""

import httpx
from fastapi import Request

from api.usage import UsageTracker, usage_tracker


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared outbound client created in the application lifespan."""
    return request.app.state.http_client


def get_usage_tracker() -> UsageTracker:
    """Quota collaborator; override when wiring a shared store."""
    return usage_tracker
