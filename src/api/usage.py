"""
Usage/quota collaborator.

The API asks the tracker before running an analysis (amount=0) and records
usage only after a non-fallback report (amount=1), so failed analyses
never consume quota.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from config import settings

logger = logging.getLogger(__name__)

SEO_TOOLS = "seoTools"


@dataclass
class UsageResult:
    success: bool
    current_usage: int
    limit: int
    message: str = ""


class UsageTracker(Protocol):
    def track_usage(self, user_id: str, limit_type: str, amount: int = 1) -> UsageResult:
        ...


def _billing_period(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m")


class InMemoryUsageTracker:
    """
    Per-user monthly counters held in process memory.

    Single-instance state: counters are lost on restart and are not shared
    between workers, so a scaled-out deployment needs a shared store.
    """

    def __init__(self, limits: dict[str, int] | None = None):
        self.limits = limits if limits is not None else {SEO_TOOLS: settings.seo_tools_limit}
        self._usage: dict[tuple[str, str, str], int] = defaultdict(int)

    def current(self, user_id: str, limit_type: str) -> int:
        return self._usage[(user_id, limit_type, _billing_period())]

    def track_usage(self, user_id: str, limit_type: str, amount: int = 1) -> UsageResult:
        """
        Check (amount=0) or consume (amount>0) quota.

        A refused request consumes nothing.
        """
        limit = self.limits.get(limit_type)
        if limit is None:
            return UsageResult(False, 0, 0, f"Unknown limit type: {limit_type}")

        key = (user_id, limit_type, _billing_period())
        current = self._usage[key]

        if amount == 0:
            if current >= limit:
                return UsageResult(False, current, limit, f"Monthly {limit_type} limit of {limit} reached")
            return UsageResult(True, current, limit)

        if current + amount > limit:
            logger.info(f"Usage refused for {user_id}: {limit_type} {current}/{limit}")
            return UsageResult(False, current, limit, f"Monthly {limit_type} limit of {limit} reached")

        self._usage[key] = current + amount
        return UsageResult(True, current + amount, limit)

    def reset(self) -> None:
        self._usage.clear()


usage_tracker = InMemoryUsageTracker()

