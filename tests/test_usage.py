"""Tests for the in-memory usage tracker."""

from datetime import datetime, timezone

from api.usage import SEO_TOOLS, InMemoryUsageTracker, _billing_period


def test_check_does_not_consume():
    tracker = InMemoryUsageTracker({SEO_TOOLS: 2})

    result = tracker.track_usage("u1", SEO_TOOLS, 0)

    assert result.success
    assert result.current_usage == 0
    assert tracker.current("u1", SEO_TOOLS) == 0


def test_consumption_until_limit():
    tracker = InMemoryUsageTracker({SEO_TOOLS: 2})

    assert tracker.track_usage("u1", SEO_TOOLS).success
    assert tracker.track_usage("u1", SEO_TOOLS).current_usage == 2

    refused = tracker.track_usage("u1", SEO_TOOLS)
    assert not refused.success
    assert refused.current_usage == 2
    assert refused.limit == 2
    assert "limit" in refused.message
    assert not tracker.track_usage("u1", SEO_TOOLS, 0).success
    assert tracker.current("u1", SEO_TOOLS) == 2


def test_users_are_independent():
    tracker = InMemoryUsageTracker({SEO_TOOLS: 1})
    tracker.track_usage("u1", SEO_TOOLS)

    assert tracker.track_usage("u2", SEO_TOOLS).success


def test_refused_bulk_request_consumes_nothing():
    tracker = InMemoryUsageTracker({SEO_TOOLS: 3})
    tracker.track_usage("u1", SEO_TOOLS, 2)

    assert not tracker.track_usage("u1", SEO_TOOLS, 2).success
    assert tracker.current("u1", SEO_TOOLS) == 2


def test_unknown_limit_type():
    result = InMemoryUsageTracker({SEO_TOOLS: 1}).track_usage("u1", "reports")
    assert not result.success


def test_reset():
    tracker = InMemoryUsageTracker({SEO_TOOLS: 1})
    tracker.track_usage("u1", SEO_TOOLS)
    tracker.reset()
    assert tracker.current("u1", SEO_TOOLS) == 0


def test_billing_period_is_monthly():
    assert _billing_period(datetime(2024, 2, 29, 23, 59, tzinfo=timezone.utc)) == "2024-02"
