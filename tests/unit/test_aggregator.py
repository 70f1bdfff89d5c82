"""
Unit tests for the AnalyticsAggregator fan-out and its source adapters.
"""

import asyncio
from dataclasses import replace
from datetime import date

import httpx
import pytest

from config import Settings
from src.analytics.aggregator import AnalyticsAggregator
from src.analytics.demo import activity_timeline, demo_sources
from src.analytics.models import Granularity
from src.analytics.sources import CallableSource, http_sources, parse_series, parse_summary
from src.core.errors import SourceUnavailableError


@pytest.fixture
def fast_settings():
    return Settings(_env_file=None, environment="test", analytics_source_timeout_seconds=0.5)


@pytest.fixture
def aggregator(fast_settings):
    return AnalyticsAggregator(fast_settings)


def failing(exc):
    async def _fetch():
        raise exc

    return CallableSource(_fetch)


async def _slow():
    await asyncio.sleep(5)
    return {"users": 1}


class TestAggregate:
    """Tests for AnalyticsAggregator.aggregate."""

    @pytest.mark.asyncio
    async def test_all_sources_ok(self, aggregator):
        snapshot = await aggregator.aggregate(demo_sources(profile_count=3))

        assert snapshot.degraded == []
        assert [s.source for s in snapshot.statuses] == [
            "summary", "timeline", "classes", "experiences", "activity",
        ]
        assert len(snapshot.classes) == 4
        assert len(snapshot.experiences) == 4
        assert dict(snapshot.summary)["users"] == 3

    @pytest.mark.asyncio
    async def test_series_share_coarsest_granularity(self, aggregator):
        """Weekly timeline + daily activity -> everything weekly."""
        snapshot = await aggregator.aggregate(demo_sources())

        assert snapshot.granularity == Granularity.WEEK
        for series in snapshot.timeline + snapshot.activity:
            assert series.granularity == Granularity.WEEK
            assert all(bucket.weekday() == 0 for bucket in series.buckets)

    @pytest.mark.asyncio
    async def test_downsampling_applies_combine_rules(self, aggregator):
        snapshot = await aggregator.aggregate(demo_sources())

        week = date(2024, 9, 30)
        sessions = snapshot.series("activity", "sessions")
        active = snapshot.series("activity", "active_users")
        # 2024-10-01 .. 2024-10-06 fall in the week of 2024-09-30
        assert sessions.value_at(week) == pytest.approx(96 + 104 + 98 + 120 + 72 + 60)
        assert active.value_at(week) == pytest.approx((54 + 62 + 58 + 70 + 47 + 40) / 6)
        assert sessions.value_at(date(2024, 10, 7)) == pytest.approx(110)

    @pytest.mark.asyncio
    async def test_one_source_raises(self, aggregator):
        sources = replace(demo_sources(), classes=failing(RuntimeError("boom")))

        snapshot = await aggregator.aggregate(sources)

        assert snapshot.degraded == ["classes"]
        assert snapshot.classes == ()
        status = snapshot.status_of("classes")
        assert status.ok is False
        assert "boom" in status.reason
        # The other four slices carry data
        assert snapshot.summary
        assert snapshot.timeline
        assert snapshot.experiences
        assert snapshot.activity
        assert snapshot.to_dict()["sources"]["classes"]["status"] == "unavailable"

    @pytest.mark.asyncio
    async def test_one_source_times_out(self, aggregator):
        sources = replace(demo_sources(), summary=CallableSource(_slow))

        snapshot = await aggregator.aggregate(sources)

        assert snapshot.degraded == ["summary"]
        assert snapshot.summary == ()
        assert "timed out" in snapshot.status_of("summary").reason
        assert len(snapshot.classes) == 4

    @pytest.mark.asyncio
    async def test_source_unavailable_error_keeps_reason(self, aggregator):
        sources = replace(
            demo_sources(),
            experiences=failing(SourceUnavailableError("experiences", "maintenance window")),
        )

        snapshot = await aggregator.aggregate(sources)

        assert snapshot.status_of("experiences").reason == "maintenance window"

    @pytest.mark.asyncio
    async def test_malformed_payload(self, aggregator):
        sources = replace(demo_sources(), classes=CallableSource(lambda: {"not": "a list"}))

        snapshot = await aggregator.aggregate(sources)

        assert snapshot.degraded == ["classes"]

    @pytest.mark.asyncio
    async def test_timeline_failure_leaves_activity_daily(self, aggregator):
        sources = replace(demo_sources(), timeline=failing(RuntimeError("down")))

        snapshot = await aggregator.aggregate(sources)

        assert snapshot.granularity == Granularity.DAY
        assert snapshot.timeline == ()
        assert len(snapshot.series("activity", "sessions").points) == 7

    @pytest.mark.asyncio
    async def test_configured_minimum_granularity(self):
        aggregator = AnalyticsAggregator(
            Settings(_env_file=None, environment="test", analytics_granularity="month")
        )

        snapshot = await aggregator.aggregate(demo_sources())

        assert snapshot.granularity == Granularity.MONTH
        assert snapshot.series("activity", "sessions").buckets == [date(2024, 10, 1)]

    @pytest.mark.asyncio
    async def test_all_sources_fail(self, aggregator):
        sources = demo_sources()
        for name in ("summary", "timeline", "classes", "experiences", "activity"):
            sources = replace(sources, **{name: failing(RuntimeError(name))})

        snapshot = await aggregator.aggregate(sources)

        assert len(snapshot.degraded) == 5
        assert snapshot.granularity == Granularity.DAY
        assert snapshot.to_dict()["activity"] == {}

    @pytest.mark.asyncio
    async def test_identical_inputs_identical_output(self, aggregator):
        first = await aggregator.aggregate(demo_sources())
        second = await aggregator.aggregate(demo_sources())

        assert first.to_dict() == second.to_dict()

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        aggregator = AnalyticsAggregator(
            Settings(_env_file=None, environment="test", analytics_source_timeout_seconds=10)
        )
        sources = replace(demo_sources(), summary=CallableSource(_slow))

        task = asyncio.create_task(aggregator.aggregate(sources))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


class TestHttpSources:
    """Tests for HTTP-backed metric sources."""

    @pytest.mark.asyncio
    async def test_fetch_over_http(self, aggregator):
        payloads = {
            "/api/metrics/summary": {"users": 12, "activeStudents": 8},
            "/api/metrics/timeline": {"granularity": "week", "points": []},
            "/api/metrics/classes": [],
            "/api/metrics/experiences": [],
            "/api/metrics/activity": activity_timeline(),
        }

        def handler(request):
            if request.url.path == "/api/metrics/classes":
                return httpx.Response(503, json={"error": "unavailable"})
            return httpx.Response(200, json=payloads[request.url.path])

        async with httpx.AsyncClient(
            base_url="http://metrics.test", transport=httpx.MockTransport(handler)
        ) as client:
            snapshot = await aggregator.aggregate(http_sources(client))

        assert snapshot.degraded == ["classes"]
        assert dict(snapshot.summary) == {"active_students": 8, "users": 12}
        assert snapshot.granularity == Granularity.WEEK


class TestParsers:
    def test_summary_keeps_numbers_snake_cased(self):
        summary = parse_summary({"activeStudents": 81, "label": "x", "flag": True, "completionRate": 0.83})

        assert summary == {"active_students": 81, "completion_rate": 0.83}

    def test_series_accepts_list_payload(self):
        raw = parse_series(
            [{"date": "2024-10-01", "activeUsers": 5}, {"date": "2024-10-02"}],
            ("active_users", "sessions"),
        )

        assert raw.granularity == Granularity.DAY
        assert raw.metrics["active_users"] == [(date(2024, 10, 1), 5.0)]
        assert raw.metrics["sessions"] == []

    def test_series_point_without_timestamp(self):
        with pytest.raises(ValueError):
            parse_series({"points": [{"sessions": 3}]}, ("sessions",))
