"""
Analytics Aggregator.

Fans out to the five metric sources concurrently and merges what comes back
into one AnalyticsSnapshot.

Resilience contract:
    Every source runs as its own task with its own timeout and its own
    failure handling. A source that raises, times out or returns a
    malformed payload degrades to an empty slice marked "unavailable";
    the other slices are unaffected and no exception reaches the caller.
    Cancellation of the caller cancels all fetches and nothing is kept.

Bucket alignment:
    Timeline and activity series are re-bucketed to the coarsest
    granularity among the delivered series and the configured minimum,
    so all series in a snapshot are directly comparable.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from loguru import logger

from config import Settings
from src.analytics.bucketing import rebucket
from src.analytics.models import (
    ACTIVITY_METRICS,
    TIMELINE_METRICS,
    AnalyticsSnapshot,
    Combine,
    Granularity,
    MetricSeries,
    SliceStatus,
)
from src.analytics.sources import (
    AnalyticsSources,
    MetricSource,
    RawSeries,
    parse_classes,
    parse_experiences,
    parse_series,
    parse_summary,
)
from src.core.errors import SourceUnavailableError

PARSERS: dict[str, Callable[[Any], Any]] = {
    "summary": parse_summary,
    "timeline": lambda payload: parse_series(payload, tuple(TIMELINE_METRICS)),
    "classes": parse_classes,
    "experiences": parse_experiences,
    "activity": lambda payload: parse_series(payload, tuple(ACTIVITY_METRICS)),
}


class AnalyticsAggregator:
    """
    Build dashboard snapshots from independent metric sources.

    Usage:
        aggregator = AnalyticsAggregator(settings)
        snapshot = await aggregator.aggregate(sources)
        if snapshot.degraded:
            ...  # show "incomplete data"
    """

    def __init__(self, settings: Settings):
        self.timeout = settings.analytics_source_timeout_seconds
        self.min_granularity = Granularity(settings.analytics_granularity)

    async def aggregate(self, sources: AnalyticsSources) -> AnalyticsSnapshot:
        """
        Fetch all five slices concurrently and compose a snapshot.

        Args:
            sources: The five metric sources

        Returns:
            AnalyticsSnapshot; failed slices are empty and flagged
        """
        results = await asyncio.gather(
            *(self._fetch_slice(name, source) for name, source in sources.items())
        )
        parsed = {status.source: value for value, status in results}
        statuses = tuple(status for _, status in results)

        timeline: RawSeries | None = parsed["timeline"]
        activity: RawSeries | None = parsed["activity"]
        granularity = self.target_granularity(
            [series.granularity for series in (timeline, activity) if series is not None]
        )

        snapshot = AnalyticsSnapshot(
            granularity=granularity,
            summary=tuple((parsed["summary"] or {}).items()),
            timeline=self._align(timeline, TIMELINE_METRICS, granularity),
            classes=tuple(parsed["classes"] or ()),
            experiences=tuple(parsed["experiences"] or ()),
            activity=self._align(activity, ACTIVITY_METRICS, granularity),
            statuses=statuses,
        )
        if snapshot.degraded:
            logger.warning(f"Analytics snapshot degraded: {snapshot.degraded}")
        return snapshot

    def target_granularity(self, granularities: list[Granularity]) -> Granularity:
        """Coarsest of the delivered granularities and the configured minimum."""
        return Granularity.coarsest(self.min_granularity, *granularities)

    async def _fetch_slice(self, name: str, source: MetricSource) -> tuple[Any, SliceStatus]:
        try:
            payload = await asyncio.wait_for(source.fetch(), timeout=self.timeout)
            return PARSERS[name](payload), SliceStatus(source=name, ok=True)
        except asyncio.TimeoutError:
            error = SourceUnavailableError(name, f"timed out after {self.timeout}s")
        except SourceUnavailableError as exc:
            error = exc
        except Exception as exc:  # Each source degrades independently
            error = SourceUnavailableError(name, f"{type(exc).__name__}: {exc}")

        logger.warning(f"Analytics source unavailable: {error}")
        return None, SliceStatus(source=name, ok=False, reason=error.reason)

    @staticmethod
    def _align(
        raw: RawSeries | None,
        metrics: dict[str, Combine],
        granularity: Granularity,
    ) -> tuple[MetricSeries, ...]:
        if raw is None:
            return ()
        return tuple(
            rebucket(name, raw.metrics.get(name, []), raw.granularity, granularity, combine)
            for name, combine in metrics.items()
        )
