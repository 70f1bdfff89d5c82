"""
Analytics Module - dashboard aggregation.

Components:
- sources: MetricSource adapters and payload parsers
- bucketing: Day/week/month bucket alignment
- aggregator: Concurrent fan-out into an AnalyticsSnapshot
- export: CSV/JSON activity export
"""

from src.analytics.aggregator import AnalyticsAggregator
from src.analytics.models import AnalyticsSnapshot, Granularity, MetricSeries, SliceStatus
from src.analytics.sources import AnalyticsSources, CallableSource, HttpMetricSource

__all__ = [
    "AnalyticsAggregator",
    "AnalyticsSnapshot",
    "AnalyticsSources",
    "CallableSource",
    "Granularity",
    "HttpMetricSource",
    "MetricSeries",
    "SliceStatus",
]
