"""
Analytics Data Models.

- Granularity: bucket sizes, ordered day < week < month
- MetricSeries: ordered, bucket-unique (bucket, value) points
- ClassAggregate / ExperienceAggregate: per-cohort and per-experience rows
- SliceStatus: whether a source delivered data or degraded
- AnalyticsSnapshot: immutable composition of the five slices
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from src.core.errors import InvariantViolation

SOURCE_NAMES = ("summary", "timeline", "classes", "experiences", "activity")


class Granularity(str, Enum):
    """Time bucket size."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def rank(self) -> int:
        return _GRANULARITY_RANK[self]

    @classmethod
    def coarsest(cls, *granularities: Granularity) -> Granularity:
        return max(granularities, key=lambda g: g.rank)


_GRANULARITY_RANK = {Granularity.DAY: 0, Granularity.WEEK: 1, Granularity.MONTH: 2}


class Combine(str, Enum):
    """How values falling into the same bucket are merged when downsampling."""

    SUM = "sum"
    MEAN = "mean"


# Metric name -> combine rule, in output order.
TIMELINE_METRICS = {
    "completion_rate": Combine.MEAN,
    "average_score": Combine.MEAN,
    "time_spent": Combine.MEAN,
}
ACTIVITY_METRICS = {
    "active_users": Combine.MEAN,
    "sessions": Combine.SUM,
    "time_spent": Combine.SUM,
}


@dataclass(frozen=True)
class MetricPoint:
    bucket: date
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"bucket": self.bucket.isoformat(), "value": round(self.value, 4)}


@dataclass(frozen=True)
class MetricSeries:
    """A named series whose buckets are strictly increasing."""

    name: str
    granularity: Granularity
    points: tuple[MetricPoint, ...] = ()

    def __post_init__(self):
        buckets = [p.bucket for p in self.points]
        if any(a >= b for a, b in zip(buckets, buckets[1:])):
            raise InvariantViolation(f"series {self.name} buckets not strictly increasing")

    @property
    def buckets(self) -> list[date]:
        return [p.bucket for p in self.points]

    def value_at(self, bucket: date) -> float | None:
        for point in self.points:
            if point.bucket == bucket:
                return point.value
        return None

    def to_list(self) -> list[dict[str, Any]]:
        return [point.to_dict() for point in self.points]


@dataclass(frozen=True)
class ClassAggregate:
    class_id: str
    name: str
    discipline: str
    learners: int
    completion: float
    avg_score: float
    time_spent: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.class_id,
            "name": self.name,
            "discipline": self.discipline,
            "learners": self.learners,
            "completion": self.completion,
            "avg_score": self.avg_score,
            "time_spent": self.time_spent,
        }


@dataclass(frozen=True)
class ExperienceAggregate:
    experience_id: str
    title: str
    discipline: str
    completions: int
    satisfaction: float
    avg_score: float
    time_spent: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.experience_id,
            "title": self.title,
            "discipline": self.discipline,
            "completions": self.completions,
            "satisfaction": self.satisfaction,
            "avg_score": self.avg_score,
            "time_spent": self.time_spent,
        }


@dataclass(frozen=True)
class SliceStatus:
    source: str
    ok: bool
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"status": "ok" if self.ok else "unavailable", "reason": self.reason}


@dataclass(frozen=True)
class AnalyticsSnapshot:
    """
    Dashboard analytics at read time.

    All series share `granularity`. A slice whose source failed is empty and
    its status says "unavailable".
    """

    granularity: Granularity
    summary: tuple[tuple[str, float], ...] = ()
    timeline: tuple[MetricSeries, ...] = ()
    classes: tuple[ClassAggregate, ...] = ()
    experiences: tuple[ExperienceAggregate, ...] = ()
    activity: tuple[MetricSeries, ...] = ()
    statuses: tuple[SliceStatus, ...] = field(default_factory=tuple)

    @property
    def degraded(self) -> list[str]:
        return [status.source for status in self.statuses if not status.ok]

    def status_of(self, source: str) -> SliceStatus | None:
        for status in self.statuses:
            if status.source == source:
                return status
        return None

    def series(self, slice_name: str, metric: str) -> MetricSeries | None:
        for series in getattr(self, slice_name):
            if series.name == metric:
                return series
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "granularity": self.granularity.value,
            "summary": dict(self.summary),
            "timeline": {s.name: s.to_list() for s in self.timeline},
            "classes": [c.to_dict() for c in self.classes],
            "experiences": [e.to_dict() for e in self.experiences],
            "activity": {s.name: s.to_list() for s in self.activity},
            "sources": {status.source: status.to_dict() for status in self.statuses},
            "degraded": self.degraded,
        }
