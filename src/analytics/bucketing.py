"""
Time bucketing for analytics series.

Buckets are identified by their start date:
- day: the date itself
- week: the ISO week's Monday
- month: the first of the month

Series are only ever downsampled. Re-bucketing to a finer granularity than
the input would fabricate data and is rejected.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from src.analytics.models import Combine, Granularity, MetricPoint, MetricSeries
from src.core.errors import InvariantViolation


def as_date(value: date | datetime | str) -> date:
    """Coerce a timestamp-ish value to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    raise ValueError(f"not a timestamp: {value!r}")


def bucket_start(value: date | datetime | str, granularity: Granularity) -> date:
    """Start date of the bucket containing value."""
    day = as_date(value)
    if granularity is Granularity.DAY:
        return day
    if granularity is Granularity.WEEK:
        return day - timedelta(days=day.weekday())
    return day.replace(day=1)


def rebucket(
    name: str,
    points: Iterable[tuple[date | datetime | str, float]],
    source_granularity: Granularity,
    target: Granularity,
    combine: Combine,
) -> MetricSeries:
    """
    Re-bucket raw points into a series at the target granularity.

    Points sharing a bucket are merged with `combine`. Output buckets are
    sorted ascending.

    Raises:
        InvariantViolation: If target is finer than source_granularity
    """
    if target.rank < source_granularity.rank:
        raise InvariantViolation(
            f"cannot upsample {name} from {source_granularity.value} to {target.value}"
        )

    grouped: dict[date, list[float]] = {}
    for timestamp, value in points:
        grouped.setdefault(bucket_start(timestamp, target), []).append(float(value))

    merged = []
    for bucket in sorted(grouped):
        values = grouped[bucket]
        total = sum(values)
        merged.append(
            MetricPoint(bucket, total if combine is Combine.SUM else total / len(values))
        )
    return MetricSeries(name=name, granularity=target, points=tuple(merged))
