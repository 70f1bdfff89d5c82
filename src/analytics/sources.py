"""
Analytics Metric Sources.

Each of the five dashboard slices comes from its own collaborator with its
own payload shape. This module holds the source adapters and the parsers
that turn each payload into typed rows; the aggregator is the only caller.

Payload shapes (camelCase keys are accepted and normalized):
    summary      {"users": 120, "activeStudents": 81, ...}
    timeline     {"granularity": "week", "points": [{"bucket": "2024-09-02", "completionRate": 0.64, ...}]}
    classes      [{"id": ..., "name": ..., "discipline": ..., "learners": ..., ...}]
    experiences  [{"id": ..., "title": ..., "completions": ..., "satisfaction": ..., ...}]
    activity     {"granularity": "day", "points": [{"date": "2024-10-01", "activeUsers": 54, ...}]}
"""

from __future__ import annotations

import asyncio
import inspect
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

import httpx

from src.analytics.bucketing import as_date
from src.analytics.models import (
    SOURCE_NAMES,
    ClassAggregate,
    ExperienceAggregate,
    Granularity,
)

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


class MetricSource(Protocol):
    """A single analytics collaborator."""

    async def fetch(self) -> Any:
        ...


class CallableSource:
    """
    Source backed by a local function.

    Async functions are awaited; plain functions are treated as cached or
    local lookups and run in a worker thread so they never block the loop.
    """

    def __init__(self, fn: Callable[[], Any]):
        self.fn = fn

    async def fetch(self) -> Any:
        if inspect.iscoroutinefunction(self.fn):
            return await self.fn()
        return await asyncio.to_thread(self.fn)


class HttpMetricSource:
    """Source served by the remote metrics service."""

    def __init__(self, client: httpx.AsyncClient, path: str):
        self.client = client
        self.path = path

    async def fetch(self) -> Any:
        response = await self.client.get(self.path)
        response.raise_for_status()
        return response.json()


@dataclass
class AnalyticsSources:
    """The five independently fetched inputs of one snapshot."""

    summary: MetricSource
    timeline: MetricSource
    classes: MetricSource
    experiences: MetricSource
    activity: MetricSource

    def items(self) -> list[tuple[str, MetricSource]]:
        return [(name, getattr(self, name)) for name in SOURCE_NAMES]


def http_sources(client: httpx.AsyncClient, prefix: str = "/api/metrics") -> AnalyticsSources:
    """Sources for a metrics service exposing one endpoint per slice."""
    return AnalyticsSources(
        **{name: HttpMetricSource(client, f"{prefix}/{name}") for name in SOURCE_NAMES}
    )


# ========================================
# Payload parsing
# ========================================


@dataclass(frozen=True)
class RawSeries:
    """Points of a time-series payload before re-bucketing."""

    granularity: Granularity
    metrics: dict[str, list[tuple[date, float]]]


def snake_case(key: str) -> str:
    return _CAMEL.sub("_", key).lower()


def _normalize(row: dict[str, Any]) -> dict[str, Any]:
    return {snake_case(str(key)): value for key, value in row.items()}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_summary(payload: Any) -> dict[str, float]:
    """Keep numeric scalars, sorted by key."""
    if not isinstance(payload, dict):
        raise ValueError("summary payload must be an object")
    summary = _normalize(payload)
    return {key: summary[key] for key in sorted(summary) if _is_number(summary[key])}


def parse_series(payload: Any, metric_names: tuple[str, ...]) -> RawSeries:
    """
    Parse a time-series payload.

    Each point needs a "bucket", "date" or "timestamp" key; points missing
    a metric simply contribute nothing to that metric.

    Raises:
        ValueError: If the payload or a point timestamp is malformed
    """
    if isinstance(payload, list):
        payload = {"points": payload}
    if not isinstance(payload, dict) or not isinstance(payload.get("points"), list):
        raise ValueError("series payload must contain a points list")

    granularity = Granularity(payload.get("granularity", Granularity.DAY.value))
    metrics: dict[str, list[tuple[date, float]]] = {name: [] for name in metric_names}

    for raw_point in payload["points"]:
        if not isinstance(raw_point, dict):
            raise ValueError(f"malformed point {raw_point!r}")
        point = _normalize(raw_point)
        stamp = point.get("bucket") or point.get("date") or point.get("timestamp")
        if stamp is None:
            raise ValueError(f"point without timestamp: {raw_point!r}")
        day = as_date(stamp)
        for name in metric_names:
            value = point.get(name)
            if _is_number(value):
                metrics[name].append((day, float(value)))

    return RawSeries(granularity=granularity, metrics=metrics)


def parse_classes(payload: Any) -> list[ClassAggregate]:
    if not isinstance(payload, list):
        raise ValueError("classes payload must be a list")
    rows = []
    for raw in payload:
        row = _normalize(raw)
        rows.append(
            ClassAggregate(
                class_id=str(row["id"]),
                name=row.get("name", ""),
                discipline=row.get("discipline", ""),
                learners=int(row.get("learners", 0)),
                completion=float(row.get("completion", 0.0)),
                avg_score=float(row.get("avg_score", 0.0)),
                time_spent=float(row.get("time_spent", 0.0)),
            )
        )
    return rows


def parse_experiences(payload: Any) -> list[ExperienceAggregate]:
    if not isinstance(payload, list):
        raise ValueError("experiences payload must be a list")
    rows = []
    for raw in payload:
        row = _normalize(raw)
        rows.append(
            ExperienceAggregate(
                experience_id=str(row["id"]),
                title=row.get("title", ""),
                discipline=row.get("discipline", ""),
                completions=int(row.get("completions", 0)),
                satisfaction=float(row.get("satisfaction", 0.0)),
                avg_score=float(row.get("avg_score", 0.0)),
                time_spent=float(row.get("time_spent", 0.0)),
            )
        )
    return rows
