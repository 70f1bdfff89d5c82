"""
Analytics export.

Renders a snapshot's activity slice as a downloadable dataset: CSV rows,
JSON rows, or a plain-text summary report with the activity totals.
"""

from __future__ import annotations

import base64
import csv
import io
import json
from dataclasses import dataclass
from typing import Literal

from src.analytics.models import ACTIVITY_METRICS, AnalyticsSnapshot

ExportFormat = Literal["csv", "json", "summary"]
EXPORT_FORMATS: tuple[str, ...] = ("csv", "json", "summary")

EXPORT_BASENAME = "learner-insights-activity"


@dataclass(frozen=True)
class ExportDataset:
    file_name: str
    mime: str
    content: str

    def to_base64(self) -> str:
        return base64.b64encode(self.content.encode("utf-8")).decode("ascii")

    def to_dict(self) -> dict[str, str]:
        return {"file_name": self.file_name, "mime": self.mime, "base64": self.to_base64()}


def activity_rows(snapshot: AnalyticsSnapshot) -> list[dict[str, object]]:
    """One row per bucket with every activity metric (None where missing)."""
    buckets = sorted({b for series in snapshot.activity for b in series.buckets})
    rows = []
    for bucket in buckets:
        row: dict[str, object] = {"date": bucket.isoformat()}
        for metric in ACTIVITY_METRICS:
            series = snapshot.series("activity", metric)
            row[metric] = series.value_at(bucket) if series else None
        rows.append(row)
    return rows


def build_export(snapshot: AnalyticsSnapshot, fmt: ExportFormat = "csv") -> ExportDataset:
    """
    Build an export of the activity slice.

    Args:
        snapshot: Aggregated snapshot
        fmt: "csv", "json" or "summary"

    Returns:
        ExportDataset with file name, MIME type and text content
    """
    rows = activity_rows(snapshot)

    if fmt == "json":
        content = json.dumps(
            {"granularity": snapshot.granularity.value, "activity": rows},
            indent=2,
        )
        return ExportDataset(f"{EXPORT_BASENAME}.json", "application/json", content)

    if fmt == "summary":
        return ExportDataset(f"{EXPORT_BASENAME}-summary.txt", "text/plain", summary_report(snapshot))

    if fmt != "csv":
        raise ValueError(f"Unsupported export format: {fmt}")

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=["date", *ACTIVITY_METRICS], lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return ExportDataset(f"{EXPORT_BASENAME}.csv", "text/csv", buffer.getvalue())


def summary_report(snapshot: AnalyticsSnapshot) -> str:
    """Plain-text report with total active users and total sessions."""
    totals = {}
    for metric in ("active_users", "sessions"):
        series = snapshot.series("activity", metric)
        totals[metric] = sum(point.value for point in series.points) if series else 0.0
    return (
        "Analytics report\n"
        "\n"
        f"Granularity: {snapshot.granularity.value}\n"
        f"Total active users: {totals['active_users']:.0f}\n"
        f"Total sessions: {totals['sessions']:.0f}\n"
    )
