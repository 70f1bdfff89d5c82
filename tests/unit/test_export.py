"""
Unit tests for the analytics export.
"""

import base64
import json
from datetime import date

import pytest

from src.analytics.export import activity_rows, build_export
from src.analytics.models import (
    AnalyticsSnapshot,
    Granularity,
    MetricPoint,
    MetricSeries,
    SliceStatus,
)


@pytest.fixture
def snapshot():
    day1, day2 = date(2024, 10, 1), date(2024, 10, 2)
    return AnalyticsSnapshot(
        granularity=Granularity.DAY,
        activity=(
            MetricSeries("active_users", Granularity.DAY, (MetricPoint(day1, 54.0), MetricPoint(day2, 62.0))),
            MetricSeries("sessions", Granularity.DAY, (MetricPoint(day1, 96.0), MetricPoint(day2, 104.0))),
            MetricSeries("time_spent", Granularity.DAY, (MetricPoint(day1, 3120.0),)),
        ),
        statuses=(SliceStatus("activity", True),),
    )


class TestBuildExport:
    def test_csv(self, snapshot):
        dataset = build_export(snapshot, "csv")

        assert dataset.file_name.endswith(".csv")
        assert dataset.mime == "text/csv"
        assert dataset.content.splitlines() == [
            "date,active_users,sessions,time_spent",
            "2024-10-01,54.0,96.0,3120.0",
            "2024-10-02,62.0,104.0,",
        ]

    def test_json(self, snapshot):
        dataset = build_export(snapshot, "json")

        payload = json.loads(dataset.content)
        assert dataset.mime == "application/json"
        assert payload["granularity"] == "day"
        assert payload["activity"][0] == {
            "date": "2024-10-01",
            "active_users": 54,
            "sessions": 96,
            "time_spent": 3120,
        }

    def test_base64_round_trip(self, snapshot):
        dataset = build_export(snapshot, "csv")

        encoded = dataset.to_dict()["base64"]

        assert base64.b64decode(encoded).decode("utf-8") == dataset.content

    def test_empty_activity_has_header_only(self):
        dataset = build_export(AnalyticsSnapshot(granularity=Granularity.DAY), "csv")

        assert dataset.content == "date,active_users,sessions,time_spent\n"

    def test_summary_report(self, snapshot):
        dataset = build_export(snapshot, "summary")

        assert dataset.file_name.endswith(".txt")
        assert dataset.mime == "text/plain"
        assert dataset.content.splitlines() == [
            "Analytics report",
            "",
            "Granularity: day",
            "Total active users: 116",
            "Total sessions: 200",
        ]

    def test_summary_of_empty_snapshot(self):
        dataset = build_export(AnalyticsSnapshot(granularity=Granularity.WEEK), "summary")

        assert "Total active users: 0" in dataset.content
        assert "Total sessions: 0" in dataset.content

    def test_unknown_format(self, snapshot):
        with pytest.raises(ValueError):
            build_export(snapshot, "xml")


def test_activity_rows_fill_missing_with_none(snapshot):
    rows = activity_rows(snapshot)

    assert rows[1]["time_spent"] is None
