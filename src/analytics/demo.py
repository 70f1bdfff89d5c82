"""
Demo analytics sources.

Dashboard figures used when no metrics service is configured. The summary
is async and counts profiles in the store; the other four are plain
functions standing in for cached lookups.
"""

from __future__ import annotations

from typing import Any

from src.analytics.sources import AnalyticsSources, CallableSource


def performance_timeline() -> dict[str, Any]:
    weeks = ["2024-09-02", "2024-09-09", "2024-09-16", "2024-09-23", "2024-09-30", "2024-10-07"]
    figures = [
        (0.64, 68, 42),
        (0.71, 74, 48),
        (0.79, 81, 52),
        (0.86, 88, 60),
        (0.84, 85, 58),
        (0.88, 89, 63),
    ]
    return {
        "granularity": "week",
        "points": [
            {"bucket": week, "completionRate": rate, "averageScore": score, "timeSpent": minutes}
            for week, (rate, score, minutes) in zip(weeks, figures)
        ],
    }


def class_performance() -> list[dict[str, Any]]:
    return [
        {"id": "class-phys-l2", "name": "Physics L2", "discipline": "physics",
         "learners": 32, "completion": 0.91, "avgScore": 87, "timeSpent": 58},
        {"id": "class-bio-prepa", "name": "Biology prep", "discipline": "biology",
         "learners": 28, "completion": 0.78, "avgScore": 82, "timeSpent": 46},
        {"id": "class-elec-m1", "name": "Electronics M1", "discipline": "electronics",
         "learners": 24, "completion": 0.74, "avgScore": 79, "timeSpent": 51},
        {"id": "class-info-licence", "name": "Computer Science L3", "discipline": "computing",
         "learners": 35, "completion": 0.69, "avgScore": 76, "timeSpent": 44},
    ]


def experience_metrics() -> list[dict[str, Any]]:
    return [
        {"id": "sim-quantum-diffraction", "title": "Quantum photon diffraction", "discipline": "physics",
         "completions": 186, "satisfaction": 4.6, "avgScore": 88, "timeSpent": 48},
        {"id": "sim-bio-cell", "title": "Augmented cell exploration", "discipline": "biology",
         "completions": 214, "satisfaction": 4.8, "avgScore": 92, "timeSpent": 36},
        {"id": "sim-electro-circuit", "title": "Amplifier circuit synthesis", "discipline": "electronics",
         "completions": 142, "satisfaction": 4.2, "avgScore": 84, "timeSpent": 54},
        {"id": "sim-algo-complexity", "title": "Algorithm complexity", "discipline": "computing",
         "completions": 198, "satisfaction": 4.4, "avgScore": 81, "timeSpent": 40},
    ]


def activity_timeline() -> dict[str, Any]:
    rows = [
        ("2024-10-01", 54, 96, 3120),
        ("2024-10-02", 62, 104, 3540),
        ("2024-10-03", 58, 98, 3300),
        ("2024-10-04", 70, 120, 4020),
        ("2024-10-05", 47, 72, 2510),
        ("2024-10-06", 40, 60, 2100),
        ("2024-10-07", 65, 110, 3800),
    ]
    return {
        "granularity": "day",
        "points": [
            {"date": day, "activeUsers": users, "sessions": sessions, "timeSpent": seconds}
            for day, users, sessions, seconds in rows
        ],
    }


def demo_sources(profile_count: int = 0) -> AnalyticsSources:
    """Demo sources; the summary reflects the number of known profiles."""

    async def summary() -> dict[str, Any]:
        users = max(profile_count, 1)
        return {
            "users": users,
            "simulations": 3,
            "labs": 3,
            "resources": 4,
            "activeStudents": max(42, int(users * 0.68)),
            "avgSessionMinutes": 46,
            "completionRate": 0.83,
        }

    return AnalyticsSources(
        summary=CallableSource(summary),
        timeline=CallableSource(performance_timeline),
        classes=CallableSource(class_performance),
        experiences=CallableSource(experience_metrics),
        activity=CallableSource(activity_timeline),
    )
