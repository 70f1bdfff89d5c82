"""
Demo data for the personalization pipeline.

One preset learner ("student-demo") and a small catalog of simulations,
labs and resources, used when INSIGHTS_SEED_DEMO_PROFILES is on and no
catalog_url is configured.
"""

from __future__ import annotations

from datetime import datetime, timezone

from src.personalization.models import ActivityEvent, ActivityKind, CatalogItem, LearnerProfile, Role
from src.personalization.store import apply_activity

DEMO_LEARNER_ID = "student-demo"


def _at(day: int, hour: int) -> datetime:
    return datetime(2024, 10, day, hour, 0, tzinfo=timezone.utc)


def demo_profiles(decay: float = 0.7) -> list[LearnerProfile]:
    """Preset profiles with a recorded history."""
    profile = LearnerProfile(learner_id=DEMO_LEARNER_ID, name="Sara Kaci", role=Role.STUDENT)
    events = [
        ActivityEvent.attempt("cell-biology", False, _at(1, 9), "sim-bio-cell", "ATP vs ADP confusion"),
        ActivityEvent.attempt("cell-biology", True, _at(1, 10), "sim-bio-cell"),
        ActivityEvent(ActivityKind.SCORE, "cell-biology", _at(1, 11), 0.92, "sim-bio-cell"),
        ActivityEvent(ActivityKind.COMPLETION, "cell-biology", _at(1, 11), None, "sim-bio-cell"),
        ActivityEvent.attempt(
            "wave-interference", False, _at(2, 14), "sim-quantum-diffraction",
            "Fringe spacing calculation error",
        ),
        ActivityEvent.attempt(
            "wave-interference", False, _at(2, 15), "sim-quantum-diffraction",
            "Sensor orientation",
        ),
        ActivityEvent(ActivityKind.SCORE, "optics", _at(2, 16), 0.58, "sim-quantum-diffraction"),
        ActivityEvent.attempt(
            "wave-interference", True, _at(3, 10), "sim-quantum-diffraction",
        ),
        ActivityEvent.attempt(
            "wave-interference", False, _at(3, 11), "sim-quantum-diffraction",
            "Fringe spacing calculation error",
        ),
    ]
    for event in events:
        apply_activity(profile, event, decay, strict=True)
    return [profile]


def demo_catalog() -> list[CatalogItem]:
    """Catalog in library order."""
    return [
        CatalogItem(
            item_id="sim-quantum-diffraction",
            title="Quantum photon diffraction",
            target_skills=("wave-interference", "optics"),
            difficulty=0.5,
            prerequisites=("optics",),
        ),
        CatalogItem(
            item_id="res-phys-fiche-diffraction",
            title="Lab sheet: interference and diffraction",
            target_skills=("wave-interference",),
            difficulty=0.25,
            kind="resource",
        ),
        CatalogItem(
            item_id="sim-bio-cell",
            title="Augmented cell exploration",
            target_skills=("cell-biology",),
            difficulty=0.25,
        ),
        CatalogItem(
            item_id="lab-physique",
            title="Physics lab: optical bench",
            target_skills=("optics", "kinematics"),
            difficulty=0.5,
            kind="lab",
        ),
        CatalogItem(
            item_id="sim-electro-circuit",
            title="Amplifier circuit synthesis",
            target_skills=("circuits",),
            difficulty=0.75,
            prerequisites=("kinematics",),
        ),
        CatalogItem(
            item_id="res-phys-manuel-quantique",
            title="Digital handbook: wave-particle duality",
            target_skills=("optics", "wave-interference"),
            difficulty=0.75,
            prerequisites=("wave-interference",),
            kind="resource",
        ),
    ]
