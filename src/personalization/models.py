"""
Personalization Data Models.

Dataclasses for the resolve -> diagnose -> recommend pipeline:
- LearnerProfile: identity, running mastery map and append-only history
- ActivityEvent: one timestamped attempt, completion or score
- DiagnosticReport: derived per-skill mastery, ranked gaps, readiness
- CatalogItem: read-only content library entry
- RecommendationList: ranked content with rationale tags and priority tiers

Every model exposes to_dict() returning JSON-serializable data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from src.core.mastery import MasteryLevel

USER_ROLES = ("student", "teacher", "admin")


class Role(str, Enum):
    """Learner role as supplied by the identity collaborator."""

    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str | None) -> Role | None:
        """Case-insensitive lookup; None for unknown roles."""
        normalized = (value or "").strip().lower()
        if normalized in USER_ROLES:
            return cls(normalized)
        return None


class ActivityKind(str, Enum):
    """Kinds of recorded learner activity."""

    ATTEMPT = "attempt"
    COMPLETION = "completion"
    SCORE = "score"


class EngagementTrend(str, Enum):
    RISING = "rising"
    STABLE = "stable"
    FALLING = "falling"


@dataclass(frozen=True)
class ActivityEvent:
    """
    A single recorded learner event.

    outcome is 1.0/0.0 for a successful/failed attempt and the normalized
    score for score events. Completions carry no outcome and are not used
    as mastery evidence.
    """

    kind: ActivityKind
    skill_id: str
    occurred_at: datetime
    outcome: float | None = None
    content_id: str | None = None
    error_label: str | None = None

    def __post_init__(self):
        # Naive timestamps (e.g. read back from SQLite) are taken as UTC.
        if self.occurred_at.tzinfo is None:
            object.__setattr__(self, "occurred_at", self.occurred_at.replace(tzinfo=timezone.utc))

    @property
    def is_evidence(self) -> bool:
        """Whether this event counts as an observation of skill mastery."""
        return self.kind in (ActivityKind.ATTEMPT, ActivityKind.SCORE) and self.outcome is not None

    @classmethod
    def attempt(
        cls,
        skill_id: str,
        success: bool,
        occurred_at: datetime,
        content_id: str | None = None,
        error_label: str | None = None,
    ) -> ActivityEvent:
        return cls(
            kind=ActivityKind.ATTEMPT,
            skill_id=skill_id,
            occurred_at=occurred_at,
            outcome=1.0 if success else 0.0,
            content_id=content_id,
            error_label=error_label,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "skill_id": self.skill_id,
            "occurred_at": self.occurred_at.isoformat(),
            "outcome": self.outcome,
            "content_id": self.content_id,
            "error_label": self.error_label,
        }


@dataclass
class LearnerProfile:
    """
    Canonical learner profile.

    learner_id never changes after creation. Mastery values stay within
    [0, 1] and history only grows, in time order; both are maintained by
    the profile store when it records activity.

    name_is_placeholder and role_is_default mark identity fields that were
    filled in by default rather than supplied, so a later hint may replace them.
    """

    learner_id: str
    name: str
    role: Role = Role.STUDENT
    mastery: dict[str, float] = field(default_factory=dict)
    history: list[ActivityEvent] = field(default_factory=list)
    name_is_placeholder: bool = False
    role_is_default: bool = False

    def __setattr__(self, key: str, value: Any) -> None:
        if key == "learner_id" and "learner_id" in self.__dict__:
            raise AttributeError("learner_id is immutable")
        super().__setattr__(key, value)

    @property
    def last_activity_at(self) -> datetime | None:
        return self.history[-1].occurred_at if self.history else None

    def evidence_by_skill(self) -> dict[str, list[float]]:
        """Outcomes per skill, oldest first, in first-seen skill order."""
        evidence: dict[str, list[float]] = {}
        for event in self.history:
            if event.is_evidence:
                evidence.setdefault(event.skill_id, []).append(event.outcome)
        return evidence

    def to_dict(self) -> dict[str, Any]:
        return {
            "learner_id": self.learner_id,
            "name": self.name,
            "role": self.role.value,
            "mastery": {skill: round(value, 4) for skill, value in sorted(self.mastery.items())},
            "history": [event.to_dict() for event in self.history],
        }


@dataclass(frozen=True)
class SkillMastery:
    """Per-skill mastery estimate in a diagnostic report."""

    skill_id: str
    mastery: float
    evidence_count: int
    level: MasteryLevel

    def to_dict(self) -> dict[str, Any]:
        return {
            "skill_id": self.skill_id,
            "mastery": round(self.mastery, 4),
            "evidence_count": self.evidence_count,
            "level": self.level.value,
        }


@dataclass(frozen=True)
class SkillGap:
    """A skill below the gap threshold with at least one observation."""

    skill_id: str
    severity: float
    evidence_count: int
    mastery: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "skill_id": self.skill_id,
            "severity": round(self.severity, 4),
            "evidence_count": self.evidence_count,
            "mastery": round(self.mastery, 4),
        }


@dataclass(frozen=True)
class ErrorCluster:
    """A recurring error label with the remediation suggested for it."""

    label: str
    frequency: int
    remediation: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "frequency": self.frequency, "remediation": self.remediation}


@dataclass(frozen=True)
class DiagnosticReport:
    """
    Diagnostic snapshot of a profile's history at generation time.

    readiness is None (JSON null) when the learner has no observed skill;
    absence of evidence is not scored as failure.
    """

    learner_id: str
    skills: tuple[SkillMastery, ...]
    gaps: tuple[SkillGap, ...]
    readiness: float | None
    engagement_trend: EngagementTrend = EngagementTrend.STABLE
    error_clusters: tuple[ErrorCluster, ...] = ()
    history_length: int = 0

    def gap_severity(self) -> dict[str, float]:
        return {gap.skill_id: gap.severity for gap in self.gaps}

    def skill_mastery(self) -> dict[str, float]:
        return {skill.skill_id: skill.mastery for skill in self.skills}

    def to_dict(self) -> dict[str, Any]:
        return {
            "learner_id": self.learner_id,
            "readiness": round(self.readiness, 4) if self.readiness is not None else None,
            "engagement_trend": self.engagement_trend.value,
            "skills": [skill.to_dict() for skill in self.skills],
            "gaps": [gap.to_dict() for gap in self.gaps],
            "error_clusters": [cluster.to_dict() for cluster in self.error_clusters],
            "history_length": self.history_length,
        }


DIFFICULTY_LABELS = {
    "beginner": 0.25,
    "debutant": 0.25,
    "facile": 0.25,
    "intermediate": 0.5,
    "intermediaire": 0.5,
    "advanced": 0.75,
    "avance": 0.75,
}


def parse_difficulty(value: float | int | str | None) -> float:
    """
    Normalize a catalog difficulty to [0, 1].

    Accepts a number in [0, 1], a numeric string, or a level label
    ("beginner", "intermediaire", ...). Unknown labels and missing values
    map to the middle of the scale.

    Raises:
        TypeError: If value is neither a number nor a string
    """
    if value is None:
        return 0.5
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return DIFFICULTY_LABELS.get(value.strip().lower(), 0.5)
    if not isinstance(value, (int, float)):
        raise TypeError(f"difficulty must be a number or a label, not {type(value).__name__}")
    return min(1.0, max(0.0, float(value)))


def parse_skill_ids(value: Any) -> tuple[str, ...]:
    """
    Normalize a skill list field: a single id or a list of ids.

    Raises:
        TypeError: If value is neither a string nor a list of strings
    """
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise TypeError(f"expected a skill id or a list of skill ids, got {value!r}")
    return tuple(value)


class Priority(str, Enum):
    """Priority tier of a recommendation, by rank."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def for_rank(cls, rank: int) -> Priority:
        if rank == 0:
            return cls.HIGH
        if rank == 1:
            return cls.MEDIUM
        return cls.LOW


RESOURCE_KIND = "resource"


@dataclass(frozen=True)
class CatalogItem:
    """Read-only content library entry."""

    item_id: str
    target_skills: tuple[str, ...]
    difficulty: float = 0.5
    prerequisites: tuple[str, ...] = ()
    title: str = ""
    kind: str = "simulation"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogItem:
        """
        Build an item from a catalog entry.

        Raises:
            KeyError: If the entry has no id
            TypeError: If a field has the wrong shape
        """
        return cls(
            item_id=str(data["id"]),
            target_skills=parse_skill_ids(data.get("target_skills") or data.get("skills")),
            difficulty=parse_difficulty(data.get("difficulty")),
            prerequisites=parse_skill_ids(data.get("prerequisites")),
            title=str(data.get("title") or ""),
            kind=str(data.get("kind") or "simulation"),
        )


@dataclass(frozen=True)
class Recommendation:
    item_id: str
    score: float
    rationale: tuple[str, ...]
    title: str = ""
    kind: str = "simulation"
    priority: Priority = Priority.LOW

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "title": self.title,
            "kind": self.kind,
            "priority": self.priority.value,
            "score": round(self.score, 4),
            "rationale": list(self.rationale),
        }


@dataclass(frozen=True)
class RecommendationList:
    """
    Recommendations in rank order, most relevant first.

    Serialized both as one ranked list and split into simulations (every
    hands-on kind) and resources, each keeping rank order.
    """

    learner_id: str
    items: tuple[Recommendation, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    @property
    def item_ids(self) -> list[str]:
        return [item.item_id for item in self.items]

    @property
    def simulations(self) -> list[Recommendation]:
        return [item for item in self.items if item.kind != RESOURCE_KIND]

    @property
    def resources(self) -> list[Recommendation]:
        return [item for item in self.items if item.kind == RESOURCE_KIND]

    def to_dict(self) -> dict[str, Any]:
        return {
            "learner_id": self.learner_id,
            "items": [item.to_dict() for item in self.items],
            "simulations": [item.item_id for item in self.simulations],
            "resources": [item.item_id for item in self.resources],
        }
