"""
Diagnostic Engine.

Derives a DiagnosticReport from a learner's activity history:
- Per-skill mastery as a recency-weighted success rate
- Gaps: skills below the threshold with at least one observation
- Readiness: mean mastery across observed skills
- Error clusters with remediation text, and engagement trend for the dashboard

Mastery weighting:
    For a skill with n observations ordered oldest first, observation i has
    weight decay^(n-1-i). With the default decay of 0.7, a failure followed
    by a success gives (0*0.7 + 1*1) / 1.7 = 0.588.

Gap severity:
    severity = (threshold - mastery) * min(1, evidence / saturation)

    Confidence saturates so that a single bad attempt cannot produce a
    maximal severity.
"""

from __future__ import annotations

from collections import Counter

from loguru import logger

from config import Settings
from src.core.errors import check_invariant, clamp_unit
from src.core.mastery import MasteryLevel, recency_weighted_mastery
from src.personalization.models import (
    DiagnosticReport,
    EngagementTrend,
    ErrorCluster,
    LearnerProfile,
    SkillGap,
    SkillMastery,
)

# Readiness value reported when no skill has been observed.
READINESS_UNKNOWN = None

RISING_READINESS = 0.8
FALLING_READINESS = 0.6


class DiagnosticEngine:
    """
    Compute per-skill mastery and gaps from a profile's history.

    Stateless apart from configuration; safe to share across requests.
    """

    def __init__(self, settings: Settings):
        self.decay = settings.mastery_decay
        self.threshold = settings.gap_threshold
        self.saturation = settings.evidence_saturation
        self.strict = bool(settings.strict_invariants)
        self.remediation_rules = {k.lower(): v for k, v in settings.remediation_rules.items()}
        self.default_remediation = settings.default_remediation

    def diagnose(self, profile: LearnerProfile) -> DiagnosticReport:
        """
        Build a diagnostic report for a profile.

        Skills with no observed attempts are left out entirely. An empty
        history yields no gaps and readiness READINESS_UNKNOWN.

        Args:
            profile: Learner profile with its activity history

        Returns:
            DiagnosticReport tied to the current history state
        """
        skills = []
        for skill_id, outcomes in sorted(profile.evidence_by_skill().items()):
            mastery = self.estimate_mastery(outcomes)
            level = MasteryLevel.from_score(mastery, self.threshold)
            skills.append(SkillMastery(skill_id, mastery, len(outcomes), level))

        gaps = self._rank_gaps(skills)
        readiness = (
            sum(s.mastery for s in skills) / len(skills) if skills else READINESS_UNKNOWN
        )

        report = DiagnosticReport(
            learner_id=profile.learner_id,
            skills=tuple(skills),
            gaps=tuple(gaps),
            readiness=readiness,
            engagement_trend=self._engagement_trend(readiness),
            error_clusters=tuple(self._error_clusters(profile)),
            history_length=len(profile.history),
        )
        logger.debug(
            f"Diagnosed {profile.learner_id}: {len(skills)} skills, {len(gaps)} gaps, "
            f"readiness={readiness}"
        )
        return report

    def estimate_mastery(self, outcomes: list[float]) -> float:
        """Recency-weighted mastery for one skill's outcomes (oldest first)."""
        mastery = recency_weighted_mastery(outcomes, self.decay)
        return clamp_unit(mastery if mastery is not None else 0.0, "mastery", self.strict)

    def severity(self, mastery: float, evidence_count: int) -> float:
        confidence = min(1.0, evidence_count / self.saturation)
        return (self.threshold - mastery) * confidence

    def _rank_gaps(self, skills: list[SkillMastery]) -> list[SkillGap]:
        gaps = [
            SkillGap(
                skill_id=s.skill_id,
                severity=self.severity(s.mastery, s.evidence_count),
                evidence_count=s.evidence_count,
                mastery=s.mastery,
            )
            for s in skills
            if s.evidence_count >= 1 and s.mastery < self.threshold
        ]
        gaps.sort(key=lambda g: (-g.severity, g.skill_id))

        # NaN severities would break the ordering silently.
        ordered = all(a.severity >= b.severity for a, b in zip(gaps, gaps[1:]))
        check_invariant(ordered, "gap severities not descending", self.strict)
        return gaps

    @staticmethod
    def _engagement_trend(readiness: float | None) -> EngagementTrend:
        if readiness is None:
            return EngagementTrend.STABLE
        if readiness > RISING_READINESS:
            return EngagementTrend.RISING
        if readiness < FALLING_READINESS:
            return EngagementTrend.FALLING
        return EngagementTrend.STABLE

    def remediation_for(self, label: str) -> str:
        """Remediation of the first rule whose keyword appears in the label."""
        lowered = label.lower()
        for keyword, remediation in self.remediation_rules.items():
            if keyword in lowered:
                return remediation
        return self.default_remediation

    def _error_clusters(self, profile: LearnerProfile) -> list[ErrorCluster]:
        # Counter preserves first-seen order; sorted() is stable on ties.
        counts = Counter(e.error_label for e in profile.history if e.error_label)
        ranked = sorted(counts.items(), key=lambda item: -item[1])
        return [
            ErrorCluster(label, frequency, self.remediation_for(label))
            for label, frequency in ranked
        ]
