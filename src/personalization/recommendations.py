"""
Recommendation Engine.

Ranks catalog content against a learner's diagnostic report.

Score for an item:
    relevance   = sum of gap severity over the item's target skills
    prereq gate = relevance * prerequisite_penalty if any prerequisite is
                  below prerequisite_floor (demoted, not removed)
    difficulty  = multiplied by a fit factor: 1 inside the tolerance band
                  around (learner level + stretch), then linearly lower
                  down to difficulty_floor_factor

Items scoring <= 0 are dropped. Ranking is a stable sort on score, so
ties keep catalog order and identical inputs give identical output. The
top item is high priority, the second medium, the rest low.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from loguru import logger

from config import Settings
from src.personalization.models import (
    CatalogItem,
    DiagnosticReport,
    LearnerProfile,
    Priority,
    Recommendation,
    RecommendationList,
)


class RecommendationEngine:
    """Score and rank candidate content for one learner."""

    def __init__(self, settings: Settings):
        self.max_items = settings.max_recommendations
        self.prerequisite_floor = settings.prerequisite_floor
        self.prerequisite_penalty = settings.prerequisite_penalty
        self.stretch = settings.difficulty_stretch
        self.tolerance = settings.difficulty_tolerance
        self.floor_factor = settings.difficulty_floor_factor
        self.default_level = settings.default_learner_level

    def recommend(
        self,
        profile: LearnerProfile,
        diagnostic: DiagnosticReport,
        catalog: Sequence[CatalogItem],
    ) -> RecommendationList:
        """
        Rank catalog items for a learner.

        Args:
            profile: Learner profile (running mastery used for prerequisites)
            diagnostic: Diagnostic report for the same profile
            catalog: Candidate items in catalog order

        Returns:
            RecommendationList, possibly empty, at most max_items long
        """
        if not catalog:
            return RecommendationList(learner_id=profile.learner_id)

        severities = diagnostic.gap_severity()
        mastery = {**profile.mastery, **diagnostic.skill_mastery()}
        target = self.target_difficulty(diagnostic.readiness)

        scored = []
        for item in catalog:
            recommendation = self._score_item(item, severities, mastery, target)
            if recommendation.score > 0:
                scored.append(recommendation)

        # sorted() is stable: equal scores stay in catalog order.
        ranked = sorted(scored, key=lambda r: -r.score)[: self.max_items]
        ranked = [replace(r, priority=Priority.for_rank(rank)) for rank, r in enumerate(ranked)]
        logger.debug(
            f"Ranked {len(catalog)} items for {profile.learner_id}: kept {len(ranked)}"
        )
        return RecommendationList(learner_id=profile.learner_id, items=tuple(ranked))

    def target_difficulty(self, readiness: float | None) -> float:
        """Zone of proximal difficulty: just above the learner's level."""
        level = readiness if readiness is not None else self.default_level
        return min(1.0, level + self.stretch)

    def difficulty_factor(self, difficulty: float, target: float) -> float:
        excess = abs(difficulty - target) - self.tolerance
        if excess <= 0:
            return 1.0
        return max(self.floor_factor, 1.0 - excess)

    def _score_item(
        self,
        item: CatalogItem,
        severities: dict[str, float],
        mastery: dict[str, float],
        target: float,
    ) -> Recommendation:
        rationale = []
        relevance = 0.0
        for skill in dict.fromkeys(item.target_skills):
            severity = severities.get(skill, 0.0)
            if severity > 0:
                relevance += severity
                rationale.append(f"gap:{skill}")

        score = relevance
        # Unobserved prerequisites count as unmet.
        if any(mastery.get(p, 0.0) < self.prerequisite_floor for p in item.prerequisites):
            score *= self.prerequisite_penalty
            rationale.append("prerequisite-gated")

        factor = self.difficulty_factor(item.difficulty, target)
        score *= factor
        rationale.append("proximal-difficulty" if factor == 1.0 else "difficulty-mismatch")

        return Recommendation(
            item_id=item.item_id,
            score=score,
            rationale=tuple(rationale),
            title=item.title,
            kind=item.kind,
        )
