"""
Core Mastery Module.

Shared mastery vocabulary for the diagnostic and recommendation engines.

Design:
- MasteryLevel: Dashboard band (struggling, progressing, secure)
- recency_weighted_mastery: Exponentially decayed success rate over events
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum


SECURE_MASTERY = 0.8


class MasteryLevel(str, Enum):
    """
    Dashboard band for a skill's mastery estimate.

    Bands follow the diagnostic thresholds: anything under the gap threshold
    is a gap, and 0.8 is where the engagement trend turns "rising".
    """

    STRUGGLING = "struggling"  # below the gap threshold
    PROGRESSING = "progressing"  # gap threshold up to 0.8
    SECURE = "secure"  # above 0.8

    @classmethod
    def from_score(cls, score: float, gap_threshold: float = 0.6) -> MasteryLevel:
        """
        Band a 0-1 mastery estimate.

        Args:
            score: Mastery estimate between 0 and 1
            gap_threshold: Score under which the skill is reported as a gap
        """
        if score < gap_threshold:
            return cls.STRUGGLING
        if score <= SECURE_MASTERY:
            return cls.PROGRESSING
        return cls.SECURE

    @property
    def display_name(self) -> str:
        return self.value.title()

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return _LEVEL_COLORS[self]


_LEVEL_COLORS = {
    MasteryLevel.STRUGGLING: "red",
    MasteryLevel.PROGRESSING: "yellow",
    MasteryLevel.SECURE: "green",
}


def recency_weighted_mastery(outcomes: Sequence[float], decay: float) -> float | None:
    """
    Recency-weighted success rate.

    Outcomes are ordered oldest first. The i-th of n outcomes gets weight
    decay^(n-1-i), so the most recent outcome weighs 1, the one before it
    `decay`, then decay^2, and so on:

        mastery = sum(w_i * o_i) / sum(w_i)

    With decay=1 this is the plain mean.

    Args:
        outcomes: Outcomes in [0, 1], oldest first
        decay: Per-step decay factor in (0, 1]

    Returns:
        Weighted mastery in [0, 1], or None when there are no outcomes
    """
    if not outcomes:
        return None

    n = len(outcomes)
    weighted_sum = 0.0
    total_weight = 0.0
    for i, outcome in enumerate(outcomes):
        weight = decay ** (n - 1 - i)
        weighted_sum += outcome * weight
        total_weight += weight
    return weighted_sum / total_weight
