"""
Core Module - Shared vocabulary for the insights engines.

Components:
- errors: Error taxonomy and invariant checks
- logging: Loguru sink configuration
- mastery: Mastery levels and recency-weighted mastery

Design Principle:
Domain modules (src/personalization/, src/analytics/) import from
src/core/ rather than reimplementing shared concepts.
"""

from src.core.errors import (
    InsightsError,
    InvariantViolation,
    MissingDataError,
    SourceUnavailableError,
    check_invariant,
    clamp_unit,
)
from src.core.mastery import MasteryLevel, recency_weighted_mastery

__all__ = [
    # Errors
    "InsightsError",
    "MissingDataError",
    "SourceUnavailableError",
    "InvariantViolation",
    "check_invariant",
    "clamp_unit",
    # Mastery
    "MasteryLevel",
    "recency_weighted_mastery",
]
