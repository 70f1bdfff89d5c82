"""
Error taxonomy for the insights core.

Three kinds of failure are distinguished:
- MissingDataError: a learner, profile or catalog has no data. Always
  resolved to a safe default at the boundary, never surfaced.
- SourceUnavailableError: an analytics source could not be reached or timed
  out. Aggregation continues with an empty slice for that source.
- InvariantViolation: a programming defect such as a mastery estimate outside
  [0, 1]. Fatal when invariants are strict (development/test), clamped and
  logged in production.
"""

from __future__ import annotations

from loguru import logger


class InsightsError(Exception):
    """Base class for insights core errors."""


class MissingDataError(InsightsError):
    """Requested data does not exist."""


class SourceUnavailableError(InsightsError):
    """An analytics source failed, timed out or returned an unusable payload."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class InvariantViolation(InsightsError):
    """A computed value broke a documented invariant."""


def check_invariant(condition: bool, message: str, strict: bool) -> bool:
    """
    Check an invariant.

    Args:
        condition: Value of the invariant
        message: Description used for the exception or log line
        strict: Raise instead of logging

    Returns:
        The condition, so callers can fall back when it is False

    Raises:
        InvariantViolation: If the condition is False and strict is set
    """
    if condition:
        return True
    if strict:
        raise InvariantViolation(message)
    logger.error(f"Invariant violated: {message}")
    return False


def clamp_unit(value: float, what: str, strict: bool) -> float:
    """Clamp a value to [0, 1], treating out-of-range input as a violation."""
    if check_invariant(0.0 <= value <= 1.0, f"{what}={value!r} outside [0, 1]", strict):
        return value
    return min(1.0, max(0.0, value))
