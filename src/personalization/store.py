"""
Profile Store.

The persistence collaborator seen from the personalization pipeline:
- ProfileStore: protocol implemented by every backend
- InMemoryProfileStore: process-local store used by tests, the CLI and the demo
- apply_activity: the single place that appends history and refreshes mastery

Activity appends are serialized per learner with one asyncio.Lock per
learner id (LearnerLocks), so history stays append-only and time-ordered
under concurrent writers. A lock only lives while someone holds or awaits it.
Scoring components never call the mutating methods.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Protocol

from loguru import logger

from src.core.errors import check_invariant, clamp_unit
from src.core.mastery import recency_weighted_mastery
from src.personalization.models import ActivityEvent, LearnerProfile


class ProfileStore(Protocol):
    """Interface for profile persistence backends."""

    async def get(self, learner_id: str) -> LearnerProfile | None:
        """Return the stored profile or None."""
        ...

    async def create_if_absent(self, profile: LearnerProfile) -> LearnerProfile:
        """Store profile unless one exists; return whichever is stored."""
        ...

    async def save_identity(self, profile: LearnerProfile) -> None:
        """Persist name, role and their default flags of an existing profile."""
        ...

    async def append_activity(self, learner_id: str, event: ActivityEvent) -> LearnerProfile:
        """Append one event and return the updated profile."""
        ...


def apply_activity(
    profile: LearnerProfile,
    event: ActivityEvent,
    decay: float,
    strict: bool,
) -> ActivityEvent:
    """
    Append an event to a profile and refresh that skill's running mastery.

    An event older than the last recorded one breaks the time-order
    invariant: raised when strict, otherwise re-stamped to the last
    timestamp. Outcomes outside [0, 1] are handled the same way.

    Args:
        profile: Profile to mutate (caller holds the learner lock)
        event: Event to append
        decay: Recency decay used for the running mastery estimate
        strict: Raise on invariant violations

    Returns:
        The event as stored (possibly re-stamped or clamped)
    """
    last = profile.last_activity_at
    if last is not None and not check_invariant(
        event.occurred_at >= last,
        f"activity for {profile.learner_id} at {event.occurred_at} precedes {last}",
        strict,
    ):
        event = replace(event, occurred_at=last)

    if event.outcome is not None:
        outcome = clamp_unit(event.outcome, "activity outcome", strict)
        if outcome != event.outcome:
            event = replace(event, outcome=outcome)

    profile.history.append(event)

    if event.is_evidence:
        outcomes = profile.evidence_by_skill()[event.skill_id]
        profile.mastery[event.skill_id] = clamp_unit(
            recency_weighted_mastery(outcomes, decay), "running mastery", strict
        )
    return event


class LearnerLocks:
    """
    Per-learner asyncio locks.

    A lock is created on first use and dropped once nobody holds or waits
    on it, so the registry only tracks learners with writes in flight.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, learner_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(learner_id, asyncio.Lock())
        self._users[learner_id] = self._users.get(learner_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[learner_id] -= 1
            if not self._users[learner_id]:
                del self._users[learner_id]
                del self._locks[learner_id]


class InMemoryProfileStore:
    """
    Dictionary-backed profile store.

    Returns deep copies so callers never share mutable state with the store.
    """

    def __init__(self, decay: float = 0.7, strict: bool = True):
        self.decay = decay
        self.strict = strict
        self._profiles: dict[str, LearnerProfile] = {}
        self.locks = LearnerLocks()

    async def get(self, learner_id: str) -> LearnerProfile | None:
        profile = self._profiles.get(learner_id)
        return copy.deepcopy(profile) if profile else None

    async def create_if_absent(self, profile: LearnerProfile) -> LearnerProfile:
        async with self.locks.hold(profile.learner_id):
            stored = self._profiles.get(profile.learner_id)
            if stored is None:
                stored = copy.deepcopy(profile)
                self._profiles[profile.learner_id] = stored
                logger.info(f"Created profile for learner {profile.learner_id}")
            return copy.deepcopy(stored)

    async def save_identity(self, profile: LearnerProfile) -> None:
        async with self.locks.hold(profile.learner_id):
            stored = self._profiles.get(profile.learner_id)
            if stored is None:
                self._profiles[profile.learner_id] = copy.deepcopy(profile)
                return
            stored.name = profile.name
            stored.role = profile.role
            stored.name_is_placeholder = profile.name_is_placeholder
            stored.role_is_default = profile.role_is_default

    async def append_activity(self, learner_id: str, event: ActivityEvent) -> LearnerProfile:
        async with self.locks.hold(learner_id):
            profile = self._profiles.get(learner_id)
            if profile is None:
                raise KeyError(f"No profile for learner {learner_id}")
            apply_activity(profile, event, self.decay, self.strict)
            return copy.deepcopy(profile)

    def seed(self, profiles: list[LearnerProfile]) -> None:
        """Load preset profiles, replacing any with the same id."""
        for profile in profiles:
            self._profiles[profile.learner_id] = copy.deepcopy(profile)
        logger.debug(f"Seeded {len(profiles)} profiles")
