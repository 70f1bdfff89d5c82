"""
SQL Profile Store.

ProfileStore backed by SQLAlchemy (SQLite by default, PostgreSQL via
psycopg2). Sessions are synchronous and run in worker threads via
asyncio.to_thread so the event loop never blocks on the database.

Concurrency:
    Appends for one learner are serialized by a per-learner asyncio.Lock
    (LearnerLocks, released from the registry once idle).
    Across processes, the unique (learner_id, seq) constraint rejects a
    racing append, and a racing profile creation is resolved by catching
    IntegrityError and re-reading the winner's row.
"""

from __future__ import annotations

import asyncio
from datetime import timezone

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from src.db.database import session_scope
from src.db.models.profiles import ActivityEventRecord, LearnerProfileRecord
from src.personalization.models import ActivityEvent, ActivityKind, LearnerProfile, Role
from src.personalization.store import LearnerLocks, apply_activity


def _event_record(learner_id: str, seq: int, event: ActivityEvent) -> ActivityEventRecord:
    return ActivityEventRecord(
        learner_id=learner_id,
        seq=seq,
        kind=event.kind.value,
        skill_id=event.skill_id,
        occurred_at=event.occurred_at.astimezone(timezone.utc).replace(tzinfo=None),
        outcome=event.outcome,
        content_id=event.content_id,
        error_label=event.error_label,
    )


def _to_profile(record: LearnerProfileRecord) -> LearnerProfile:
    history = [
        ActivityEvent(
            kind=ActivityKind(row.kind),
            skill_id=row.skill_id,
            occurred_at=row.occurred_at,
            outcome=row.outcome,
            content_id=row.content_id,
            error_label=row.error_label,
        )
        for row in record.events
    ]
    return LearnerProfile(
        learner_id=record.learner_id,
        name=record.name,
        role=Role.parse(record.role) or Role.STUDENT,
        mastery=dict(record.mastery or {}),
        history=history,
        name_is_placeholder=record.name_is_placeholder,
        role_is_default=bool(record.role_is_default),
    )


class SqlProfileStore:
    """Profile store persisted through SQLAlchemy sessions."""

    def __init__(self, session_factory: sessionmaker[Session], decay: float = 0.7, strict: bool = True):
        self.session_factory = session_factory
        self.decay = decay
        self.strict = strict
        self.locks = LearnerLocks()

    # ========================================
    # Sync operations (run in worker threads)
    # ========================================

    def _load(self, learner_id: str) -> LearnerProfile | None:
        with session_scope(self.session_factory) as session:
            record = session.get(LearnerProfileRecord, learner_id)
            return _to_profile(record) if record else None

    def _insert(self, profile: LearnerProfile) -> None:
        with session_scope(self.session_factory) as session:
            record = LearnerProfileRecord(
                learner_id=profile.learner_id,
                name=profile.name,
                role=profile.role.value,
                name_is_placeholder=profile.name_is_placeholder,
                role_is_default=profile.role_is_default,
                mastery=dict(profile.mastery),
            )
            record.events = [
                _event_record(profile.learner_id, seq, event)
                for seq, event in enumerate(profile.history)
            ]
            session.add(record)

    def _update_identity(self, profile: LearnerProfile) -> bool:
        with session_scope(self.session_factory) as session:
            record = session.get(LearnerProfileRecord, profile.learner_id)
            if record is None:
                return False
            record.name = profile.name
            record.role = profile.role.value
            record.name_is_placeholder = profile.name_is_placeholder
            record.role_is_default = profile.role_is_default
            return True

    def _append(self, learner_id: str, event: ActivityEvent) -> LearnerProfile:
        with session_scope(self.session_factory) as session:
            record = session.get(LearnerProfileRecord, learner_id)
            if record is None:
                raise KeyError(f"No profile for learner {learner_id}")
            profile = _to_profile(record)
            stored = apply_activity(profile, event, self.decay, self.strict)
            record.events.append(_event_record(learner_id, len(profile.history) - 1, stored))
            record.mastery = dict(profile.mastery)
        return profile

    # ========================================
    # ProfileStore protocol
    # ========================================

    async def get(self, learner_id: str) -> LearnerProfile | None:
        return await asyncio.to_thread(self._load, learner_id)

    async def create_if_absent(self, profile: LearnerProfile) -> LearnerProfile:
        async with self.locks.hold(profile.learner_id):
            stored = await asyncio.to_thread(self._load, profile.learner_id)
            if stored is not None:
                return stored
            try:
                await asyncio.to_thread(self._insert, profile)
                logger.info(f"Created profile for learner {profile.learner_id}")
            except IntegrityError:
                logger.debug(f"Profile {profile.learner_id} created concurrently, re-reading")
            return await asyncio.to_thread(self._load, profile.learner_id)

    async def save_identity(self, profile: LearnerProfile) -> None:
        async with self.locks.hold(profile.learner_id):
            updated = await asyncio.to_thread(self._update_identity, profile)
            if not updated:
                await asyncio.to_thread(self._insert, profile)

    async def append_activity(self, learner_id: str, event: ActivityEvent) -> LearnerProfile:
        async with self.locks.hold(learner_id):
            return await asyncio.to_thread(self._append, learner_id, event)

    def seed(self, profiles: list[LearnerProfile]) -> None:
        """Insert preset profiles that are not stored yet."""
        seeded = 0
        for profile in profiles:
            if self._load(profile.learner_id) is None:
                self._insert(profile)
                seeded += 1
        logger.debug(f"Seeded {seeded} profiles")
