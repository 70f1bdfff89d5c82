"""
Learner Profile Models.

SQLAlchemy models backing the SQL profile store:
- Learner identity and running mastery map
- Append-only activity history, ordered by a per-learner sequence number
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class LearnerProfileRecord(Base):
    """
    One row per learner.

    mastery holds the running estimate per skill (0-1 scale) as JSON so the
    same schema works on SQLite and PostgreSQL.
    """

    __tablename__ = "learner_profiles"

    learner_id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="student")
    name_is_placeholder: Mapped[bool] = mapped_column(Boolean, default=False)
    role_is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    mastery: Mapped[dict] = mapped_column(JSON, default=dict)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    events: Mapped[list[ActivityEventRecord]] = relationship(
        back_populates="profile",
        order_by="ActivityEventRecord.seq",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<LearnerProfileRecord learner={self.learner_id} role={self.role}>"


class ActivityEventRecord(Base):
    """
    One recorded activity event.

    seq is the event's position in the learner's history; the unique
    (learner_id, seq) pair rejects concurrent appends that raced past
    the in-process lock.
    """

    __tablename__ = "activity_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_id: Mapped[str] = mapped_column(
        ForeignKey("learner_profiles.learner_id", ondelete="CASCADE"), nullable=False
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    kind: Mapped[str] = mapped_column(Text, nullable=False)  # 'attempt', 'completion', 'score'
    skill_id: Mapped[str] = mapped_column(Text, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)  # UTC
    outcome: Mapped[float | None] = mapped_column(Float)
    content_id: Mapped[str | None] = mapped_column(Text)
    error_label: Mapped[str | None] = mapped_column(Text)

    # Relationships
    profile: Mapped[LearnerProfileRecord] = relationship(back_populates="events")

    __table_args__ = (
        UniqueConstraint("learner_id", "seq", name="uq_activity_learner_seq"),
        Index("idx_activity_learner_skill", "learner_id", "skill_id"),
    )

    def __repr__(self) -> str:
        return f"<ActivityEventRecord learner={self.learner_id} seq={self.seq} kind={self.kind}>"
