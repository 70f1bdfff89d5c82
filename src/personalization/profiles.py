"""
Profile Resolver.

Turns a learner id plus optional display hints into a canonical
LearnerProfile, creating a default profile the first time a learner is seen.

Hints are validated once, at this boundary:
- role: case-insensitive match against student/teacher/admin, unknown roles dropped
- name: stripped, 2-80 characters, blank names dropped

Hints only fill in what is not recorded yet. A stored name is replaced only
while it is still the generated placeholder, and a stored role only while it
is still the configured default that was assigned for lack of a role hint.
Once supplied, neither changes again.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.personalization.models import LearnerProfile, Role
from src.personalization.store import ProfileStore


class ProfileHints(BaseModel):
    """Best-effort enrichment supplied by the identity collaborator."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str | None = Field(None, min_length=2, max_length=80)
    role: Role | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Role | None:
        if value is None or isinstance(value, Role):
            return value
        role = Role.parse(str(value))
        if role is None:
            raise ValueError(f"unknown role {value!r}")
        return role


def parse_hints(raw: ProfileHints | Mapping[str, Any] | None) -> ProfileHints:
    """
    Validate raw hints, dropping any field that fails validation.

    Never raises: rejected fields are logged and treated as absent.
    """
    if raw is None:
        return ProfileHints()
    if isinstance(raw, ProfileHints):
        return raw

    try:
        return ProfileHints.model_validate(dict(raw))
    except ValidationError as exc:
        rejected = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        logger.warning(f"Rejected profile hints: {sorted(rejected)}")
        kept = {key: value for key, value in raw.items() if key not in rejected}
        return ProfileHints.model_validate(kept)


def placeholder_name(learner_id: str) -> str:
    """Stable generated display name for learners without a name hint."""
    digest = hashlib.sha1(learner_id.encode("utf-8")).hexdigest()[:6]
    return f"Learner {digest}"


class ProfileResolver:
    """
    Resolve learner identities to profiles.

    Store failures are treated as missing data: the caller gets an unsaved
    default profile instead of an error.
    """

    def __init__(self, store: ProfileStore, default_role: Role = Role.STUDENT):
        self.store = store
        self.default_role = default_role

    def default_profile(self, learner_id: str, hints: ProfileHints) -> LearnerProfile:
        return LearnerProfile(
            learner_id=learner_id,
            name=hints.name or placeholder_name(learner_id),
            role=hints.role or self.default_role,
            name_is_placeholder=hints.name is None,
            role_is_default=hints.role is None,
        )

    async def resolve(
        self,
        learner_id: str,
        hints: ProfileHints | Mapping[str, Any] | None = None,
    ) -> LearnerProfile:
        """
        Get or create the profile for a learner.

        Args:
            learner_id: Opaque learner identifier
            hints: Optional display name / role

        Returns:
            Stored profile, or a default one when storage is unavailable

        Raises:
            ValueError: If learner_id is blank
        """
        if not learner_id or not learner_id.strip():
            raise ValueError("learner_id must be non-empty")

        parsed = parse_hints(hints)

        try:
            profile = await self.store.get(learner_id)
            if profile is None:
                return await self.store.create_if_absent(self.default_profile(learner_id, parsed))
        except Exception as exc:  # Storage is a collaborator; degrade to defaults
            logger.warning(f"Profile store unavailable for {learner_id}: {exc}")
            return self.default_profile(learner_id, parsed)

        filled = False
        if profile.name_is_placeholder and parsed.name:
            profile.name = parsed.name
            profile.name_is_placeholder = False
            filled = True
        if profile.role_is_default and parsed.role:
            profile.role = parsed.role
            profile.role_is_default = False
            filled = True

        if filled:
            try:
                await self.store.save_identity(profile)
            except Exception as exc:  # Enrichment is best-effort
                logger.warning(f"Could not save identity hints for {learner_id}: {exc}")

        return profile
