"""
Unit tests for the in-memory profile store and apply_activity.
"""

import asyncio
from datetime import timedelta

import pytest

from src.core.errors import InvariantViolation
from src.personalization.models import ActivityEvent, ActivityKind, LearnerProfile
from src.personalization.store import InMemoryProfileStore, LearnerLocks, apply_activity


class TestApplyActivity:
    """Tests for history append and running mastery refresh."""

    def test_updates_running_mastery(self, base_time):
        profile = LearnerProfile(learner_id="l1", name="Learner")

        apply_activity(profile, ActivityEvent.attempt("optics", False, base_time), 0.7, True)
        apply_activity(
            profile, ActivityEvent.attempt("optics", True, base_time + timedelta(minutes=1)), 0.7, True
        )

        assert len(profile.history) == 2
        assert profile.mastery["optics"] == pytest.approx(1 / 1.7)

    def test_completion_leaves_mastery(self, base_time):
        profile = LearnerProfile(learner_id="l1", name="Learner")

        apply_activity(profile, ActivityEvent(ActivityKind.COMPLETION, "optics", base_time), 0.7, True)

        assert profile.mastery == {}
        assert len(profile.history) == 1

    def test_out_of_order_raises_when_strict(self, base_time):
        profile = LearnerProfile(learner_id="l1", name="Learner")
        apply_activity(profile, ActivityEvent.attempt("optics", True, base_time), 0.7, True)

        with pytest.raises(InvariantViolation):
            apply_activity(
                profile,
                ActivityEvent.attempt("optics", False, base_time - timedelta(hours=1)),
                0.7,
                True,
            )
        assert len(profile.history) == 1

    def test_out_of_order_restamped_when_lenient(self, base_time):
        profile = LearnerProfile(learner_id="l1", name="Learner")
        apply_activity(profile, ActivityEvent.attempt("optics", True, base_time), 0.7, False)

        stored = apply_activity(
            profile,
            ActivityEvent.attempt("optics", False, base_time - timedelta(hours=1)),
            0.7,
            False,
        )

        assert stored.occurred_at == base_time
        times = [event.occurred_at for event in profile.history]
        assert times == sorted(times)

    def test_outcome_clamped_when_lenient(self, base_time):
        profile = LearnerProfile(learner_id="l1", name="Learner")

        stored = apply_activity(
            profile, ActivityEvent(ActivityKind.SCORE, "optics", base_time, 1.4), 0.7, False
        )

        assert stored.outcome == 1.0
        assert profile.mastery["optics"] == 1.0


class TestLearnerLocks:
    @pytest.mark.asyncio
    async def test_same_learner_serialized(self):
        locks = LearnerLocks()
        order = []

        async def write(tag):
            async with locks.hold("l1"):
                order.append(f"{tag}-start")
                await asyncio.sleep(0)
                order.append(f"{tag}-end")

        await asyncio.gather(write("a"), write("b"))

        assert order == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_released_locks_are_dropped(self):
        locks = LearnerLocks()

        async with locks.hold("l1"):
            assert len(locks) == 1

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_dropped_after_error(self):
        locks = LearnerLocks()

        with pytest.raises(RuntimeError):
            async with locks.hold("l1"):
                raise RuntimeError("write failed")

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_no_growth_across_learners(self, memory_store, base_time):
        for i in range(50):
            learner_id = f"l{i}"
            await memory_store.create_if_absent(LearnerProfile(learner_id=learner_id, name="Learner"))
            await memory_store.append_activity(learner_id, ActivityEvent.attempt("optics", True, base_time))

        assert len(memory_store.locks) == 0


class TestInMemoryProfileStore:
    """Tests for InMemoryProfileStore."""

    @pytest.mark.asyncio
    async def test_get_missing(self, memory_store):
        assert await memory_store.get("nobody") is None

    @pytest.mark.asyncio
    async def test_create_if_absent_keeps_first(self, memory_store):
        first = await memory_store.create_if_absent(LearnerProfile(learner_id="l1", name="First"))
        second = await memory_store.create_if_absent(LearnerProfile(learner_id="l1", name="Second"))

        assert first.name == "First"
        assert second.name == "First"

    @pytest.mark.asyncio
    async def test_returns_copies(self, memory_store):
        await memory_store.create_if_absent(LearnerProfile(learner_id="l1", name="Learner"))

        profile = await memory_store.get("l1")
        profile.mastery["optics"] = 0.9

        assert (await memory_store.get("l1")).mastery == {}

    @pytest.mark.asyncio
    async def test_append_requires_profile(self, memory_store, base_time):
        with pytest.raises(KeyError):
            await memory_store.append_activity("nobody", ActivityEvent.attempt("optics", True, base_time))

    @pytest.mark.asyncio
    async def test_concurrent_appends_stay_ordered(self, memory_store, base_time):
        await memory_store.create_if_absent(LearnerProfile(learner_id="l1", name="Learner"))
        events = [
            ActivityEvent.attempt("optics", i % 2 == 0, base_time + timedelta(minutes=i))
            for i in range(20)
        ]

        await asyncio.gather(*(memory_store.append_activity("l1", event) for event in events))

        profile = await memory_store.get("l1")
        assert len(profile.history) == 20
        times = [event.occurred_at for event in profile.history]
        assert times == sorted(times)
        assert 0.0 <= profile.mastery["optics"] <= 1.0
        assert len(memory_store.locks) == 0

    @pytest.mark.asyncio
    async def test_learners_are_independent(self, memory_store, base_time):
        for learner_id in ("l1", "l2"):
            await memory_store.create_if_absent(LearnerProfile(learner_id=learner_id, name="Learner"))

        await memory_store.append_activity("l1", ActivityEvent.attempt("optics", True, base_time))

        assert (await memory_store.get("l2")).history == []

    def test_seed(self, base_time):
        store = InMemoryProfileStore()
        profile = LearnerProfile(learner_id="seeded", name="Seeded")

        store.seed([profile])

        assert asyncio.run(store.get("seeded")).name == "Seeded"
