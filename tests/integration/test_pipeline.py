"""
Integration tests for the resolve -> diagnose -> recommend pipeline.

Runs the PersonalizationService over the real runtime wiring (SQLite store,
demo catalog, demo metric sources) and through the HTTP API.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from loguru import logger

from config import Settings
from src.api.main import create_app
from src.bootstrap import open_runtime
from src.core.errors import MissingDataError
from src.personalization.catalog import StaticCatalog
from src.personalization.models import ActivityEvent, CatalogItem, Role
from src.personalization.service import PersonalizationService

START = datetime(2024, 10, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def pipeline_settings(tmp_path):
    return Settings(
        _env_file=None,
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'pipeline.db'}",
        seed_demo_profiles=True,
    )


class BrokenCatalog:
    async def items(self):
        raise ConnectionError("library offline")


class TestPersonalizationPipeline:
    @pytest.mark.asyncio
    async def test_recorded_activity_drives_recommendations(self, pipeline_settings):
        catalog = StaticCatalog(
            [
                CatalogItem(item_id="sim-projectile", target_skills=("kinematics",)),
                CatalogItem(item_id="sim-optics-bench", target_skills=("optics",)),
                CatalogItem(item_id="res-motion-sheet", target_skills=("kinematics",)),
            ]
        )
        async with open_runtime(pipeline_settings) as runtime:
            service = PersonalizationService(replace(runtime.context(), catalog=catalog))

            for minute, success in enumerate([False, False, True]):
                await service.record_activity(
                    "l-new", ActivityEvent.attempt("kinematics", success, START + timedelta(minutes=minute))
                )
            for minute in (3, 4):
                await service.record_activity(
                    "l-new", ActivityEvent.attempt("optics", True, START + timedelta(minutes=minute))
                )

            bundle = await service.personalize("l-new")

        assert bundle.profile.name_is_placeholder is True
        assert [gap.skill_id for gap in bundle.diagnostics.gaps] == ["kinematics"]
        assert bundle.recommendations.item_ids == ["sim-projectile", "res-motion-sheet"]

    @pytest.mark.asyncio
    async def test_first_activity_creates_profile(self, pipeline_settings):
        async with open_runtime(pipeline_settings) as runtime:
            service = PersonalizationService(runtime.context())

            profile = await service.record_activity(
                "l-first", ActivityEvent.attempt("optics", True, START), {"name": "Ada Lovelace"}
            )

        assert profile.name == "Ada Lovelace"
        assert profile.mastery == {"optics": 1.0}

    @pytest.mark.asyncio
    async def test_catalog_failure_yields_empty_list(self, pipeline_settings):
        async with open_runtime(pipeline_settings) as runtime:
            service = PersonalizationService(replace(runtime.context(), catalog=BrokenCatalog()))

            bundle = await service.personalize("student-demo")

        assert bundle.diagnostics.gaps
        assert bundle.recommendations.items == ()

    @pytest.mark.asyncio
    async def test_record_without_store_raises_missing_data(self, pipeline_settings):
        class ReadOnlyStore:
            async def get(self, learner_id):
                return None

            async def create_if_absent(self, profile):
                raise ConnectionError("read-only replica")

            async def save_identity(self, profile):
                raise ConnectionError("read-only replica")

            async def append_activity(self, learner_id, event):
                raise KeyError(learner_id)

        async with open_runtime(pipeline_settings) as runtime:
            service = PersonalizationService(replace(runtime.context(), profiles=ReadOnlyStore()))

            with pytest.raises(MissingDataError):
                await service.record_activity("l-x", ActivityEvent.attempt("optics", True, START))

    @pytest.mark.asyncio
    async def test_analytics_and_export(self, pipeline_settings):
        async with open_runtime(pipeline_settings) as runtime:
            service = PersonalizationService(runtime.context())

            snapshot = await service.analytics()
            dataset = await service.export("csv")

        assert snapshot.degraded == []
        assert dict(snapshot.summary)["users"] == 1
        assert dataset.content.splitlines()[0] == "date,active_users,sessions,time_spent"
        # Two weekly buckets of activity
        assert len(dataset.content.splitlines()) == 3

    @pytest.mark.asyncio
    async def test_export_writes_audit_line(self, pipeline_settings):
        records = []
        sink_id = logger.add(lambda message: records.append(message.record), level="WARNING")
        try:
            async with open_runtime(pipeline_settings) as runtime:
                service = PersonalizationService(runtime.context())

                dataset = await service.export("summary", requested_by=Role.TEACHER)
        finally:
            logger.remove(sink_id)

        audit = [r for r in records if r["extra"].get("action") == "analytics.export"]
        assert dataset.content.startswith("Analytics report")
        assert len(audit) == 1
        assert audit[0]["level"].name == "WARNING"
        assert "role=teacher" in audit[0]["message"]
        assert "format=summary" in audit[0]["message"]


class TestApiPipeline:
    def test_profile_persists_across_app_restarts(self, pipeline_settings):
        with TestClient(create_app(pipeline_settings)) as client:
            client.get("/api/personalization/l-77", params={"name": "Ada Lovelace", "role": "admin"})

        with TestClient(create_app(pipeline_settings)) as client:
            data = client.get("/api/personalization/l-77").json()

        assert data["profile"]["name"] == "Ada Lovelace"
        assert data["profile"]["role"] == "admin"

    def test_demo_learner_recommendations_are_stable(self, pipeline_settings):
        with TestClient(create_app(pipeline_settings)) as client:
            first = client.get("/api/personalization/student-demo").json()
            second = client.get("/api/personalization/student-demo").json()

        assert first["recommendations"] == second["recommendations"]
        ids = [item["item_id"] for item in first["recommendations"]["items"]]
        assert ids[0] in {"sim-quantum-diffraction", "res-phys-fiche-diffraction"}
