"""
Unit tests for the FastAPI routes.
"""

import base64

import pytest
from fastapi.testclient import TestClient

from config import Settings
from src.api.main import create_app


@pytest.fixture
def client(tmp_path):
    settings = Settings(
        _env_file=None,
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'api.db'}",
        seed_demo_profiles=True,
    )
    with TestClient(create_app(settings)) as client:
        yield client


class TestHealth:
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "learner-insights"

    def test_health(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["components"]["database"] == "ok"
        assert data["components"]["catalog"] == "demo"


class TestPersonalizationRoutes:
    def test_demo_learner(self, client):
        response = client.get("/api/personalization/student-demo")

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"profile", "diagnostics", "recommendations"}
        assert data["profile"]["name"] == "Sara Kaci"
        gaps = [gap["skill_id"] for gap in data["diagnostics"]["gaps"]]
        assert "wave-interference" in gaps
        assert data["recommendations"]["items"]

    def test_unknown_learner_gets_default_profile(self, client):
        response = client.get("/api/personalization/new-learner", params={"role": "Teacher"})

        assert response.status_code == 200
        data = response.json()
        assert data["profile"]["role"] == "teacher"
        assert data["profile"]["history"] == []
        assert data["diagnostics"]["readiness"] is None
        assert data["diagnostics"]["gaps"] == []
        assert data["recommendations"]["items"] == []

    def test_invalid_hints_ignored(self, client):
        response = client.get(
            "/api/personalization/new-learner", params={"role": "wizard", "name": " "}
        )

        assert response.status_code == 200
        assert response.json()["profile"]["role"] == "student"

    def test_name_hint_fills_placeholder_once(self, client):
        client.get("/api/personalization/l-42")
        client.get("/api/personalization/l-42", params={"name": "Ada Lovelace"})
        data = client.get("/api/personalization/l-42", params={"name": "Other Name"}).json()

        assert data["profile"]["name"] == "Ada Lovelace"


class TestAnalyticsRoutes:
    def test_snapshot(self, client):
        response = client.get("/api/analytics")

        assert response.status_code == 200
        data = response.json()
        assert data["granularity"] == "week"
        assert data["degraded"] == []
        assert set(data["sources"]) == {"summary", "timeline", "classes", "experiences", "activity"}
        assert set(data["activity"]) == {"active_users", "sessions", "time_spent"}

    @pytest.mark.parametrize("role", ["teacher", "Admin"])
    def test_export_allowed(self, client, role):
        response = client.get("/api/analytics/export", headers={"X-User-Role": role})

        assert response.status_code == 200
        data = response.json()
        assert data["mime"] == "text/csv"
        content = base64.b64decode(data["base64"]).decode("utf-8")
        assert content.startswith("date,active_users,sessions,time_spent")

    @pytest.mark.parametrize("headers", [{"X-User-Role": "student"}, {}])
    def test_export_forbidden(self, client, headers):
        response = client.get("/api/analytics/export", headers=headers)

        assert response.status_code == 403

    def test_export_json(self, client):
        response = client.get(
            "/api/analytics/export", params={"format": "json"}, headers={"X-User-Role": "teacher"}
        )

        assert response.status_code == 200
        assert response.json()["file_name"].endswith(".json")

    def test_export_summary(self, client):
        response = client.get(
            "/api/analytics/export", params={"format": "summary"}, headers={"X-User-Role": "admin"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["mime"] == "text/plain"
        assert base64.b64decode(data["base64"]).decode("utf-8").startswith("Analytics report")

    def test_export_invalid_format(self, client):
        response = client.get(
            "/api/analytics/export", params={"format": "xml"}, headers={"X-User-Role": "teacher"}
        )

        assert response.status_code == 422
