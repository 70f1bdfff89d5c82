"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from src.personalization.models import ActivityEvent, CatalogItem, LearnerProfile
from src.personalization.store import InMemoryProfileStore, apply_activity


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (full pipeline through the API)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Strict test settings with default scoring constants."""
    return Settings(
        _env_file=None,
        environment="test",
        seed_demo_profiles=False,
        database_url="sqlite:///:memory:",
    )


@pytest.fixture
def lenient_settings():
    """Production-like settings: invariant violations are clamped and logged."""
    return Settings(_env_file=None, environment="production", seed_demo_profiles=False)


@pytest.fixture
def base_time():
    return datetime(2024, 10, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_profile(base_time):
    """Build a profile from (skill_id, success) pairs, one minute apart."""

    def _make(attempts, learner_id="learner-001", name="Test Learner"):
        profile = LearnerProfile(learner_id=learner_id, name=name)
        for minute, (skill_id, success) in enumerate(attempts):
            event = ActivityEvent.attempt(skill_id, success, base_time + timedelta(minutes=minute))
            apply_activity(profile, event, decay=0.7, strict=True)
        return profile

    return _make


@pytest.fixture
def memory_store():
    return InMemoryProfileStore(decay=0.7, strict=True)


@pytest.fixture
def sample_catalog():
    """Three items: two targeting the kinematics gap, one targeting optics."""
    return [
        CatalogItem(item_id="sim-projectile", target_skills=("kinematics",), difficulty=0.5),
        CatalogItem(item_id="sim-optics-bench", target_skills=("optics",), difficulty=0.5),
        CatalogItem(item_id="res-motion-sheet", target_skills=("kinematics",), difficulty=0.5),
    ]
