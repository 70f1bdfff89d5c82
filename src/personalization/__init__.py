"""
Personalization Module - resolve -> diagnose -> recommend.

Components:
- profiles: ProfileResolver and hint validation
- diagnostics: DiagnosticEngine (mastery, gaps, readiness)
- recommendations: RecommendationEngine (content ranking)
- store: ProfileStore protocol and the in-memory store
- catalog: ContentCatalog adapters
- service: PersonalizationService orchestration
"""

from src.personalization.diagnostics import DiagnosticEngine
from src.personalization.models import (
    ActivityEvent,
    ActivityKind,
    CatalogItem,
    DiagnosticReport,
    LearnerProfile,
    Recommendation,
    RecommendationList,
    Role,
)
from src.personalization.profiles import ProfileHints, ProfileResolver
from src.personalization.recommendations import RecommendationEngine
from src.personalization.store import InMemoryProfileStore, ProfileStore

__all__ = [
    "ActivityEvent",
    "ActivityKind",
    "CatalogItem",
    "DiagnosticEngine",
    "DiagnosticReport",
    "InMemoryProfileStore",
    "LearnerProfile",
    "ProfileHints",
    "ProfileResolver",
    "ProfileStore",
    "Recommendation",
    "RecommendationEngine",
    "RecommendationList",
    "Role",
]
