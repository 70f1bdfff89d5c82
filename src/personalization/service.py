"""
Personalization Service.

Orchestrates resolve -> diagnose -> recommend for one learner and the
analytics fan-out for the dashboard. The API routers and the CLI are thin
wrappers around this class.

Usage:
    context = InsightsContext(settings, store, catalog, sources)
    service = PersonalizationService(context)
    bundle = await service.personalize("student-demo", {"role": "Student"})
    payload = bundle.to_dict()
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from loguru import logger

from config import Settings
from src.analytics.aggregator import AnalyticsAggregator
from src.analytics.export import ExportDataset, ExportFormat, build_export
from src.analytics.models import AnalyticsSnapshot
from src.analytics.sources import AnalyticsSources
from src.core.errors import MissingDataError
from src.personalization.catalog import ContentCatalog
from src.personalization.diagnostics import DiagnosticEngine
from src.personalization.models import (
    ActivityEvent,
    CatalogItem,
    DiagnosticReport,
    LearnerProfile,
    RecommendationList,
    Role,
)
from src.personalization.profiles import ProfileHints, ProfileResolver
from src.personalization.recommendations import RecommendationEngine
from src.personalization.store import ProfileStore

EXPORT_ROLES = (Role.TEACHER, Role.ADMIN)


def can_export(role: Role | None) -> bool:
    """Analytics exports are reserved for teachers and admins."""
    return role in EXPORT_ROLES


@dataclass
class InsightsContext:
    """Collaborators for one request (or one CLI invocation)."""

    settings: Settings
    profiles: ProfileStore
    catalog: ContentCatalog
    metric_sources: AnalyticsSources


@dataclass(frozen=True)
class PersonalizationBundle:
    profile: LearnerProfile
    diagnostics: DiagnosticReport
    recommendations: RecommendationList

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile": self.profile.to_dict(),
            "diagnostics": self.diagnostics.to_dict(),
            "recommendations": self.recommendations.to_dict(),
        }


class PersonalizationService:
    """Entry point for personalization and analytics requests."""

    def __init__(self, context: InsightsContext):
        self.context = context
        settings = context.settings
        self.resolver = ProfileResolver(context.profiles, Role(settings.default_role))
        self.diagnostic_engine = DiagnosticEngine(settings)
        self.recommendation_engine = RecommendationEngine(settings)
        self.aggregator = AnalyticsAggregator(settings)

    # ========================================
    # Personalization
    # ========================================

    async def personalize(
        self,
        learner_id: str,
        hints: ProfileHints | Mapping[str, Any] | None = None,
    ) -> PersonalizationBundle:
        """
        Run the full pipeline for one learner.

        Args:
            learner_id: Opaque learner identifier
            hints: Optional display name / role

        Returns:
            PersonalizationBundle with profile, diagnostics and recommendations
        """
        profile = await self.resolver.resolve(learner_id, hints)
        diagnostics = self.diagnostic_engine.diagnose(profile)
        catalog = await self._catalog_items()
        recommendations = self.recommendation_engine.recommend(profile, diagnostics, catalog)

        logger.info(
            f"Personalized {learner_id}: {len(diagnostics.gaps)} gaps, "
            f"{len(recommendations)} recommendations"
        )
        return PersonalizationBundle(profile, diagnostics, recommendations)

    async def record_activity(
        self,
        learner_id: str,
        event: ActivityEvent,
        hints: ProfileHints | Mapping[str, Any] | None = None,
    ) -> LearnerProfile:
        """
        Append an activity event, creating the profile on first sight.

        Raises:
            MissingDataError: If the profile could not be created in the store
        """
        await self.resolver.resolve(learner_id, hints)
        try:
            return await self.context.profiles.append_activity(learner_id, event)
        except KeyError as exc:
            raise MissingDataError(f"No stored profile for {learner_id}") from exc

    async def _catalog_items(self) -> list[CatalogItem]:
        try:
            return await self.context.catalog.items()
        except Exception as exc:  # Catalog is a collaborator; no catalog means no recommendations
            logger.warning(f"Content catalog unavailable: {exc}")
            return []

    # ========================================
    # Analytics
    # ========================================

    async def analytics(self) -> AnalyticsSnapshot:
        return await self.aggregator.aggregate(self.context.metric_sources)

    async def export(self, fmt: ExportFormat = "csv", requested_by: Role | None = None) -> ExportDataset:
        """
        Build the activity export and write an audit line for it.

        Callers check can_export() first; requested_by is only recorded.
        """
        snapshot = await self.analytics()
        dataset = build_export(snapshot, fmt)
        role = requested_by.value if requested_by else "unknown"
        logger.bind(audit=True, action="analytics.export").warning(
            f"Audit analytics.export: format={fmt} role={role} file={dataset.file_name}"
        )
        return dataset
