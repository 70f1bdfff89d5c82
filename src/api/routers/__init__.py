"""API routers for learner-insights."""

from src.api.routers import analytics_router, personalization_router

__all__ = [
    "personalization_router",
    "analytics_router",
]
