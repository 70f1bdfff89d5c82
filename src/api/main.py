"""
FastAPI application for learner-insights.

Provides REST API for:
- Learner personalization (profile, diagnostics, recommendations)
- Dashboard analytics snapshots
- Analytics export for teachers and admins
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from config import Settings, get_settings
from src.bootstrap import open_runtime
from src.core.logging import configure_logging

SERVICE_NAME = "learner-insights"
VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings: Settings = app.state.settings
    configure_logging(settings)

    # Startup
    logger.info(f"Starting {SERVICE_NAME} service...")
    async with open_runtime(settings) as runtime:
        app.state.runtime = runtime
        logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

        yield

        # Shutdown
        logger.info(f"Shutting down {SERVICE_NAME} service...")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application; settings default to the cached environment settings."""
    app = FastAPI(
        title="Learner Insights",
        description="""
        Learner personalization and analytics aggregation core.

        ## Features

        - **Personalization**: Resolve a learner profile, diagnose skill gaps, rank content
        - **Analytics**: Merge five metric sources into one consistently bucketed snapshot
        - **Export**: Activity dataset as CSV or JSON (teachers and admins)

        ## Data Flow

        ```
        Learner id + hints
            ↓ resolve
        LearnerProfile
            ↓ diagnose
        DiagnosticReport
            ↓ recommend
        RecommendationList
        ```
        """,
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings or get_settings()

    # CORS middleware for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========================================
    # Health & Status Endpoints
    # ========================================

    @app.get("/", tags=["Health"])
    def root() -> dict[str, str]:
        """Root endpoint returning service info."""
        return {
            "service": SERVICE_NAME,
            "version": VERSION,
            "status": "ok",
        }

    @app.get("/health", tags=["Health"])
    def health_check() -> dict[str, Any]:
        """Health check with an actual database connectivity test."""
        settings = app.state.settings
        db_status, db_error = app.state.runtime.check_database()

        result = {
            "status": "healthy" if db_status == "ok" else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": {
                "database": db_status,
                "catalog": "remote" if settings.catalog_url else "demo",
                "metrics": "remote" if settings.metrics_base_url else "demo",
            },
            "config": {
                "environment": settings.environment,
                "strict_invariants": settings.strict_invariants,
                "analytics_granularity": settings.analytics_granularity,
            },
        }
        if db_error:
            result["errors"] = {"database": db_error}
        return result

    # ========================================
    # Mount routers
    # ========================================

    from src.api.routers import analytics_router, personalization_router

    app.include_router(
        personalization_router.router, prefix="/api/personalization", tags=["Personalization"]
    )
    app.include_router(analytics_router.router, prefix="/api/analytics", tags=["Analytics"])

    return app


app = create_app()
