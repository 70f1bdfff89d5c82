"""
Runtime wiring for the outer surfaces (API and CLI).

Builds the collaborators named in Settings:
- profile store: SQL store on settings.database_url, seeded with the demo learner
- catalog: HttpCatalog when catalog_url is set, otherwise the demo catalog
- metric sources: HTTP sources when metrics_base_url is set, otherwise demo sources

Usage:
    async with open_runtime(settings) as runtime:
        service = PersonalizationService(runtime.context())
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace

import httpx
from loguru import logger
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from config import Settings
from src.analytics.demo import demo_sources
from src.analytics.sources import http_sources
from src.db.database import create_db_engine, init_db, make_session_factory
from src.db.profile_store import SqlProfileStore
from src.personalization.catalog import HttpCatalog, StaticCatalog
from src.personalization.seed import demo_catalog, demo_profiles
from src.personalization.service import InsightsContext


@dataclass
class Runtime:
    """Long-lived collaborators plus the engine they sit on."""

    base: InsightsContext
    engine: Engine

    def context(self) -> InsightsContext:
        """Fresh context for one request over the shared collaborators."""
        return replace(self.base)

    def check_database(self) -> tuple[str, str | None]:
        """
        Check database connectivity.

        Returns:
            Tuple of (status, error_message). Status is "ok" or "error".
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return "ok", None
        except SQLAlchemyError as e:
            return "error", str(e)


def build_store(settings: Settings, engine: Engine) -> SqlProfileStore:
    init_db(engine)
    store = SqlProfileStore(
        make_session_factory(engine),
        decay=settings.mastery_decay,
        strict=bool(settings.strict_invariants),
    )
    if settings.seed_demo_profiles:
        store.seed(demo_profiles(settings.mastery_decay))
    return store


@asynccontextmanager
async def open_runtime(settings: Settings) -> AsyncIterator[Runtime]:
    """Open the store, catalog and metric sources; close them on exit."""
    engine = create_db_engine(settings.database_url, echo=settings.log_level == "DEBUG")
    store = build_store(settings, engine)

    catalog: HttpCatalog | StaticCatalog
    if settings.catalog_url:
        catalog = HttpCatalog(settings.catalog_url)
    else:
        catalog = StaticCatalog(demo_catalog())

    metrics_client = None
    if settings.metrics_base_url:
        metrics_client = httpx.AsyncClient(
            base_url=settings.metrics_base_url,
            timeout=settings.analytics_source_timeout_seconds,
        )
        sources = http_sources(metrics_client)
    else:
        seeded = len(demo_profiles(settings.mastery_decay)) if settings.seed_demo_profiles else 0
        sources = demo_sources(profile_count=seeded)

    logger.debug(
        f"Runtime ready: catalog={'http' if settings.catalog_url else 'demo'}, "
        f"metrics={'http' if metrics_client else 'demo'}"
    )
    try:
        yield Runtime(
            base=InsightsContext(
                settings=settings,
                profiles=store,
                catalog=catalog,
                metric_sources=sources,
            ),
            engine=engine,
        )
    finally:
        if isinstance(catalog, HttpCatalog):
            await catalog.close()
        if metrics_client is not None:
            await metrics_client.aclose()
        engine.dispose()
