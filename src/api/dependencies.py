"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from fastapi import Depends, Request

from src.personalization.service import InsightsContext, PersonalizationService


def get_context(request: Request) -> InsightsContext:
    """Request-scoped context over the collaborators opened at startup."""
    return request.app.state.runtime.context()


def get_service(context: InsightsContext = Depends(get_context)) -> PersonalizationService:
    return PersonalizationService(context)
