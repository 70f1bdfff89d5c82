"""
Analytics API Router.

Endpoints for dashboard analytics:
- Aggregated snapshot (summary, timeline, classes, experiences, activity)
- Activity export as CSV, JSON or a summary report, reserved for teachers
  and admins; every successful export is audit-logged
"""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from loguru import logger

from src.api.dependencies import get_service
from src.personalization.models import Role
from src.personalization.service import PersonalizationService, can_export

router = APIRouter()


@router.get("")
async def get_analytics(
    service: PersonalizationService = Depends(get_service),
) -> dict[str, Any]:
    """
    Get the dashboard snapshot.

    Unavailable sources are reported under "sources" and "degraded"; the
    response is still 200.
    """
    snapshot = await service.analytics()
    return snapshot.to_dict()


@router.get("/export")
async def export_analytics(
    format: Literal["csv", "json", "summary"] = Query("csv", description="Export format"),
    x_user_role: str | None = Header(None, description="Caller role"),
    service: PersonalizationService = Depends(get_service),
) -> dict[str, Any]:
    """Export the activity dataset as base64 content."""
    role = Role.parse(x_user_role)
    if not can_export(role):
        logger.warning(f"Analytics export refused for role {x_user_role!r}")
        raise HTTPException(
            status_code=403,
            detail="Analytics export is reserved for teachers and admins",
        )

    try:
        dataset = await service.export(format, requested_by=role)
    except Exception as e:
        logger.exception("Analytics export failed")
        raise HTTPException(status_code=500, detail=str(e))
    return dataset.to_dict()
