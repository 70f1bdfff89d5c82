"""
Personalization API Router.

Endpoints for the per-learner pipeline:
- Profile resolution with optional name/role hints
- Diagnostic report (mastery, gaps, readiness)
- Ranked content recommendations
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from src.api.dependencies import get_service
from src.personalization.service import PersonalizationService

router = APIRouter()


@router.get("/{learner_id}")
async def get_personalization(
    learner_id: str,
    name: str | None = Query(None, description="Display name hint"),
    role: str | None = Query(None, description="Role hint: student, teacher or admin"),
    service: PersonalizationService = Depends(get_service),
) -> dict[str, Any]:
    """
    Get profile, diagnostics and recommendations for a learner.

    Unknown learners get a default profile and an empty diagnostic; invalid
    hints are ignored.
    """
    hints = {key: value for key, value in (("name", name), ("role", role)) if value is not None}
    try:
        bundle = await service.personalize(learner_id, hints)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"Personalization failed for {learner_id}")
        raise HTTPException(status_code=500, detail=str(e))
    return bundle.to_dict()
