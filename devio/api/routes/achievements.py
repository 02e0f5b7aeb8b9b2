"""
devio.api.routes.achievements — Achievement listing & on-demand checks
=======================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from devio.api.deps import get_current_user_id, get_dispatcher, get_engine
from devio.database.models import AchievementCriteria
from devio.services import achievement_service

router = APIRouter(tags=["achievements"])


class AchievementCheck(BaseModel):
    criteria: AchievementCriteria


@router.get("/achievements/me")
def list_my_achievements(
    user_id: int = Depends(get_current_user_id),
    engine=Depends(get_engine),
):
    return {"achievements": achievement_service.list_user_achievements(engine, user_id)}


@router.post("/achievements/check")
def check_my_achievements(
    body: AchievementCheck,
    user_id: int = Depends(get_current_user_id),
    engine=Depends(get_engine),
    dispatcher=Depends(get_dispatcher),
):
    """Re-count *criteria* server-side and unlock whatever the count reaches."""
    current = achievement_service.get_user_count(engine, user_id, body.criteria)
    unlocked = achievement_service.check_and_unlock(
        engine, user_id, body.criteria, current, dispatcher=dispatcher
    )
    return {
        "criteria": str(body.criteria),
        "current_value": current,
        "unlocked": [a.to_dict() for a in unlocked],
    }
