"""
devio.api.routes.notifications — In-app inbox written by the default notifier
==============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from devio.api.deps import get_current_user_id, get_engine
from devio.services import notification_service

router = APIRouter(tags=["notifications"])


@router.get("/notifications/me")
def list_my_notifications(
    limit: int = Query(20, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    engine=Depends(get_engine),
):
    return {"notifications": notification_service.list_notifications(engine, user_id, limit)}
