"""
devio.api.routes.aura — Aura reputation endpoints
==================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from devio.api.deps import get_config, get_current_admin, get_current_user_id, get_engine
from devio.config import DevioConfig
from devio.database.models import AuraReason
from devio.services import aura_service

router = APIRouter(tags=["aura"])


class AuraAward(BaseModel):
    user_id: int
    amount: int = Field(gt=0)
    reason: AuraReason = AuraReason.ADMIN_GRANT
    source_id: str | None = None


@router.get("/aura/me")
def get_my_aura(
    user_id: int = Depends(get_current_user_id),
    engine=Depends(get_engine),
):
    return {"user_id": user_id, "aura": aura_service.get_aura_points(engine, user_id)}


@router.get("/aura/me/history")
def get_my_aura_history(
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
    engine=Depends(get_engine),
    cfg: DevioConfig = Depends(get_config),
):
    limit = min(limit or cfg.history_page_size, cfg.max_history_page_size)
    entries = aura_service.get_aura_history(engine, user_id, limit, offset)
    return {
        "transactions": [e.to_dict() for e in entries],
        "limit": limit,
        "offset": offset,
    }


@router.get("/aura/{user_id}")
def get_user_aura(user_id: int, engine=Depends(get_engine)):
    """Public Aura total for any user."""
    return {"user_id": user_id, "aura": aura_service.get_aura_points(engine, user_id)}


@router.post("/admin/aura/award", status_code=201)
def admin_award_aura(
    body: AuraAward,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    entry = aura_service.award_aura(
        engine, body.user_id, body.amount, body.reason, body.source_id
    )
    return {
        "transaction": entry.to_dict() if entry else None,
        "aura": aura_service.get_aura_points(engine, body.user_id),
    }
