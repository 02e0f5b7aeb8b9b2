"""
devio.api.routes.cipher — Cipher currency endpoints
====================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from devio.api.deps import get_config, get_current_admin, get_current_user_id, get_engine
from devio.config import DevioConfig
from devio.database.models import CipherReason
from devio.services import cipher_service

router = APIRouter(tags=["cipher"])


class CipherAward(BaseModel):
    user_id: int
    amount: int = Field(gt=0)
    reason: CipherReason = CipherReason.ADMIN_GRANT
    source_id: str | None = None


@router.get("/cipher/me")
def get_my_cipher(
    user_id: int = Depends(get_current_user_id),
    engine=Depends(get_engine),
):
    return {"user_id": user_id, "balance": cipher_service.get_cipher_balance(engine, user_id)}


@router.get("/cipher/me/history")
def get_my_cipher_history(
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
    engine=Depends(get_engine),
    cfg: DevioConfig = Depends(get_config),
):
    limit = min(limit or cfg.history_page_size, cfg.max_history_page_size)
    entries = cipher_service.get_cipher_history(engine, user_id, limit, offset)
    return {
        "transactions": [e.to_dict() for e in entries],
        "limit": limit,
        "offset": offset,
    }


@router.post("/admin/cipher/award", status_code=201)
def admin_award_cipher(
    body: CipherAward,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    """Credit Cipher.  A repeated keyed award answers ``duplicate: true``."""
    result = cipher_service.award_cipher(
        engine, body.user_id, body.amount, body.reason, body.source_id
    )
    if result is None:
        return {
            "duplicate": True,
            "transaction": None,
            "balance": cipher_service.get_cipher_balance(engine, body.user_id),
        }
    return {"duplicate": False, **result.to_dict()}
