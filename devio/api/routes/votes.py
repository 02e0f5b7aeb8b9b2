"""
devio.api.routes.votes — Post and comment voting
=================================================

Body ``{"type": "UP" | "DOWN" | null}``.  Repeating the current vote
removes it; ``null`` removes it explicitly.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from devio.api.deps import get_current_user_id, get_dispatcher, get_engine
from devio.database.models import VoteType
from devio.engine.votes import TargetKind
from devio.services import vote_service

router = APIRouter(tags=["votes"])


class VoteBody(BaseModel):
    type: VoteType | None = None


@router.post("/posts/{post_id}/vote")
def vote_on_post(
    post_id: int,
    body: VoteBody,
    user_id: int = Depends(get_current_user_id),
    engine=Depends(get_engine),
    dispatcher=Depends(get_dispatcher),
):
    outcome = vote_service.vote(
        engine, TargetKind.POST, post_id, user_id, body.type, dispatcher=dispatcher
    )
    return outcome.to_dict()


@router.post("/comments/{comment_id}/vote")
def vote_on_comment(
    comment_id: int,
    body: VoteBody,
    user_id: int = Depends(get_current_user_id),
    engine=Depends(get_engine),
    dispatcher=Depends(get_dispatcher),
):
    outcome = vote_service.vote(
        engine, TargetKind.COMMENT, comment_id, user_id, body.type, dispatcher=dispatcher
    )
    return outcome.to_dict()
