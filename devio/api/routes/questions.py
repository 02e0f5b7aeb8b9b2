"""
devio.api.routes.questions — Questions, bounties & accepted answers
====================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from devio.api.deps import get_current_user_id, get_dispatcher, get_engine
from devio.services import bounty_service, cipher_service

router = APIRouter(tags=["questions"])


class QuestionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    body: str | None = None
    bounty_amount: int = Field(0, ge=0)


@router.post("/questions", status_code=201)
def create_question(
    body: QuestionCreate,
    user_id: int = Depends(get_current_user_id),
    engine=Depends(get_engine),
):
    question = bounty_service.create_question(
        engine, user_id, body.title, body=body.body, bounty_amount=body.bounty_amount
    )
    return {
        "question": question.to_dict(),
        "balance": cipher_service.get_cipher_balance(engine, user_id),
    }


@router.post("/posts/{post_id}/accept/{comment_id}")
def accept_answer(
    post_id: int,
    comment_id: int,
    user_id: int = Depends(get_current_user_id),
    engine=Depends(get_engine),
    dispatcher=Depends(get_dispatcher),
):
    outcome = bounty_service.accept_answer(
        engine, post_id, comment_id, user_id, dispatcher=dispatcher
    )
    return {"message": "Answer accepted", **outcome.to_dict()}


@router.delete("/posts/{post_id}/accept")
def unaccept_answer(
    post_id: int,
    user_id: int = Depends(get_current_user_id),
    engine=Depends(get_engine),
):
    bounty_service.unaccept_answer(engine, post_id, user_id)
    return {"message": "Answer unaccepted", "question_id": post_id}
