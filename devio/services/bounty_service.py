"""
devio.services.bounty_service — Question Bounty Escrow
=======================================================

Cipher placed on a question is debited from the asker when the question is
created and credited to the answerer when the asker accepts their answer.

    Place    — debit + ``BOUNTY_CREATED`` entry + question insert, one txn.
    Accept   — set ``accepted_answer_id``; pay the bounty once (question
               row locked), then +15 Aura and notifications after commit.
    Unaccept — clear ``accepted_answer_id`` only.  The bounty stays paid
               and the Aura bonus stays granted.

A bounty is never paid to the asker themselves: self-accepts set the
accepted answer but move no Cipher and grant no Aura.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select

from devio.constants import ACCEPTED_ANSWER_AURA
from devio.database.engine import get_session
from devio.database.models import (
    AchievementCriteria,
    AuraReason,
    CipherReason,
    Comment,
    NotificationType,
    Post,
    PostType,
)
from devio.errors import ContentNotFound, InvalidAmount, UnauthorizedBountyAction
from devio.services.achievement_service import refresh_achievements
from devio.services.aura_service import award_aura
from devio.services.cipher_service import credit_in_session, debit_in_session
from devio.services.dispatch import SideEffectDispatcher, get_dispatcher
from devio.services.ledger import require_user
from devio.services.notification_service import NotificationPayload, notify

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QuestionSnapshot:
    id: int
    author_id: int
    title: str
    bounty_amount: int
    is_bounty_paid: bool
    accepted_answer_id: int | None

    @classmethod
    def from_model(cls, post: Post) -> QuestionSnapshot:
        return cls(
            id=post.id,
            author_id=post.author_id,
            title=post.title,
            bounty_amount=post.bounty_amount,
            is_bounty_paid=post.is_bounty_paid,
            accepted_answer_id=post.accepted_answer_id,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "author_id": self.author_id,
            "title": self.title,
            "bounty_amount": self.bounty_amount,
            "is_bounty_paid": self.is_bounty_paid,
            "accepted_answer_id": self.accepted_answer_id,
        }


@dataclass(frozen=True, slots=True)
class AcceptOutcome:
    question_id: int
    answer_id: int
    answer_author_id: int
    bounty_paid: int
    self_accept: bool

    def to_dict(self) -> dict:
        return {
            "question_id": self.question_id,
            "answer_id": self.answer_id,
            "answer_author_id": self.answer_author_id,
            "bounty_paid": self.bounty_paid,
            "self_accept": self.self_accept,
        }


# ---------------------------------------------------------------------------
# Place
# ---------------------------------------------------------------------------
def create_question(
    engine: Engine,
    author_id: int,
    title: str,
    *,
    body: str | None = None,
    bounty_amount: int = 0,
) -> QuestionSnapshot:
    """Create a QUESTION post, escrowing *bounty_amount* Cipher from the author.

    Raises
    ------
    InvalidAmount
        If *bounty_amount* is negative.
    InsufficientFunds
        If the author cannot cover the bounty.  The question is not created.
    """
    if bounty_amount < 0:
        raise InvalidAmount("Bounty cannot be negative", {"bounty_amount": bounty_amount})

    with get_session(engine) as session:
        require_user(session, author_id)
        post = Post(
            author_id=author_id,
            type=PostType.QUESTION.value,
            title=title,
            body=body,
            bounty_amount=bounty_amount,
            is_bounty_paid=False,
        )
        session.add(post)
        session.flush()

        if bounty_amount > 0:
            debit_in_session(
                session, author_id, bounty_amount, CipherReason.BOUNTY_CREATED, str(post.id)
            )
        snapshot = QuestionSnapshot.from_model(post)

    if bounty_amount > 0:
        logger.info(
            "Question %d by user %s escrowed %d Cipher", snapshot.id, author_id, bounty_amount
        )
    return snapshot


# ---------------------------------------------------------------------------
# Accept / unaccept
# ---------------------------------------------------------------------------
def _load_question(session: Session, question_id: int, actor_id: int, verb: str) -> Post:
    """Lock the question row and check the actor may (un)accept on it."""
    post = session.scalar(select(Post).where(Post.id == question_id).with_for_update())
    if post is None:
        raise ContentNotFound("Post not found", {"post_id": question_id})
    if not post.is_question:
        raise UnauthorizedBountyAction(
            "Only QUESTION posts can have accepted answers",
            forbidden=False,
            details={"post_id": question_id},
        )
    if post.author_id != actor_id:
        raise UnauthorizedBountyAction(
            f"Only the post author can {verb} an answer",
            details={"post_id": question_id, "actor_id": actor_id},
        )
    return post


def accept_answer(
    engine: Engine,
    question_id: int,
    answer_id: int,
    actor_id: int,
    *,
    dispatcher: SideEffectDispatcher | None = None,
) -> AcceptOutcome:
    """Mark *answer_id* as the accepted answer to *question_id*.

    The bounty is paid at most once per question, to the first non-self
    answer accepted while it is unpaid.  Accepting another answer later only
    moves ``accepted_answer_id``.
    """
    with get_session(engine) as session:
        post = _load_question(session, question_id, actor_id, "accept")

        answer = session.get(Comment, answer_id)
        if answer is None:
            raise ContentNotFound("Comment not found", {"comment_id": answer_id})
        if answer.post_id != post.id:
            raise UnauthorizedBountyAction(
                "Comment does not belong to this post",
                forbidden=False,
                details={"post_id": question_id, "comment_id": answer_id},
            )
        if answer.parent_id is not None:
            raise UnauthorizedBountyAction(
                "Only top-level comments can be accepted as answers",
                forbidden=False,
                details={"comment_id": answer_id},
            )

        post.accepted_answer_id = answer.id
        self_accept = answer.author_id == actor_id

        bounty_paid = 0
        if post.bounty_amount > 0 and not post.is_bounty_paid and not self_accept:
            credit_in_session(
                session,
                answer.author_id,
                post.bounty_amount,
                CipherReason.ANSWER_ACCEPTED,
                str(post.id),
            )
            post.is_bounty_paid = True
            bounty_paid = post.bounty_amount

        outcome = AcceptOutcome(
            question_id=post.id,
            answer_id=answer.id,
            answer_author_id=answer.author_id,
            bounty_paid=bounty_paid,
            self_accept=self_accept,
        )
        title = post.title

    logger.info(
        "Answer %d accepted on question %d by user %s (bounty=%d)",
        answer_id, question_id, actor_id, bounty_paid,
    )

    if not outcome.self_accept:
        dispatcher = dispatcher or get_dispatcher()
        dispatcher.submit(
            f"accept-aura:question={question_id}",
            _reward_answerer, engine, outcome, dispatcher,
        )
        _notify_answerer(engine, outcome, actor_id, title, dispatcher)
    return outcome


def _reward_answerer(
    engine: Engine, outcome: AcceptOutcome, dispatcher: SideEffectDispatcher
) -> None:
    award_aura(
        engine,
        outcome.answer_author_id,
        ACCEPTED_ANSWER_AURA,
        AuraReason.ANSWER_ACCEPTED,
        str(outcome.question_id),
    )
    for criteria in (AchievementCriteria.ANSWERS_ACCEPTED, AchievementCriteria.AURA_POINTS):
        refresh_achievements(
            engine, outcome.answer_author_id, criteria, dispatcher=dispatcher
        )


def _notify_answerer(
    engine: Engine,
    outcome: AcceptOutcome,
    actor_id: int,
    title: str,
    dispatcher: SideEffectDispatcher,
) -> None:
    url = f"/post/{outcome.question_id}#comment-{outcome.answer_id}"
    base = {"postId": outcome.question_id, "commentId": outcome.answer_id}

    payloads = [
        NotificationPayload(
            user_id=outcome.answer_author_id,
            type=NotificationType.COMMENT,
            actor_id=actor_id,
            message=f'accepted your answer on "{title}"',
            action_url=url,
            data={**base, "event": "answer_accepted"},
        )
    ]
    if outcome.bounty_paid:
        payloads.append(NotificationPayload(
            user_id=outcome.answer_author_id,
            type=NotificationType.SYSTEM,
            actor_id=actor_id,
            message=f"You received {outcome.bounty_paid} Ciphers bounty for your answer!",
            action_url=url,
            data={**base, "bountyAmount": outcome.bounty_paid, "event": "bounty_awarded"},
        ))

    for payload in payloads:
        dispatcher.submit(
            f"notify:{payload.data['event']}:user={payload.user_id}",
            notify, engine, payload,
        )


def unaccept_answer(engine: Engine, question_id: int, actor_id: int) -> None:
    """Clear the accepted answer.  Paid bounty and granted Aura are kept."""
    with get_session(engine) as session:
        post = _load_question(session, question_id, actor_id, "unaccept")
        if post.accepted_answer_id is None:
            raise UnauthorizedBountyAction(
                "No answer is currently accepted",
                forbidden=False,
                details={"post_id": question_id},
            )
        previous = post.accepted_answer_id
        post.accepted_answer_id = None

    logger.info(
        "Answer %d unaccepted on question %d by user %s", previous, question_id, actor_id
    )


def get_question(engine: Engine, question_id: int) -> QuestionSnapshot:
    with get_session(engine) as session:
        post = session.get(Post, question_id)
        if post is None:
            raise ContentNotFound("Post not found", {"post_id": question_id})
        return QuestionSnapshot.from_model(post)
