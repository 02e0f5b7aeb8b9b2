"""
devio.services.vote_service — Transactional Vote Application
=============================================================

Applies the vote state machine (:mod:`devio.engine.votes`) to posts and
comments.  Per request:

    1. Lock the target row and the voter's existing vote row
       (``SELECT … FOR UPDATE``) so concurrent votes by the same user
       serialize and each sees the state the previous one committed.
    2. Resolve the transition.
    3. Create / switch / delete the vote row and adjust the target's
       ``upvotes`` / ``downvotes`` counters in the same transaction.
    4. After commit, queue the author's Aura delta on the side-effect
       dispatcher.  Self-votes change the row and counters but never Aura.

Two first-time votes racing past the lock (no row to lock yet) collide on
the ``(target, user)`` unique constraint; the loser retries once against
the winner's committed state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from devio.database.engine import get_session
from devio.database.models import (
    AchievementCriteria,
    Comment,
    CommentVote,
    Post,
    PostVote,
    VoteType,
)
from devio.engine.votes import TargetKind, aura_reason_for, resolve_vote
from devio.errors import TargetNotFound
from devio.services.achievement_service import refresh_achievements
from devio.services.aura_service import record_vote_delta
from devio.services.dispatch import SideEffectDispatcher, get_dispatcher

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# kind → (target model, vote model, vote column referencing the target)
_TARGETS = {
    TargetKind.POST: (Post, PostVote, PostVote.post_id),
    TargetKind.COMMENT: (Comment, CommentVote, CommentVote.comment_id),
}

_MAX_ATTEMPTS = 2


@dataclass(frozen=True, slots=True)
class VoteOutcome:
    """Committed result of one vote request."""

    kind: TargetKind
    target_id: int
    voter_id: int
    author_id: int
    previous: VoteType | None
    current: VoteType | None
    upvotes: int
    downvotes: int
    aura_delta: int
    self_vote: bool

    def to_dict(self) -> dict:
        return {
            "kind": str(self.kind),
            "target_id": self.target_id,
            "previous": str(self.previous) if self.previous else None,
            "vote": str(self.current) if self.current else None,
            "upvotes": self.upvotes,
            "downvotes": self.downvotes,
            "aura_delta": self.aura_delta,
            "self_vote": self.self_vote,
        }


def _coerce_vote(vote_type: VoteType | str | None) -> VoteType | None:
    if vote_type is None:
        return None
    return VoteType(str(vote_type).upper())


def _apply_vote(
    engine: Engine,
    kind: TargetKind,
    target_id: int,
    voter_id: int,
    requested: VoteType | None,
) -> VoteOutcome:
    target_model, vote_model, target_col = _TARGETS[kind]

    with get_session(engine) as session:
        target = session.scalar(
            select(target_model).where(target_model.id == target_id).with_for_update()
        )
        if target is None:
            raise TargetNotFound(
                f"{kind.title()} not found", {"kind": str(kind), "target_id": target_id}
            )

        existing = session.scalar(
            select(vote_model)
            .where(target_col == target_id, vote_model.user_id == voter_id)
            .with_for_update()
        )
        current = VoteType(existing.type) if existing is not None else None
        transition = resolve_vote(kind, current, requested)

        action = transition.row_action
        if action == "create":
            session.add(vote_model(
                **{target_col.key: target_id},
                user_id=voter_id,
                type=transition.new_state.value,
            ))
        elif action == "update":
            existing.type = transition.new_state.value
        elif action == "delete":
            session.delete(existing)

        if transition.upvotes_delta:
            target.upvotes = target_model.upvotes + transition.upvotes_delta
        if transition.downvotes_delta:
            target.downvotes = target_model.downvotes + transition.downvotes_delta
        session.flush()
        session.refresh(target)

        self_vote = target.author_id == voter_id
        return VoteOutcome(
            kind=kind,
            target_id=target_id,
            voter_id=voter_id,
            author_id=target.author_id,
            previous=transition.previous,
            current=transition.new_state,
            upvotes=target.upvotes,
            downvotes=target.downvotes,
            aura_delta=0 if self_vote else transition.aura_delta,
            self_vote=self_vote,
        )


def _reward_author(
    engine: Engine,
    kind: TargetKind,
    outcome: VoteOutcome,
    dispatcher: SideEffectDispatcher,
) -> None:
    """Post-commit: write the author's Aura delta, then re-check Aura badges."""
    reason = aura_reason_for(kind, outcome.aura_delta)
    record_vote_delta(
        engine, outcome.author_id, outcome.aura_delta, reason, str(outcome.target_id)
    )
    if outcome.aura_delta > 0:
        refresh_achievements(
            engine, outcome.author_id, AchievementCriteria.AURA_POINTS,
            dispatcher=dispatcher,
        )


def vote(
    engine: Engine,
    kind: TargetKind | str,
    target_id: int,
    voter_id: int,
    vote_type: VoteType | str | None,
    *,
    dispatcher: SideEffectDispatcher | None = None,
) -> VoteOutcome:
    """Apply *vote_type* (``UP``, ``DOWN`` or ``None``) from *voter_id*.

    Sending the vote the user already holds removes it (toggle off).

    Raises
    ------
    TargetNotFound
        If the post / comment does not exist.
    """
    kind = TargetKind(str(kind).upper())
    requested = _coerce_vote(vote_type)
    dispatcher = dispatcher or get_dispatcher()

    for attempt in range(1, _MAX_ATTEMPTS + 1):
        try:
            outcome = _apply_vote(engine, kind, target_id, voter_id, requested)
            break
        except IntegrityError:
            if attempt == _MAX_ATTEMPTS:
                raise
            logger.info(
                "Concurrent first vote on %s %s by user %s; retrying",
                kind, target_id, voter_id,
            )

    logger.debug(
        "Vote %s %s by user %s: %s → %s (aura %+d)",
        kind, target_id, voter_id, outcome.previous, outcome.current, outcome.aura_delta,
    )

    if outcome.aura_delta != 0:
        dispatcher.submit(
            f"vote-aura:{kind}:{target_id}",
            _reward_author, engine, kind, outcome, dispatcher,
        )
    return outcome


def vote_post(
    engine: Engine,
    post_id: int,
    voter_id: int,
    vote_type: VoteType | str | None,
    *,
    dispatcher: SideEffectDispatcher | None = None,
) -> VoteOutcome:
    return vote(engine, TargetKind.POST, post_id, voter_id, vote_type, dispatcher=dispatcher)


def vote_comment(
    engine: Engine,
    comment_id: int,
    voter_id: int,
    vote_type: VoteType | str | None,
    *,
    dispatcher: SideEffectDispatcher | None = None,
) -> VoteOutcome:
    return vote(
        engine, TargetKind.COMMENT, comment_id, voter_id, vote_type, dispatcher=dispatcher
    )


def get_vote(
    engine: Engine,
    kind: TargetKind | str,
    target_id: int,
    voter_id: int,
) -> VoteType | None:
    """The vote *voter_id* currently holds on the target, if any."""
    kind = TargetKind(str(kind).upper())
    _, vote_model, target_col = _TARGETS[kind]
    with get_session(engine) as session:
        value = session.scalar(
            select(vote_model.type).where(
                target_col == target_id, vote_model.user_id == voter_id
            )
        )
    return VoteType(value) if value is not None else None
