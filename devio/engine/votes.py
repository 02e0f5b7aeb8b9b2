"""
devio.engine.votes — Vote State Machine
========================================

Pure calculation for the tri-state vote a user holds on a post or comment.
No database I/O: callers pass the committed previous state and the request,
and get back the new state plus the counter and Aura deltas to apply.

Transitions (``None`` means "no vote")::

    requested None             → None,      delta -points(current)
    requested == current       → None,      delta -points(current)   (toggle off)
    current None               → requested, delta +points(requested)
    current != requested       → requested, delta -points(current) + points(requested)

Every (current, requested) pair has exactly one outcome, so there is no
error path.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from devio.constants import (
    COMMENT_DOWNVOTE_AURA,
    COMMENT_UPVOTE_AURA,
    POST_DOWNVOTE_AURA,
    POST_UPVOTE_AURA,
)
from devio.database.models import AuraReason, VoteType

__all__ = [
    "TargetKind",
    "VOTE_POINTS",
    "VoteTransition",
    "aura_reason_for",
    "points_for",
    "resolve_vote",
]


class TargetKind(enum.StrEnum):
    """What is being voted on."""
    POST = "POST"
    COMMENT = "COMMENT"


# ---------------------------------------------------------------------------
# Aura granted to the target's author per vote type
# ---------------------------------------------------------------------------
VOTE_POINTS: dict[TargetKind, dict[VoteType, int]] = {
    TargetKind.POST: {VoteType.UP: POST_UPVOTE_AURA, VoteType.DOWN: POST_DOWNVOTE_AURA},
    TargetKind.COMMENT: {VoteType.UP: COMMENT_UPVOTE_AURA, VoteType.DOWN: COMMENT_DOWNVOTE_AURA},
}

_REASONS: dict[TargetKind, tuple[AuraReason, AuraReason]] = {
    TargetKind.POST: (AuraReason.POST_UPVOTED, AuraReason.POST_DOWNVOTED),
    TargetKind.COMMENT: (AuraReason.COMMENT_UPVOTED, AuraReason.COMMENT_DOWNVOTED),
}


@dataclass(frozen=True, slots=True)
class VoteTransition:
    """Result of applying a vote request to the current state."""

    previous: VoteType | None
    new_state: VoteType | None
    aura_delta: int
    upvotes_delta: int
    downvotes_delta: int

    @property
    def row_action(self) -> str:
        """``"create"``, ``"update"``, ``"delete"`` or ``"none"`` for the vote row."""
        if self.previous is None:
            return "none" if self.new_state is None else "create"
        if self.new_state is None:
            return "delete"
        return "update"


def points_for(kind: TargetKind, state: VoteType | None) -> int:
    """Aura value of *state* on a target of *kind* (0 for no vote)."""
    if state is None:
        return 0
    return VOTE_POINTS[kind][state]


def _counter_deltas(state: VoteType | None, sign: int) -> tuple[int, int]:
    if state is VoteType.UP:
        return sign, 0
    if state is VoteType.DOWN:
        return 0, sign
    return 0, 0


def resolve_vote(
    kind: TargetKind,
    current: VoteType | None,
    requested: VoteType | None,
) -> VoteTransition:
    """Compute the outcome of *requested* given the committed *current* vote."""
    if requested is None or requested == current:
        new_state = None
    else:
        new_state = requested

    aura_delta = points_for(kind, new_state) - points_for(kind, current)

    up_out, down_out = _counter_deltas(current, -1)
    up_in, down_in = _counter_deltas(new_state, +1)

    return VoteTransition(
        previous=current,
        new_state=new_state,
        aura_delta=aura_delta,
        upvotes_delta=up_out + up_in,
        downvotes_delta=down_out + down_in,
    )


def aura_reason_for(kind: TargetKind, delta: int) -> AuraReason:
    """Ledger reason for a vote-driven Aura *delta* (by sign)."""
    upvoted, downvoted = _REASONS[kind]
    return upvoted if delta > 0 else downvoted
