"""
devio.services.counters — Achievement Counter Providers
========================================================

Maps each achievement criteria key to a counting query for one user.  This
is the seam to the rest of the platform: the economy core ships providers
for the tables it owns (posts, comments, accepted answers, Aura), and other
modules (submissions, streaks, follows …) register their own at startup::

    from devio.services.counters import counters

    @counters.register("PROBLEM_SOLVED")
    def _solved(session, user_id):
        return session.scalar(...)

An unregistered key counts as 0.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from devio.database.models import (
    AchievementCriteria,
    AuraTransaction,
    Comment,
    Post,
)
from devio.services.ledger import sum_entries

logger = logging.getLogger(__name__)

CounterFn = Callable[[Session, int], int]


class CounterRegistry:
    """criteria key → ``fn(session, user_id) -> int``."""

    def __init__(self) -> None:
        self._providers: dict[str, CounterFn] = {}

    def register(self, criteria: str, fn: CounterFn | None = None):
        """Register *fn* for *criteria*; usable as a decorator."""
        key = str(criteria)

        def _decorator(func_: CounterFn) -> CounterFn:
            if key in self._providers:
                logger.info("Replacing counter provider for %s", key)
            self._providers[key] = func_
            return func_

        if fn is not None:
            return _decorator(fn)
        return _decorator

    def unregister(self, criteria: str) -> None:
        self._providers.pop(str(criteria), None)

    def __contains__(self, criteria: object) -> bool:
        return str(criteria) in self._providers

    def count(self, session: Session, user_id: int, criteria: str) -> int:
        provider = self._providers.get(str(criteria))
        if provider is None:
            logger.debug("No counter registered for %s; counting 0", criteria)
            return 0
        return int(provider(session, user_id) or 0)


counters = CounterRegistry()


# ---------------------------------------------------------------------------
# Built-in providers
# ---------------------------------------------------------------------------
@counters.register(AchievementCriteria.POSTS_CREATED)
def _count_posts(session: Session, user_id: int) -> int:
    return session.scalar(
        select(func.count()).select_from(Post).where(Post.author_id == user_id)
    ) or 0


@counters.register(AchievementCriteria.COMMENTS_CREATED)
def _count_comments(session: Session, user_id: int) -> int:
    return session.scalar(
        select(func.count()).select_from(Comment).where(Comment.author_id == user_id)
    ) or 0


@counters.register(AchievementCriteria.ANSWERS_ACCEPTED)
def _count_accepted_answers(session: Session, user_id: int) -> int:
    return session.scalar(
        select(func.count())
        .select_from(Post)
        .join(Comment, Comment.id == Post.accepted_answer_id)
        .where(Comment.author_id == user_id, Post.author_id != user_id)
    ) or 0


@counters.register(AchievementCriteria.AURA_POINTS)
def _count_aura(session: Session, user_id: int) -> int:
    return sum_entries(session, AuraTransaction, user_id)
