"""
devio.services.achievement_service — Achievement Unlocks
=========================================================

Idempotent, threshold-based badge unlocks:

    1. Load the achievements configured for the criteria key.
    2. Select those whose threshold the caller's counter meets and that the
       user does not hold yet.
    3. For each, insert the unlock row inside a SAVEPOINT together with its
       Aura / Cipher reward entries.  A uniqueness violation means a
       concurrent check already unlocked it: the SAVEPOINT is rolled back
       and the achievement skipped, never awarded twice.
    4. After commit, queue a notification per unlock.

The counter value is supplied by the caller; :func:`refresh_achievements`
is the convenience that queries it first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from devio.constants import achievement_source_id
from devio.database.engine import get_session
from devio.database.models import (
    Achievement,
    AuraReason,
    CipherReason,
    NotificationType,
    UserAchievement,
)
from devio.engine.achievements import select_unlockable
from devio.services.aura_service import apply_aura_delta
from devio.services.cipher_service import credit_in_session
from devio.services.counters import counters
from devio.services.dispatch import SideEffectDispatcher
from devio.services.notification_service import NotificationPayload, notify_later

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UnlockedAchievement:
    id: int
    slug: str
    name: str
    criteria: str
    threshold: int | None
    aura_reward: int
    cipher_reward: int

    @classmethod
    def from_model(cls, ach: Achievement) -> UnlockedAchievement:
        return cls(
            id=ach.id,
            slug=ach.slug,
            name=ach.name,
            criteria=ach.criteria,
            threshold=ach.threshold,
            aura_reward=ach.aura_reward,
            cipher_reward=ach.cipher_reward,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "criteria": self.criteria,
            "threshold": self.threshold,
            "aura_reward": self.aura_reward,
            "cipher_reward": self.cipher_reward,
        }


def check_and_unlock(
    engine: Engine,
    user_id: int,
    criteria: str,
    current_value: int,
    *,
    dispatcher: SideEffectDispatcher | None = None,
) -> list[UnlockedAchievement]:
    """Unlock every achievement under *criteria* that *current_value* reaches.

    Returns only the achievements unlocked by this call.
    """
    criteria = str(criteria)
    newly_unlocked: list[UnlockedAchievement] = []

    with get_session(engine) as session:
        achievements = session.scalars(
            select(Achievement)
            .where(Achievement.criteria == criteria)
            .order_by(Achievement.threshold)
        ).all()
        if not achievements:
            return []

        held = set(session.scalars(
            select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
        ).all())

        for ach in select_unlockable(achievements, current_value, held):
            source_id = achievement_source_id(ach.slug)
            try:
                with session.begin_nested():   # SAVEPOINT
                    session.add(UserAchievement(user_id=user_id, achievement_id=ach.id))
                    session.flush()
                    if ach.aura_reward > 0:
                        apply_aura_delta(
                            session, user_id, ach.aura_reward,
                            AuraReason.ACHIEVEMENT_UNLOCKED, source_id,
                        )
                    if ach.cipher_reward > 0:
                        credit_in_session(
                            session, user_id, ach.cipher_reward,
                            CipherReason.ACHIEVEMENT_UNLOCKED, source_id,
                        )
            except IntegrityError:
                logger.info(
                    "Achievement %r already unlocked for user %s; skipping",
                    ach.slug, user_id,
                )
                continue
            newly_unlocked.append(UnlockedAchievement.from_model(ach))

    for unlocked in newly_unlocked:
        logger.info(
            "Achievement unlocked: %r (id=%d) for user %s",
            unlocked.name, unlocked.id, user_id,
        )
        notify_later(
            engine,
            NotificationPayload(
                user_id=user_id,
                type=NotificationType.ACHIEVEMENT,
                message=f'Achievement unlocked: "{unlocked.name}"',
                action_url="/achievements",
                data={
                    "achievement_id": unlocked.id,
                    "slug": unlocked.slug,
                    "aura_reward": unlocked.aura_reward,
                    "cipher_reward": unlocked.cipher_reward,
                    "event": "achievement_unlocked",
                },
            ),
            dispatcher,
        )
    return newly_unlocked


def get_user_count(engine: Engine, user_id: int, criteria: str) -> int:
    """Fresh counter value for *criteria* via the registered provider."""
    with get_session(engine) as session:
        return counters.count(session, user_id, criteria)


def refresh_achievements(
    engine: Engine,
    user_id: int,
    criteria: str,
    *,
    dispatcher: SideEffectDispatcher | None = None,
) -> list[UnlockedAchievement]:
    """Query the counter for *criteria*, then :func:`check_and_unlock`."""
    current = get_user_count(engine, user_id, criteria)
    return check_and_unlock(engine, user_id, criteria, current, dispatcher=dispatcher)


def list_user_achievements(engine: Engine, user_id: int) -> list[dict]:
    """Achievements *user_id* holds, most recent first."""
    with get_session(engine) as session:
        rows = session.execute(
            select(Achievement, UserAchievement.unlocked_at)
            .join(UserAchievement, UserAchievement.achievement_id == Achievement.id)
            .where(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.unlocked_at.desc(), Achievement.id)
        ).all()
        return [
            {
                **UnlockedAchievement.from_model(ach).to_dict(),
                "description": ach.description,
                "category": ach.category,
                "unlocked_at": unlocked_at.isoformat() if unlocked_at else None,
            }
            for ach, unlocked_at in rows
        ]
