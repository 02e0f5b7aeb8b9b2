"""
tests/test_achievement_service.py — Achievement Unlock Integration Tests
=========================================================================
Idempotent unlocks, reward entries written with the unlock, notification
fan-out, the counter registry, and the seeded catalogue.

Uses an in-memory SQLite database and an inline dispatcher.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import make_achievement, make_comment, make_post, make_user
from devio.database.models import (
    Achievement,
    AchievementCriteria,
    AuraTransaction,
    Notification,
    PostType,
    UserAchievement,
)
from devio.database.seed import DEFAULT_ACHIEVEMENTS, seed_achievements
from devio.services import achievement_service
from devio.services.aura_service import award_aura, get_aura_points
from devio.services.cipher_service import get_cipher_balance, get_cipher_history
from devio.services.counters import CounterRegistry, counters

USER = 1


@pytest.fixture
def user(engine):
    return make_user(engine, USER)


def _unlock_count(engine, user_id: int = USER) -> int:
    with Session(engine) as session:
        return session.scalar(
            select(func.count())
            .select_from(UserAchievement)
            .where(UserAchievement.user_id == user_id)
        )


class TestCheckAndUnlock:
    def test_unlocks_once_and_awards_aura_once(self, engine, dispatcher, user):
        """Threshold 5 on PROBLEM_SOLVED: unlock at 5, no-op at 10."""
        make_achievement(
            engine, "five-solves", AchievementCriteria.PROBLEM_SOLVED, 5, aura_reward=25
        )

        first = achievement_service.check_and_unlock(
            engine, USER, "PROBLEM_SOLVED", 5, dispatcher=dispatcher
        )
        second = achievement_service.check_and_unlock(
            engine, USER, "PROBLEM_SOLVED", 10, dispatcher=dispatcher
        )

        assert [a.slug for a in first] == ["five-solves"]
        assert second == []
        assert _unlock_count(engine) == 1
        assert get_aura_points(engine, USER) == 25

    def test_below_threshold_unlocks_nothing(self, engine, dispatcher, user):
        make_achievement(engine, "five-solves", AchievementCriteria.PROBLEM_SOLVED, 5)
        assert achievement_service.check_and_unlock(
            engine, USER, AchievementCriteria.PROBLEM_SOLVED, 4, dispatcher=dispatcher
        ) == []
        assert _unlock_count(engine) == 0

    def test_multiple_tiers_in_one_check(self, engine, dispatcher, user):
        make_achievement(engine, "one", AchievementCriteria.POSTS_CREATED, 1, aura_reward=5)
        make_achievement(engine, "ten", AchievementCriteria.POSTS_CREATED, 10, aura_reward=20)
        make_achievement(engine, "fifty", AchievementCriteria.POSTS_CREATED, 50, aura_reward=50)

        unlocked = achievement_service.check_and_unlock(
            engine, USER, AchievementCriteria.POSTS_CREATED, 12, dispatcher=dispatcher
        )

        assert [a.slug for a in unlocked] == ["one", "ten"]
        assert get_aura_points(engine, USER) == 25

    def test_other_criteria_ignored(self, engine, dispatcher, user):
        make_achievement(engine, "streak", AchievementCriteria.STREAK_DAYS, 1)
        assert achievement_service.check_and_unlock(
            engine, USER, AchievementCriteria.PROBLEM_SOLVED, 100, dispatcher=dispatcher
        ) == []

    def test_reward_entries_are_keyed_by_slug(self, engine, dispatcher, user):
        make_achievement(
            engine, "helper", AchievementCriteria.ANSWERS_ACCEPTED, 1,
            aura_reward=10, cipher_reward=20,
        )
        achievement_service.check_and_unlock(
            engine, USER, AchievementCriteria.ANSWERS_ACCEPTED, 1, dispatcher=dispatcher
        )

        assert get_cipher_balance(engine, USER) == 20
        cipher = get_cipher_history(engine, USER)[0]
        assert (cipher.reason, cipher.source_id) == ("ACHIEVEMENT_UNLOCKED", "achievement:helper")
        with Session(engine) as session:
            aura = session.scalar(select(AuraTransaction))
            assert (aura.reason, aura.source_id) == ("ACHIEVEMENT_UNLOCKED", "achievement:helper")

    def test_zero_rewards_write_no_ledger_rows(self, engine, dispatcher, user):
        make_achievement(engine, "badge-only", AchievementCriteria.STREAK_DAYS, 3)
        achievement_service.check_and_unlock(
            engine, USER, AchievementCriteria.STREAK_DAYS, 3, dispatcher=dispatcher
        )
        assert _unlock_count(engine) == 1
        assert get_aura_points(engine, USER) == 0
        assert get_cipher_balance(engine, USER) == 0

    def test_concurrent_unlock_is_skipped(self, engine, dispatcher, user):
        """If another request inserted the unlock first, the PK collision is a no-op."""
        make_achievement(
            engine, "five-solves", AchievementCriteria.PROBLEM_SOLVED, 5, aura_reward=25
        )
        achievement_service.check_and_unlock(
            engine, USER, AchievementCriteria.PROBLEM_SOLVED, 5, dispatcher=dispatcher
        )

        # Simulate a stale "already held" read: the unlock row exists but we didn't see it
        with patch("devio.services.achievement_service.select_unlockable") as selector:
            with Session(engine) as session:
                selector.return_value = list(session.scalars(select(Achievement)).all())
            again = achievement_service.check_and_unlock(
                engine, USER, AchievementCriteria.PROBLEM_SOLVED, 5, dispatcher=dispatcher
            )

        assert again == []
        assert _unlock_count(engine) == 1
        assert get_aura_points(engine, USER) == 25

    def test_notifies_user(self, engine, dispatcher, user):
        make_achievement(engine, "five-solves", AchievementCriteria.PROBLEM_SOLVED, 5)
        achievement_service.check_and_unlock(
            engine, USER, AchievementCriteria.PROBLEM_SOLVED, 5, dispatcher=dispatcher
        )

        with Session(engine) as session:
            note = session.scalar(select(Notification).where(Notification.user_id == USER))
            assert note.type == "ACHIEVEMENT"
            assert note.data["event"] == "achievement_unlocked"
            assert note.data["slug"] == "five-solves"

    def test_notification_failure_does_not_undo_unlock(self, engine, dispatcher, user):
        make_achievement(
            engine, "five-solves", AchievementCriteria.PROBLEM_SOLVED, 5, aura_reward=25
        )
        with patch(
            "devio.services.notification_service.notify", side_effect=RuntimeError("smtp")
        ):
            unlocked = achievement_service.check_and_unlock(
                engine, USER, AchievementCriteria.PROBLEM_SOLVED, 5, dispatcher=dispatcher
            )

        assert len(unlocked) == 1
        assert _unlock_count(engine) == 1
        assert get_aura_points(engine, USER) == 25

    def test_list_user_achievements(self, engine, dispatcher, user):
        make_achievement(engine, "five-solves", AchievementCriteria.PROBLEM_SOLVED, 5)
        achievement_service.check_and_unlock(
            engine, USER, AchievementCriteria.PROBLEM_SOLVED, 5, dispatcher=dispatcher
        )

        rows = achievement_service.list_user_achievements(engine, USER)
        assert [r["slug"] for r in rows] == ["five-solves"]
        assert rows[0]["unlocked_at"] is not None


class TestCounters:
    def test_posts_and_comments(self, engine, user):
        make_user(engine, 2)
        post = make_post(engine, USER)
        make_post(engine, USER)
        make_comment(engine, post, USER)
        make_comment(engine, post, 2)

        assert achievement_service.get_user_count(engine, USER, "POSTS_CREATED") == 2
        assert achievement_service.get_user_count(engine, USER, "COMMENTS_CREATED") == 1

    def test_aura_points(self, engine, user):
        award_aura(engine, USER, 40, "ADMIN_GRANT")
        assert achievement_service.get_user_count(
            engine, USER, AchievementCriteria.AURA_POINTS
        ) == 40

    def test_answers_accepted_excludes_self_answers(self, engine, user):
        from devio.services import bounty_service

        make_user(engine, 2)
        theirs = make_post(engine, 2, type=PostType.QUESTION)
        mine = make_post(engine, USER, type=PostType.QUESTION)
        answer = make_comment(engine, theirs, USER)
        own = make_comment(engine, mine, USER)
        with patch("devio.services.bounty_service.get_dispatcher"):
            bounty_service.accept_answer(engine, theirs, answer, 2)
            bounty_service.accept_answer(engine, mine, own, USER)

        assert achievement_service.get_user_count(
            engine, USER, AchievementCriteria.ANSWERS_ACCEPTED
        ) == 1

    def test_unregistered_criteria_counts_zero(self, engine, user):
        assert achievement_service.get_user_count(engine, USER, "PROBLEM_SOLVED") == 0

    def test_platform_can_register_provider(self, engine, dispatcher, user):
        make_achievement(engine, "solver", AchievementCriteria.PROBLEM_SOLVED, 3)
        counters.register(AchievementCriteria.PROBLEM_SOLVED, lambda session, uid: 7)
        try:
            unlocked = achievement_service.refresh_achievements(
                engine, USER, AchievementCriteria.PROBLEM_SOLVED, dispatcher=dispatcher
            )
        finally:
            counters.unregister(AchievementCriteria.PROBLEM_SOLVED)

        assert [a.slug for a in unlocked] == ["solver"]

    def test_registry_decorator(self):
        registry = CounterRegistry()

        @registry.register("FLAGS_CAPTURED")
        def _flags(session, user_id):
            return 3

        assert "FLAGS_CAPTURED" in registry
        assert registry.count(None, 1, "FLAGS_CAPTURED") == 3
        registry.unregister("FLAGS_CAPTURED")
        assert "FLAGS_CAPTURED" not in registry


class TestSeed:
    def test_seed_is_idempotent(self, engine):
        assert seed_achievements(engine) == len(DEFAULT_ACHIEVEMENTS)
        assert seed_achievements(engine) == 0

    def test_seeded_slugs_unique(self, engine):
        seed_achievements(engine)
        with Session(engine) as session:
            slugs = session.scalars(select(Achievement.slug)).all()
        assert len(slugs) == len(set(slugs))
