"""
tests/test_bounty_service.py — Bounty Escrow Integration Tests
===============================================================
Question creation with escrow, answer acceptance (validation, one-time
payout, Aura bonus, notifications) and the deliberately one-way
unaccept.

Uses an in-memory SQLite database and an inline dispatcher.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import make_achievement, make_comment, make_post, make_user
from devio.database.models import (
    AchievementCriteria,
    CipherTransaction,
    Notification,
    Post,
    PostType,
    UserAchievement,
)
from devio.errors import (
    ContentNotFound,
    InsufficientFunds,
    InvalidAmount,
    UnauthorizedBountyAction,
)
from devio.services import bounty_service
from devio.services.aura_service import get_aura_history, get_aura_points
from devio.services.cipher_service import get_cipher_balance, reconcile_balance

ASKER, ANSWERER, BYSTANDER = 1, 2, 3


@pytest.fixture
def users(engine):
    make_user(engine, ASKER, "asker", cipher=50)
    make_user(engine, ANSWERER, "answerer")
    make_user(engine, BYSTANDER, "bystander")


def _question(engine, bounty: int = 20) -> int:
    return bounty_service.create_question(
        engine, ASKER, "How do I escape a regex?", bounty_amount=bounty
    ).id


def _notifications(engine, user_id: int) -> list[Notification]:
    with Session(engine) as session:
        return list(session.scalars(
            select(Notification).where(Notification.user_id == user_id).order_by(Notification.id)
        ).all())


# ===========================================================================
# Place
# ===========================================================================
class TestCreateQuestion:
    def test_bounty_is_escrowed(self, engine, users):
        question = bounty_service.create_question(engine, ASKER, "Q?", bounty_amount=20)

        assert question.bounty_amount == 20
        assert not question.is_bounty_paid
        assert get_cipher_balance(engine, ASKER) == 30

        with Session(engine) as session:
            entry = session.scalar(
                select(CipherTransaction).where(CipherTransaction.reason == "BOUNTY_CREATED")
            )
            assert entry.amount == -20
            assert entry.source_id == str(question.id)
        projection, ledger_sum = reconcile_balance(engine, ASKER)
        assert projection == ledger_sum

    def test_no_bounty_moves_nothing(self, engine, users):
        question = bounty_service.create_question(engine, ASKER, "Free question")
        assert question.bounty_amount == 0
        assert get_cipher_balance(engine, ASKER) == 50

    def test_insufficient_funds_creates_nothing(self, engine, users):
        with pytest.raises(InsufficientFunds):
            bounty_service.create_question(engine, ASKER, "Too rich", bounty_amount=51)

        assert get_cipher_balance(engine, ASKER) == 50
        with Session(engine) as session:
            assert session.scalar(select(func.count()).select_from(Post)) == 0

    def test_negative_bounty_rejected(self, engine, users):
        with pytest.raises(InvalidAmount):
            bounty_service.create_question(engine, ASKER, "Q?", bounty_amount=-1)

    def test_unknown_author(self, engine, users):
        with pytest.raises(ContentNotFound):
            bounty_service.create_question(engine, 404, "Q?")


# ===========================================================================
# Accept
# ===========================================================================
class TestAcceptAnswer:
    def test_full_bounty_flow(self, engine, dispatcher, users):
        """Bounty 20 from 50 → 30; accept pays 20 Cipher + 15 Aura once."""
        qid = _question(engine, 20)
        answer = make_comment(engine, qid, ANSWERER)

        outcome = bounty_service.accept_answer(engine, qid, answer, ASKER, dispatcher=dispatcher)

        assert outcome.bounty_paid == 20
        assert not outcome.self_accept
        assert get_cipher_balance(engine, ASKER) == 30
        assert get_cipher_balance(engine, ANSWERER) == 20
        assert get_aura_points(engine, ANSWERER) == 15

        question = bounty_service.get_question(engine, qid)
        assert question.accepted_answer_id == answer
        assert question.is_bounty_paid

        aura = get_aura_history(engine, ANSWERER)[0]
        assert (aura.reason, aura.source_id) == ("ANSWER_ACCEPTED", str(qid))

    def test_notifications_sent(self, engine, dispatcher, users):
        qid = _question(engine, 20)
        answer = make_comment(engine, qid, ANSWERER)
        bounty_service.accept_answer(engine, qid, answer, ASKER, dispatcher=dispatcher)

        rows = _notifications(engine, ANSWERER)
        events = [n.data["event"] for n in rows]
        assert events == ["answer_accepted", "bounty_awarded"]
        assert rows[0].type == "COMMENT"
        assert rows[0].actor_id == ASKER
        assert rows[0].message == 'accepted your answer on "How do I escape a regex?"'
        assert rows[0].action_url == f"/post/{qid}#comment-{answer}"
        assert rows[1].type == "SYSTEM"
        assert rows[1].message == "You received 20 Ciphers bounty for your answer!"

    def test_no_bounty_still_grants_aura(self, engine, dispatcher, users):
        qid = _question(engine, 0)
        answer = make_comment(engine, qid, ANSWERER)
        outcome = bounty_service.accept_answer(engine, qid, answer, ASKER, dispatcher=dispatcher)

        assert outcome.bounty_paid == 0
        assert get_cipher_balance(engine, ANSWERER) == 0
        assert get_aura_points(engine, ANSWERER) == 15
        assert [n.data["event"] for n in _notifications(engine, ANSWERER)] == ["answer_accepted"]

    def test_self_accept_pays_nothing(self, engine, dispatcher, users):
        qid = _question(engine, 20)
        own_answer = make_comment(engine, qid, ASKER)

        outcome = bounty_service.accept_answer(
            engine, qid, own_answer, ASKER, dispatcher=dispatcher
        )

        assert outcome.self_accept
        assert outcome.bounty_paid == 0
        assert get_cipher_balance(engine, ASKER) == 30
        assert get_aura_points(engine, ASKER) == 0
        question = bounty_service.get_question(engine, qid)
        assert question.accepted_answer_id == own_answer
        assert not question.is_bounty_paid
        assert _notifications(engine, ASKER) == []

    def test_bounty_paid_only_once(self, engine, dispatcher, users):
        qid = _question(engine, 20)
        first = make_comment(engine, qid, ANSWERER)
        second = make_comment(engine, qid, BYSTANDER)

        bounty_service.accept_answer(engine, qid, first, ASKER, dispatcher=dispatcher)
        outcome = bounty_service.accept_answer(engine, qid, second, ASKER, dispatcher=dispatcher)

        assert outcome.bounty_paid == 0
        assert get_cipher_balance(engine, ANSWERER) == 20
        assert get_cipher_balance(engine, BYSTANDER) == 0
        assert bounty_service.get_question(engine, qid).accepted_answer_id == second

    def test_aura_failure_keeps_payout(self, engine, dispatcher, users):
        qid = _question(engine, 20)
        answer = make_comment(engine, qid, ANSWERER)
        with patch(
            "devio.services.bounty_service.award_aura", side_effect=RuntimeError("boom")
        ):
            bounty_service.accept_answer(engine, qid, answer, ASKER, dispatcher=dispatcher)

        assert get_cipher_balance(engine, ANSWERER) == 20
        assert get_aura_points(engine, ANSWERER) == 0

    def test_side_effects_go_through_dispatcher(self, engine, users):
        qid = _question(engine, 20)
        answer = make_comment(engine, qid, ANSWERER)
        mock_dispatcher = MagicMock()

        bounty_service.accept_answer(engine, qid, answer, ASKER, dispatcher=mock_dispatcher)

        # Aura reward + two notifications
        assert mock_dispatcher.submit.call_count == 3
        assert get_cipher_balance(engine, ANSWERER) == 20

    def test_accept_unlocks_answer_achievements(self, engine, dispatcher, users):
        ach_id = make_achievement(
            engine, "first-answer", AchievementCriteria.ANSWERS_ACCEPTED, 1, aura_reward=10
        )
        qid = _question(engine, 0)
        answer = make_comment(engine, qid, ANSWERER)
        bounty_service.accept_answer(engine, qid, answer, ASKER, dispatcher=dispatcher)

        with Session(engine) as session:
            assert session.get(UserAchievement, (ANSWERER, ach_id)) is not None
        assert get_aura_points(engine, ANSWERER) == 25


class TestAcceptValidation:
    def test_missing_question(self, engine, dispatcher, users):
        with pytest.raises(ContentNotFound):
            bounty_service.accept_answer(engine, 999, 1, ASKER, dispatcher=dispatcher)

    def test_missing_answer(self, engine, dispatcher, users):
        qid = _question(engine)
        with pytest.raises(ContentNotFound):
            bounty_service.accept_answer(engine, qid, 999, ASKER, dispatcher=dispatcher)

    def test_only_author_may_accept(self, engine, dispatcher, users):
        qid = _question(engine)
        answer = make_comment(engine, qid, ANSWERER)
        with pytest.raises(UnauthorizedBountyAction) as exc_info:
            bounty_service.accept_answer(engine, qid, answer, BYSTANDER, dispatcher=dispatcher)
        assert exc_info.value.forbidden
        assert get_cipher_balance(engine, ANSWERER) == 0

    def test_not_a_question(self, engine, dispatcher, users):
        post = make_post(engine, ASKER, type=PostType.TEXT)
        comment = make_comment(engine, post, ANSWERER)
        with pytest.raises(UnauthorizedBountyAction) as exc_info:
            bounty_service.accept_answer(engine, post, comment, ASKER, dispatcher=dispatcher)
        assert not exc_info.value.forbidden

    def test_answer_from_other_post(self, engine, dispatcher, users):
        qid = _question(engine)
        elsewhere = make_post(engine, BYSTANDER, type=PostType.QUESTION)
        stray = make_comment(engine, elsewhere, ANSWERER)
        with pytest.raises(UnauthorizedBountyAction, match="does not belong"):
            bounty_service.accept_answer(engine, qid, stray, ASKER, dispatcher=dispatcher)

    def test_nested_reply_rejected(self, engine, dispatcher, users):
        qid = _question(engine)
        top = make_comment(engine, qid, BYSTANDER)
        reply = make_comment(engine, qid, ANSWERER, parent_id=top)
        with pytest.raises(UnauthorizedBountyAction, match="top-level"):
            bounty_service.accept_answer(engine, qid, reply, ASKER, dispatcher=dispatcher)

        question = bounty_service.get_question(engine, qid)
        assert question.accepted_answer_id is None
        assert not question.is_bounty_paid


# ===========================================================================
# Unaccept
# ===========================================================================
class TestUnacceptAnswer:
    def test_unaccept_keeps_payout_and_aura(self, engine, dispatcher, users):
        qid = _question(engine, 20)
        answer = make_comment(engine, qid, ANSWERER)
        bounty_service.accept_answer(engine, qid, answer, ASKER, dispatcher=dispatcher)

        bounty_service.unaccept_answer(engine, qid, ASKER)

        question = bounty_service.get_question(engine, qid)
        assert question.accepted_answer_id is None
        assert question.is_bounty_paid
        assert get_cipher_balance(engine, ANSWERER) == 20
        assert get_aura_points(engine, ANSWERER) == 15
        assert get_cipher_balance(engine, ASKER) == 30

    def test_reaccept_does_not_pay_again(self, engine, dispatcher, users):
        qid = _question(engine, 20)
        answer = make_comment(engine, qid, ANSWERER)
        bounty_service.accept_answer(engine, qid, answer, ASKER, dispatcher=dispatcher)
        bounty_service.unaccept_answer(engine, qid, ASKER)
        bounty_service.accept_answer(engine, qid, answer, ASKER, dispatcher=dispatcher)

        assert get_cipher_balance(engine, ANSWERER) == 20

    def test_nothing_accepted(self, engine, users):
        qid = _question(engine)
        with pytest.raises(UnauthorizedBountyAction, match="No answer") as exc_info:
            bounty_service.unaccept_answer(engine, qid, ASKER)
        assert not exc_info.value.forbidden

    def test_only_author_may_unaccept(self, engine, dispatcher, users):
        qid = _question(engine)
        answer = make_comment(engine, qid, ANSWERER)
        bounty_service.accept_answer(engine, qid, answer, ASKER, dispatcher=dispatcher)

        with pytest.raises(UnauthorizedBountyAction) as exc_info:
            bounty_service.unaccept_answer(engine, qid, ANSWERER)
        assert exc_info.value.forbidden
        assert bounty_service.get_question(engine, qid).accepted_answer_id == answer
