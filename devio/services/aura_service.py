"""
devio.services.aura_service — Reputation Awards
================================================

Aura is non-spendable reputation.  There is no materialised balance: a
user's Aura is always ``SUM(aura_transactions.amount)``, computed on read,
so it can never drift from the ledger.

The public award path only grants (``amount > 0``).  Negative entries are
written solely by the vote engine through :func:`apply_aura_delta`, which
reverses earlier vote rewards.  Duplicate prevention is the caller's job;
``source_id`` is recorded for display only.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from devio.constants import DEFAULT_HISTORY_LIMIT
from devio.database.engine import get_session
from devio.database.models import AuraReason, AuraTransaction
from devio.services.ledger import (
    LedgerEntry,
    append_entry,
    list_entries,
    require_user,
    sum_entries,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def apply_aura_delta(
    session: Session,
    user_id: int,
    delta: int,
    reason: AuraReason,
    source_id: str | None = None,
) -> AuraTransaction | None:
    """Write a signed Aura entry inside the caller's transaction.

    Zero deltas write nothing.  Unlike :func:`award_aura` this accepts
    negative amounts; it is the corrective path for vote reversals.
    """
    if delta == 0:
        return None
    require_user(session, user_id)
    return append_entry(
        session,
        AuraTransaction,
        user_id=user_id,
        amount=delta,
        reason=reason,
        source_id=source_id,
    )


def award_aura(
    engine: Engine,
    user_id: int,
    amount: int,
    reason: AuraReason,
    source_id: str | None = None,
) -> LedgerEntry | None:
    """Grant *amount* Aura to *user_id*.

    Non-positive amounts are refused silently (logged, nothing written,
    returns ``None``).
    """
    if amount <= 0:
        logger.warning(
            "Attempted to award non-positive Aura: %d to user %s", amount, user_id
        )
        return None

    with get_session(engine) as session:
        row = apply_aura_delta(session, user_id, amount, reason, source_id)
        entry = LedgerEntry.from_row(row)

    logger.info(
        "Aura +%d → user %s (%s, source=%s)", amount, user_id, reason, source_id
    )
    return entry


def record_vote_delta(
    engine: Engine,
    user_id: int,
    delta: int,
    reason: AuraReason,
    source_id: str | None = None,
) -> LedgerEntry | None:
    """Apply a vote-driven Aura delta (either sign) in its own transaction."""
    with get_session(engine) as session:
        row = apply_aura_delta(session, user_id, delta, reason, source_id)
        entry = LedgerEntry.from_row(row) if row is not None else None

    if entry is not None:
        logger.info(
            "Aura %+d → user %s (%s, source=%s)", delta, user_id, reason, source_id
        )
    return entry


def get_aura_points(engine: Engine, user_id: int) -> int:
    """Current Aura for *user_id*; may be negative, 0 for unknown users."""
    with get_session(engine) as session:
        return sum_entries(session, AuraTransaction, user_id)


def get_aura_history(
    engine: Engine,
    user_id: int,
    limit: int = DEFAULT_HISTORY_LIMIT,
    offset: int = 0,
) -> list[LedgerEntry]:
    """Newest-first page of *user_id*'s Aura entries."""
    with get_session(engine) as session:
        return list_entries(session, AuraTransaction, user_id, limit, offset)
