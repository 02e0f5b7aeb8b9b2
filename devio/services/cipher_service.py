"""
devio.services.cipher_service — Spendable Currency
===================================================

Cipher keeps a materialised balance (``users.cipher_balance``) next to its
ledger.  Every write changes both in one transaction:

    1. Lock the balance row (``SELECT … FOR UPDATE``) when debiting.
    2. Adjust the projection with a guarded ``UPDATE``; a debit only
       matches while ``cipher_balance >= amount``, so a stale read can
       never overdraw.
    3. Append the signed ledger entry.

Keyed awards (``source_id`` given) are at-most-once per
``(user_id, reason, source_id)``: a pre-check catches the common case and
the partial unique index catches a concurrent duplicate.  Unkeyed awards
are never deduplicated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from devio.constants import DEFAULT_HISTORY_LIMIT
from devio.database.engine import get_session
from devio.database.models import CipherReason, CipherTransaction, User
from devio.errors import ContentNotFound, InsufficientFunds, InvalidAmount
from devio.services.ledger import (
    LedgerEntry,
    append_entry,
    has_entry,
    list_entries,
    sum_entries,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CipherResult:
    """A committed Cipher write and the balance it left behind."""

    entry: LedgerEntry
    new_balance: int

    def to_dict(self) -> dict:
        return {"transaction": self.entry.to_dict(), "balance": self.new_balance}


# ---------------------------------------------------------------------------
# In-session primitives (caller owns the transaction)
# ---------------------------------------------------------------------------
def _read_balance(session: Session, user_id: int) -> int:
    balance = session.scalar(select(User.cipher_balance).where(User.id == user_id))
    if balance is None:
        raise ContentNotFound(f"User {user_id} not found", {"user_id": user_id})
    return balance


def _lock_balance(session: Session, user_id: int) -> int:
    """Read the balance holding a row lock until the transaction ends."""
    balance = session.scalar(
        select(User.cipher_balance).where(User.id == user_id).with_for_update()
    )
    if balance is None:
        raise ContentNotFound(f"User {user_id} not found", {"user_id": user_id})
    return balance


def credit_in_session(
    session: Session,
    user_id: int,
    amount: int,
    reason: CipherReason,
    source_id: str | None = None,
) -> CipherResult:
    """Increase the projection and append a positive entry."""
    if amount <= 0:
        raise InvalidAmount("Cipher credit must be positive", {"amount": amount})

    result = session.execute(
        update(User)
        .where(User.id == user_id)
        .values(cipher_balance=User.cipher_balance + amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ContentNotFound(f"User {user_id} not found", {"user_id": user_id})

    row = append_entry(
        session,
        CipherTransaction,
        user_id=user_id,
        amount=amount,
        reason=reason,
        source_id=source_id,
    )
    return CipherResult(LedgerEntry.from_row(row), _read_balance(session, user_id))


def debit_in_session(
    session: Session,
    user_id: int,
    amount: int,
    reason: CipherReason,
    source_id: str | None = None,
) -> CipherResult:
    """Decrease the projection and append a negative entry.

    Raises
    ------
    InsufficientFunds
        If the balance is below *amount*.  Nothing is written.
    """
    if amount <= 0:
        raise InvalidAmount("Cipher debit must be positive", {"amount": amount})

    balance = _lock_balance(session, user_id)
    if balance < amount:
        raise InsufficientFunds(balance, amount)

    result = session.execute(
        update(User)
        .where(User.id == user_id, User.cipher_balance >= amount)
        .values(cipher_balance=User.cipher_balance - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Another transaction spent first; report what is there now
        raise InsufficientFunds(_read_balance(session, user_id), amount)

    row = append_entry(
        session,
        CipherTransaction,
        user_id=user_id,
        amount=-amount,
        reason=reason,
        source_id=source_id,
    )
    return CipherResult(LedgerEntry.from_row(row), _read_balance(session, user_id))


# ---------------------------------------------------------------------------
# Public operations (one transaction each)
# ---------------------------------------------------------------------------
def award_cipher(
    engine: Engine,
    user_id: int,
    amount: int,
    reason: CipherReason,
    source_id: str | None = None,
) -> CipherResult | None:
    """Credit *amount* Cipher to *user_id*.

    Returns ``None`` when a keyed award was already paid.
    """
    with get_session(engine) as session:
        if source_id is None:
            result = credit_in_session(session, user_id, amount, reason)
        else:
            if has_entry(session, CipherTransaction, user_id, reason, source_id):
                logger.warning(
                    "User %s already received Cipher for %s:%s. Skipping.",
                    user_id, reason, source_id,
                )
                return None
            try:
                with session.begin_nested():   # SAVEPOINT
                    result = credit_in_session(session, user_id, amount, reason, source_id)
            except IntegrityError:
                # A concurrent award won the unique index; the SAVEPOINT
                # rolled back both the projection and the entry.
                logger.warning(
                    "Concurrent duplicate Cipher award for %s:%s to user %s. Skipping.",
                    reason, source_id, user_id,
                )
                return None

    logger.info(
        "Cipher +%d → user %s (%s, source=%s) balance=%d",
        amount, user_id, reason, source_id, result.new_balance,
    )
    return result


def spend_cipher(
    engine: Engine,
    user_id: int,
    amount: int,
    reason: CipherReason,
    source_id: str | None = None,
) -> CipherResult:
    """Debit *amount* Cipher from *user_id* or raise :class:`InsufficientFunds`."""
    with get_session(engine) as session:
        result = debit_in_session(session, user_id, amount, reason, source_id)

    logger.info(
        "Cipher -%d ← user %s (%s, source=%s) balance=%d",
        amount, user_id, reason, source_id, result.new_balance,
    )
    return result


def get_cipher_balance(engine: Engine, user_id: int) -> int:
    """Projection read (0 for unknown users)."""
    with get_session(engine) as session:
        balance = session.scalar(select(User.cipher_balance).where(User.id == user_id))
        return balance or 0


def get_cipher_history(
    engine: Engine,
    user_id: int,
    limit: int = DEFAULT_HISTORY_LIMIT,
    offset: int = 0,
) -> list[LedgerEntry]:
    """Newest-first page of *user_id*'s Cipher entries."""
    with get_session(engine) as session:
        return list_entries(session, CipherTransaction, user_id, limit, offset)


def reconcile_balance(engine: Engine, user_id: int) -> tuple[int, int]:
    """Return ``(projection, ledger_sum)`` for diagnostics.  Never mutates."""
    with get_session(engine) as session:
        projection = session.scalar(
            select(func.coalesce(User.cipher_balance, 0)).where(User.id == user_id)
        )
        ledger_sum = sum_entries(session, CipherTransaction, user_id)
    projection = projection or 0
    if projection != ledger_sum:
        logger.error(
            "Cipher projection drift for user %s: projection=%d ledger=%d",
            user_id, projection, ledger_sum,
        )
    return projection, ledger_sum
