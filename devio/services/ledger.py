"""
devio.services.ledger — Append-Only Ledger Primitives
======================================================

The storage primitive both point systems build on.  A ledger row is a
signed, non-zero amount for one user, tagged with a closed reason code and
an optional correlation ``source_id``.  Rows are written once and never
updated or deleted; a user's balance in a currency is the sum of their
rows.

All functions take an open :class:`Session` so they join the caller's
transaction.  Nothing here commits.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from devio.constants import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT
from devio.database.models import AuraTransaction, CipherTransaction, User
from devio.errors import ContentNotFound, InvalidAmount

LedgerModel = Union[type[AuraTransaction], type[CipherTransaction]]


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """Detached snapshot of one ledger row."""

    id: int
    user_id: int
    amount: int
    reason: str
    source_id: str | None
    created_at: datetime | None

    @classmethod
    def from_row(cls, row: AuraTransaction | CipherTransaction) -> LedgerEntry:
        return cls(
            id=row.id,
            user_id=row.user_id,
            amount=row.amount,
            reason=row.reason,
            source_id=row.source_id,
            created_at=row.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": self.amount,
            "reason": self.reason,
            "source_id": self.source_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def require_user(session: Session, user_id: int) -> User:
    """Fetch a User or raise :class:`ContentNotFound`."""
    user = session.get(User, user_id)
    if user is None:
        raise ContentNotFound(f"User {user_id} not found", {"user_id": user_id})
    return user


def clamp_page(limit: int, offset: int) -> tuple[int, int]:
    """Bound history paging to sane values."""
    if limit <= 0:
        limit = DEFAULT_HISTORY_LIMIT
    return min(limit, MAX_HISTORY_LIMIT), max(offset, 0)


def append_entry(
    session: Session,
    model: LedgerModel,
    *,
    user_id: int,
    amount: int,
    reason: str,
    source_id: str | None = None,
) -> AuraTransaction | CipherTransaction:
    """Insert one immutable ledger row and flush it.

    Raises
    ------
    InvalidAmount
        If *amount* is zero (a no-op entry would be noise in the ledger).
    """
    if amount == 0:
        raise InvalidAmount("Ledger amount must be non-zero", {"amount": amount})
    row = model(
        user_id=user_id,
        amount=amount,
        reason=str(reason),
        source_id=source_id,
    )
    session.add(row)
    session.flush()
    return row


def sum_entries(session: Session, model: LedgerModel, user_id: int) -> int:
    """Σ amount over every row *user_id* holds in *model* (0 when none)."""
    total = session.scalar(
        select(func.coalesce(func.sum(model.amount), 0)).where(model.user_id == user_id)
    )
    return int(total or 0)


def list_entries(
    session: Session,
    model: LedgerModel,
    user_id: int,
    limit: int = DEFAULT_HISTORY_LIMIT,
    offset: int = 0,
) -> list[LedgerEntry]:
    """Newest-first page of a user's ledger rows."""
    limit, offset = clamp_page(limit, offset)
    rows = session.scalars(
        select(model)
        .where(model.user_id == user_id)
        .order_by(model.created_at.desc(), model.id.desc())
        .offset(offset)
        .limit(limit)
    ).all()
    return [LedgerEntry.from_row(row) for row in rows]


def has_entry(
    session: Session,
    model: LedgerModel,
    user_id: int,
    reason: str,
    source_id: str,
) -> bool:
    """Whether a credit under the key ``(user_id, reason, source_id)`` exists.

    Debits never occupy a key, so a source may be spent against repeatedly.
    """
    count = session.scalar(
        select(func.count())
        .select_from(model)
        .where(
            model.user_id == user_id,
            model.reason == str(reason),
            model.source_id == source_id,
            model.amount > 0,
        )
    )
    return bool(count)
