"""
devio.services.notification_service — In-App Notifications
===========================================================

Default implementation of the notification collaborator: each payload is
persisted to the ``notifications`` table, where the platform's real-time
layer picks it up.  Economy code never calls :func:`notify` inline; it goes
through :func:`notify_later` so delivery problems cannot fail a ledger
operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from devio.database.engine import get_session
from devio.database.models import Notification, NotificationType
from devio.services.dispatch import SideEffectDispatcher, get_dispatcher

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NotificationPayload:
    user_id: int
    type: NotificationType
    message: str
    action_url: str | None = None
    actor_id: int | None = None
    data: dict[str, Any] = field(default_factory=dict)


def notify(engine: Engine, payload: NotificationPayload) -> int:
    """Persist *payload* and return the notification id."""
    with get_session(engine) as session:
        row = Notification(
            user_id=payload.user_id,
            actor_id=payload.actor_id,
            type=str(payload.type),
            message=payload.message,
            action_url=payload.action_url,
            data=payload.data or None,
        )
        session.add(row)
        session.flush()
        notification_id = row.id

    logger.debug(
        "Notification %d → user %s (%s)", notification_id, payload.user_id, payload.type
    )
    return notification_id


def notify_later(
    engine: Engine,
    payload: NotificationPayload,
    dispatcher: SideEffectDispatcher | None = None,
) -> None:
    """Queue :func:`notify` on the side-effect dispatcher."""
    (dispatcher or get_dispatcher()).submit(
        f"notify:{payload.type}:user={payload.user_id}", notify, engine, payload
    )


def list_notifications(engine: Engine, user_id: int, limit: int = 20) -> list[dict]:
    """Newest-first notifications for *user_id*."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        ).all()
        return [
            {
                "id": row.id,
                "type": row.type,
                "message": row.message,
                "action_url": row.action_url,
                "actor_id": row.actor_id,
                "data": row.data or {},
                "is_read": row.is_read,
                "created_at": row.created_at.isoformat() if row.created_at else None,
            }
            for row in rows
        ]
