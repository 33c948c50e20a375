from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Notification
from .realtime import hub

log = logging.getLogger("loyerfacile.notifications")


def notify(
    db: Session,
    *,
    user_id: int,
    type: str,
    titre: str,
    message: str,
    lease_id: Optional[int] = None,
    once_per_day: Optional[date] = None,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> Optional[Notification]:
    """
    Add a notification for one user.

    With once_per_day, nothing is written when the same (user, lease, type)
    already has a notification created that day; returns None in that case.
    """
    if once_per_day is not None:
        day_start = datetime.combine(once_per_day, time.min)
        existing = db.scalar(
            select(Notification.id).where(
                Notification.user_id == user_id,
                Notification.lease_id == lease_id,
                Notification.type == type,
                Notification.created_at >= day_start,
                Notification.created_at < day_start + timedelta(days=1),
            )
        )
        if existing is not None:
            return None

    row = Notification(
        user_id=int(user_id),
        lease_id=lease_id,
        type=str(type),
        titre=str(titre),
        message=str(message),
        lu=False,
        created_at=now or datetime.utcnow(),
    )
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
        hub.publish("notifications", "insert", row.id)
    else:
        db.flush()
    log.info("notification queued", extra={"user_id": user_id, "lease_id": lease_id})
    return row


def mark_read(db: Session, *, user_id: int, notification_id: int) -> Notification:
    row = db.scalar(select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id))
    if row is None:
        raise LookupError("notification not found")
    if not row.lu:
        row.lu = True
        db.commit()
        hub.publish("notifications", "update", row.id)
    return row


def list_for_user(db: Session, *, user_id: int, unread_only: bool = False, limit: int = 100) -> list[Notification]:
    q = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        q = q.where(Notification.lu.is_(False))
    return list(db.scalars(q.order_by(Notification.id.desc()).limit(limit)).all())
