# loyerfacile/routers/notifications.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import NotificationOut
from ..services import notifications
from .errors import domain_errors

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return notifications.list_for_user(db, user_id=p.user_id, unread_only=unread_only, limit=limit)


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    with domain_errors():
        return notifications.mark_read(db, user_id=p.user_id, notification_id=notification_id)
