from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..models import AuditEvent


def _snapshot(v: Optional[dict[str, Any]]) -> Optional[str]:
    # date and datetime columns go through str()
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str, ensure_ascii=False)


def audit_write(
    db: Session,
    *,
    space_id: int,
    actor_user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: str,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
    commit: bool = False,
) -> AuditEvent:
    """
    Record who changed a lease, payment or ticket in a space, with row snapshots.

    Lifecycle services call this before their own commit so the change and
    its trace land in the same transaction. actor_user_id is None for the
    billing jobs and the aggregator webhook.
    """
    row = AuditEvent(
        space_id=space_id,
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=_snapshot(before),
        after_json=_snapshot(after),
        created_at=datetime.utcnow(),
    )
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    return row


def emit_audit(db: Session, **kw: Any) -> AuditEvent:
    """audit_write + commit, for routers that already committed their change."""
    return audit_write(db, commit=True, **kw)


def audit_history(
    db: Session,
    *,
    space_id: int,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    since: Optional[date] = None,
    limit: int = 200,
) -> list[AuditEvent]:
    """Newest first, always confined to one space."""
    q = select(AuditEvent).where(AuditEvent.space_id == space_id)
    if entity_type:
        q = q.where(AuditEvent.entity_type == entity_type)
    if entity_id:
        q = q.where(AuditEvent.entity_id == str(entity_id))
    if action:
        q = q.where(AuditEvent.action == action)
    if since is not None:
        q = q.where(AuditEvent.created_at >= datetime.combine(since, datetime.min.time()))
    return list(db.scalars(q.order_by(desc(AuditEvent.id)).limit(limit)).all())
