# loyerfacile/routers/audit.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, require_staff
from ..db import get_db
from ..domain.audit import audit_history
from ..schemas import AuditEventOut

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditEventOut])
def list_audit(
    entity_type: Optional[str] = Query(default=None, description="Lease, Payment, MaintenanceTicket, ..."),
    entity_id: Optional[str] = Query(default=None),
    action: Optional[str] = Query(default=None, description="e.g. lease.deposit_confirmed"),
    since: Optional[date] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=500),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    """Space trail for managers; tenants never see it."""
    return audit_history(
        db,
        space_id=p.space_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        since=since,
        limit=limit,
    )
