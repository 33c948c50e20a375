# loyerfacile/routers/rental_requests.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_staff, require_tenant
from ..db import get_db
from ..models import RentalRequest
from ..schemas import (
    LeaseOut,
    RentalRequestApprove,
    RentalRequestCreate,
    RentalRequestOut,
    RentalRequestReject,
)
from ..services import lease_lifecycle
from ..services.ownership import must_get_rental_request
from .errors import domain_errors

router = APIRouter(prefix="/rental-requests", tags=["rental-requests"])


@router.get("", response_model=list[RentalRequestOut])
def list_requests(
    status: Optional[str] = Query(default=None),
    property_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    q = select(RentalRequest).where(RentalRequest.space_id == p.space_id)
    if p.is_tenant:
        q = q.where(RentalRequest.tenant_id == p.user_id)
    if status:
        q = q.where(RentalRequest.request_status == status)
    if property_id is not None:
        q = q.where(RentalRequest.property_id == property_id)
    return list(db.scalars(q.order_by(RentalRequest.id.desc())).all())


@router.post("", response_model=RentalRequestOut)
def create_request(
    payload: RentalRequestCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_tenant),
):
    with domain_errors():
        return lease_lifecycle.create_rental_request(
            db,
            space_id=p.space_id,
            property_id=payload.property_id,
            tenant_id=p.user_id,
            message=payload.message,
            proposed_start_date=payload.proposed_start_date,
        )


@router.post("/{request_id}/approve", response_model=LeaseOut)
def approve_request(
    request_id: int,
    payload: RentalRequestApprove,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    must_get_rental_request(db, space_id=p.space_id, request_id=request_id)
    with domain_errors():
        return lease_lifecycle.approve_rental_request(
            db,
            request_id,
            start_date=payload.start_date,
            manager_id=p.user_id,
            monthly_rent=payload.monthly_rent,
            actor_user_id=p.user_id,
        )


@router.post("/{request_id}/reject", response_model=RentalRequestOut)
def reject_request(
    request_id: int,
    payload: RentalRequestReject,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    must_get_rental_request(db, space_id=p.space_id, request_id=request_id)
    with domain_errors():
        return lease_lifecycle.reject_rental_request(db, request_id, reason=payload.reason, actor_user_id=p.user_id)


@router.post("/{request_id}/cancel", response_model=RentalRequestOut)
def cancel_request(
    request_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_tenant),
):
    must_get_rental_request(db, space_id=p.space_id, request_id=request_id, tenant_id=p.user_id)
    with domain_errors():
        return lease_lifecycle.cancel_rental_request(db, request_id, tenant_id=p.user_id)
