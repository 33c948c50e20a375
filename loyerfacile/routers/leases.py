# loyerfacile/routers/leases.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Query
from fastapi import UploadFile as HttpUpload
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_staff, require_tenant
from ..db import get_db
from ..domain.deposit import is_deposit_payment
from ..domain.errors import LifecycleError
from ..schemas import (
    DirectLeaseCreate,
    LeaseOut,
    LeaseStatusUpdate,
    LeaseViewOut,
    PaymentOut,
    PendingPaymentOut,
    ReceiptDispute,
)
from ..services import lease_lifecycle
from ..services.ownership import must_get_lease, must_get_member, must_get_property
from ..services.payments import mark_payment_succeeded, pending_payments_for_lease
from ..services.read_models import lease_views, pending_payment_for_lease
from ..storage import UploadFile
from .errors import domain_errors

router = APIRouter(prefix="/leases", tags=["leases"])


@router.get("", response_model=list[LeaseViewOut])
def list_leases(
    statut: Optional[str] = Query(default=None),
    property_id: Optional[int] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return lease_views(
        db,
        space_id=p.space_id,
        tenant_id=p.tenant_scope,
        statut=statut,
        property_id=property_id,
        limit=limit,
    )


@router.post("/direct", response_model=LeaseOut)
def create_direct_lease(
    payload: DirectLeaseCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    must_get_property(db, space_id=p.space_id, property_id=payload.property_id)
    must_get_member(db, space_id=p.space_id, user_id=payload.tenant_id)
    manager_id = payload.manager_id or p.user_id
    if payload.manager_id is not None:
        must_get_member(db, space_id=p.space_id, user_id=manager_id)

    with domain_errors():
        return lease_lifecycle.create_direct_lease(
            db,
            space_id=p.space_id,
            property_id=payload.property_id,
            tenant_id=payload.tenant_id,
            manager_id=manager_id,
            start_date=payload.start_date,
            monthly_rent=payload.monthly_rent,
            actor_user_id=p.user_id,
        )


@router.get("/{lease_id}", response_model=LeaseViewOut)
def get_lease(lease_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    lease = must_get_lease(db, space_id=p.space_id, lease_id=lease_id, tenant_id=p.tenant_scope)
    views = lease_views(db, space_id=p.space_id, property_id=lease.property_id, tenant_id=p.tenant_scope)
    return next(v for v in views if v.id == lease.id)


@router.get("/{lease_id}/payments", response_model=list[PaymentOut])
def lease_payments(lease_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    lease = must_get_lease(db, space_id=p.space_id, lease_id=lease_id, tenant_id=p.tenant_scope)
    return list(lease.payments)


@router.get("/{lease_id}/pending-payment", response_model=PendingPaymentOut)
def pending_payment(lease_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    lease = must_get_lease(db, space_id=p.space_id, lease_id=lease_id, tenant_id=p.tenant_scope)
    view = pending_payment_for_lease(db, lease)
    if view is None:
        return PendingPaymentOut()
    return PendingPaymentOut(payment=PaymentOut.model_validate(view.payment), is_deposit=view.is_deposit)


@router.post("/{lease_id}/confirm-deposit", response_model=LeaseOut)
def confirm_deposit(lease_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    """Manager confirms the deposit was received outside the payment gateway."""
    lease = must_get_lease(db, space_id=p.space_id, lease_id=lease_id)
    with domain_errors():
        if lease.statut == lease_lifecycle.TERMINATED:
            raise LifecycleError("lease is terminated")
        for row in pending_payments_for_lease(db, lease.id):
            if is_deposit_payment(row, lease):
                mark_payment_succeeded(db, row.id, actor_user_id=p.user_id)
                break
        return lease_lifecycle.confirm_deposit_payment(db, lease.id, actor_user_id=p.user_id)


@router.post("/{lease_id}/receipt", response_model=LeaseOut)
async def upload_receipt(
    lease_id: int,
    file: HttpUpload = File(...),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    lease = must_get_lease(db, space_id=p.space_id, lease_id=lease_id)
    data = await file.read()
    upload = UploadFile(filename=file.filename or "receipt", data=data, content_type=file.content_type)
    with domain_errors():
        return lease_lifecycle.upload_receipt(db, lease.id, upload, uploaded_by=p.user_id)


@router.post("/{lease_id}/receipt/confirm", response_model=LeaseOut)
def confirm_receipt(lease_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_tenant)):
    lease = must_get_lease(db, space_id=p.space_id, lease_id=lease_id, tenant_id=p.user_id)
    with domain_errors():
        return lease_lifecycle.confirm_receipt(db, lease.id, tenant_id=p.user_id)


@router.post("/{lease_id}/receipt/dispute", response_model=LeaseOut)
def dispute_receipt(
    lease_id: int,
    payload: ReceiptDispute,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_tenant),
):
    lease = must_get_lease(db, space_id=p.space_id, lease_id=lease_id, tenant_id=p.user_id)
    with domain_errors():
        return lease_lifecycle.dispute_receipt(db, lease.id, tenant_id=p.user_id, reason=payload.reason)


@router.post("/{lease_id}/terminate", response_model=LeaseOut)
def terminate(lease_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    lease = must_get_lease(db, space_id=p.space_id, lease_id=lease_id)
    with domain_errors():
        return lease_lifecycle.terminate_lease(db, lease.id, actor_user_id=p.user_id)


@router.post("/{lease_id}/status", response_model=LeaseOut)
def set_status(
    lease_id: int,
    payload: LeaseStatusUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    lease = must_get_lease(db, space_id=p.space_id, lease_id=lease_id)
    with domain_errors():
        return lease_lifecycle.set_lease_status(db, lease.id, payload.statut, actor_user_id=p.user_id)
