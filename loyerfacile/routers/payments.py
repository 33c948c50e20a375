# loyerfacile/routers/payments.py
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_staff
from ..db import get_db
from ..domain.audit import emit_audit
from ..models import Lease, Payment, PaymentDistributionConfig
from ..reports.financial_report import render_payment_receipt
from ..schemas import (
    DistributionConfigIn,
    DistributionConfigOut,
    DistributionOut,
    DistributionResultOut,
    InitiatePayment,
    PaymentInitiationOut,
    PaymentOut,
)
from ..services import payments as payment_service
from ..services.distribution import distribute_payment, get_config
from ..services.ownership import must_get_lease, must_get_payment
from ..services.read_models import load_payment_receipt
from .errors import domain_errors

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("", response_model=list[PaymentOut])
def list_payments(
    lease_id: Optional[int] = Query(default=None),
    statut: Optional[str] = Query(default=None),
    limit: int = Query(default=500, ge=1, le=5000),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    q = select(Payment).where(Payment.space_id == p.space_id)
    if p.is_tenant:
        q = q.join(Lease, Lease.id == Payment.lease_id).where(Lease.locataire_id == p.user_id)
    if lease_id is not None:
        q = q.where(Payment.lease_id == lease_id)
    if statut:
        q = q.where(Payment.statut == statut)
    return list(db.scalars(q.order_by(Payment.mois_paiement.desc(), Payment.id.desc()).limit(limit)).all())


@router.post("/initiate", response_model=PaymentInitiationOut)
def initiate(payload: InitiatePayment, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    must_get_lease(db, space_id=p.space_id, lease_id=payload.lease_id, tenant_id=p.tenant_scope)
    with domain_errors():
        return payment_service.initiate_payment(
            db,
            lease_id=payload.lease_id,
            montant=payload.montant,
            mois_paiement=payload.mois_paiement,
            methode_paiement=payload.methode_paiement,
            numero_telephone=payload.numero_telephone,
            actor_user_id=p.user_id,
        )


@router.post("/webhook", response_model=dict)
def gateway_webhook(payload: dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    """Aggregator notification; unknown transactions are acknowledged and ignored."""
    with domain_errors():
        row = payment_service.handle_gateway_webhook(db, payload)
    if row is None:
        return {"ok": True, "matched": False}
    return {"ok": True, "matched": True, "payment_id": row.id, "statut": row.statut}


@router.get("/distribution-config", response_model=Optional[DistributionConfigOut])
def read_distribution_config(db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    return get_config(db, p.space_id)


@router.put("/distribution-config", response_model=DistributionConfigOut)
def write_distribution_config(
    payload: DistributionConfigIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    row = get_config(db, p.space_id)
    before = row.model_dump() if row else None
    if row is None:
        row = PaymentDistributionConfig(space_id=p.space_id)
        db.add(row)
    for k, v in payload.model_dump().items():
        setattr(row, k, v)
    db.commit()
    db.refresh(row)

    emit_audit(
        db,
        space_id=p.space_id,
        actor_user_id=p.user_id,
        action="distribution_config.upsert",
        entity_type="PaymentDistributionConfig",
        entity_id=str(row.id),
        before=before,
        after=row.model_dump(),
    )
    return row


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(payment_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return must_get_payment(db, space_id=p.space_id, payment_id=payment_id, tenant_id=p.tenant_scope)


@router.get("/{payment_id}/receipt", response_class=HTMLResponse)
def payment_receipt(payment_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    row = must_get_payment(db, space_id=p.space_id, payment_id=payment_id, tenant_id=p.tenant_scope)
    if row.statut != payment_service.SUCCEEDED:
        raise HTTPException(status_code=409, detail="receipts exist only for succeeded payments")
    with domain_errors():
        data = load_payment_receipt(db, row)
    return HTMLResponse(content=render_payment_receipt(data))


@router.post("/{payment_id}/fail", response_model=PaymentOut)
def fail_payment(payment_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    must_get_payment(db, space_id=p.space_id, payment_id=payment_id)
    with domain_errors():
        return payment_service.mark_payment_failed(db, payment_id, actor_user_id=p.user_id)


@router.post("/{payment_id}/distribute", response_model=DistributionResultOut)
def distribute(payment_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    row = must_get_payment(db, space_id=p.space_id, payment_id=payment_id)
    if row.statut != payment_service.SUCCEEDED:
        raise HTTPException(status_code=409, detail="only succeeded payments can be distributed")
    with domain_errors():
        res = distribute_payment(db, payment_id, actor_user_id=p.user_id)
    return DistributionResultOut(
        success=res.success,
        distribution=DistributionOut.model_validate(res.distribution) if res.distribution else None,
        error=res.error,
    )
