from __future__ import annotations

import logging
import time
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.audit import audit_write
from ..domain.deposit import (
    ADVANCE_MONTHS,
    AGENCY_MONTHS,
    GUARANTEE_MONTHS,
    compute_deposit,
    first_regular_payment_date,
    is_deposit_payment,
)
from ..domain.errors import LifecycleError
from ..models import Lease, Property, RentalRequest
from ..storage import FileStore, UploadFile, get_file_store
from . import payments
from .notifications import notify
from .realtime import hub

log = logging.getLogger("loyerfacile.leases")

PENDING_DEPOSIT = "pending-deposit"
ACTIVE = "actif"
TERMINATED = "terminated"
LEASE_STATUSES = (PENDING_DEPOSIT, ACTIVE, TERMINATED)

PAYMENT_PENDING = "pending"
AWAITING_TENANT = "awaiting-tenant-confirmation"
VERIFIED = "verified"
OVERDUE = "overdue"

# (from, to) pairs reachable through set_lease_status; pending-deposit -> actif
# additionally requires the deposit flag.
ALLOWED_TRANSITIONS = {
    (PENDING_DEPOSIT, ACTIVE),
    (PENDING_DEPOSIT, TERMINATED),
    (ACTIVE, TERMINATED),
}


def _get(db: Session, model, row_id: int, label: str):
    row = db.get(model, row_id)
    if row is None:
        raise LookupError(f"{label} not found")
    return row


def _set_property_status(db: Session, prop: Property, statut: str) -> None:
    if prop.statut != statut:
        prop.statut = statut
        db.commit()
        hub.publish("properties", "update", prop.id, space_id=prop.space_id)


# -----------------------------
# Lease creation
# -----------------------------
def create_direct_lease(
    db: Session,
    *,
    space_id: int,
    property_id: int,
    tenant_id: int,
    manager_id: int,
    start_date: date,
    monthly_rent: Optional[float] = None,
    actor_user_id: Optional[int] = None,
) -> Lease:
    """
    Lease + deposit payment for the direct-payment flow.

    Three committed steps: lease, pending deposit payment, property flipped to
    pending-validation. A failure in a later step leaves the earlier ones in
    place; nothing is compensated.
    """
    prop = _get(db, Property, property_id, "property")
    if prop.space_id != space_id:
        raise LookupError("property not found")

    rent = float(monthly_rent) if monthly_rent is not None else float(prop.prix_mensuel)
    deposit = compute_deposit(rent)

    lease = Lease(
        space_id=space_id,
        property_id=prop.id,
        locataire_id=int(tenant_id),
        gestionnaire_id=int(manager_id),
        date_debut=start_date,
        montant_mensuel=deposit.monthly_rent,
        caution_montant=deposit.total,
        caution_payee=False,
        statut=PENDING_DEPOSIT,
        payment_status=PAYMENT_PENDING,
        advance_months_count=ADVANCE_MONTHS,
        advance_months_consumed=0,
        caution_months_count=GUARANTEE_MONTHS,
        agency_months_count=AGENCY_MONTHS,
        first_regular_payment_date=first_regular_payment_date(start_date),
    )
    db.add(lease)
    db.flush()
    audit_write(
        db,
        space_id=space_id,
        actor_user_id=actor_user_id,
        action="lease.create",
        entity_type="Lease",
        entity_id=str(lease.id),
        after=lease.model_dump(),
    )
    db.commit()
    db.refresh(lease)
    hub.publish("leases", "insert", lease.id, space_id=space_id)
    log.info("lease created (pending deposit)", extra={"lease_id": lease.id, "property_id": prop.id})

    try:
        payments.insert_payment(
            db,
            lease=lease,
            montant=deposit.total,
            mois_paiement=start_date,
            actor_user_id=actor_user_id,
        )
    except Exception:
        db.rollback()
        log.exception("deposit payment insert failed; lease left pending-deposit", extra={"lease_id": lease.id})
        raise

    _set_property_status(db, prop, "pending-validation")
    return lease


def create_rental_request(
    db: Session,
    *,
    space_id: int,
    property_id: int,
    tenant_id: int,
    message: Optional[str] = None,
    proposed_start_date: Optional[date] = None,
) -> RentalRequest:
    prop = _get(db, Property, property_id, "property")
    if prop.space_id != space_id:
        raise LookupError("property not found")
    if prop.statut not in ("available", "pending-validation"):
        raise LifecycleError(f"property is {prop.statut}, not open to requests")

    existing = db.scalar(
        select(RentalRequest.id).where(
            RentalRequest.property_id == prop.id,
            RentalRequest.tenant_id == tenant_id,
            RentalRequest.request_status == "pending",
        )
    )
    if existing is not None:
        raise LifecycleError("a pending request already exists for this property")

    row = RentalRequest(
        space_id=space_id,
        property_id=prop.id,
        tenant_id=int(tenant_id),
        manager_id=prop.gestionnaire_id,
        message=message,
        proposed_start_date=proposed_start_date,
        request_status="pending",
    )
    db.add(row)
    db.flush()
    audit_write(
        db,
        space_id=space_id,
        actor_user_id=tenant_id,
        action="rental_request.create",
        entity_type="RentalRequest",
        entity_id=str(row.id),
        after=row.model_dump(),
    )
    db.commit()
    db.refresh(row)
    hub.publish("rental_requests", "insert", row.id, space_id=space_id)

    if prop.gestionnaire_id:
        notify(
            db,
            user_id=prop.gestionnaire_id,
            type="rental_request",
            titre="Nouvelle demande de location",
            message=f"Nouvelle demande de location pour {prop.titre}.",
        )
    return row


def _pending_request(db: Session, request_id: int) -> RentalRequest:
    row = _get(db, RentalRequest, request_id, "rental request")
    if row.request_status != "pending":
        raise LifecycleError(f"request already {row.request_status}")
    return row


def approve_rental_request(
    db: Session,
    request_id: int,
    *,
    start_date: date,
    manager_id: int,
    monthly_rent: Optional[float] = None,
    actor_user_id: Optional[int] = None,
) -> Lease:
    req = _pending_request(db, request_id)

    lease = create_direct_lease(
        db,
        space_id=req.space_id,
        property_id=req.property_id,
        tenant_id=req.tenant_id,
        manager_id=req.manager_id or manager_id,
        start_date=start_date,
        monthly_rent=monthly_rent,
        actor_user_id=actor_user_id,
    )

    before = req.model_dump()
    req.request_status = "approved"
    req.lease_id = lease.id
    audit_write(
        db,
        space_id=req.space_id,
        actor_user_id=actor_user_id,
        action="rental_request.approve",
        entity_type="RentalRequest",
        entity_id=str(req.id),
        before=before,
        after=req.model_dump(),
    )
    db.commit()
    hub.publish("rental_requests", "update", req.id, space_id=req.space_id)

    notify(
        db,
        user_id=req.tenant_id,
        lease_id=lease.id,
        type="rental_request_approved",
        titre="Demande de location acceptée",
        message=(
            f"Votre demande a été acceptée. Caution à régler: {lease.caution_montant:,.0f} FCFA "
            f"(2 mois d'avance, 2 mois de garantie, 1 mois d'agence)."
        ),
    )
    return lease


def reject_rental_request(
    db: Session, request_id: int, *, reason: Optional[str] = None, actor_user_id: Optional[int] = None
) -> RentalRequest:
    req = _pending_request(db, request_id)
    before = req.model_dump()
    req.request_status = "rejected"
    req.rejection_reason = reason
    audit_write(
        db,
        space_id=req.space_id,
        actor_user_id=actor_user_id,
        action="rental_request.reject",
        entity_type="RentalRequest",
        entity_id=str(req.id),
        before=before,
        after=req.model_dump(),
    )
    db.commit()
    hub.publish("rental_requests", "update", req.id, space_id=req.space_id)
    notify(
        db,
        user_id=req.tenant_id,
        type="rental_request_rejected",
        titre="Demande de location refusée",
        message=reason or "Votre demande de location n'a pas été retenue.",
    )
    return req


def cancel_rental_request(db: Session, request_id: int, *, tenant_id: int) -> RentalRequest:
    req = _pending_request(db, request_id)
    if req.tenant_id != tenant_id:
        raise PermissionError("only the requesting tenant can cancel")
    req.request_status = "cancelled"
    audit_write(
        db,
        space_id=req.space_id,
        actor_user_id=tenant_id,
        action="rental_request.cancel",
        entity_type="RentalRequest",
        entity_id=str(req.id),
    )
    db.commit()
    hub.publish("rental_requests", "update", req.id, space_id=req.space_id)
    return req


# -----------------------------
# Deposit / status transitions
# -----------------------------
def confirm_deposit_payment(db: Session, lease_id: int, *, actor_user_id: Optional[int] = None) -> Lease:
    """Activate a lease once its deposit is paid. No-op on an already active lease."""
    lease = _get(db, Lease, lease_id, "lease")
    if lease.statut == TERMINATED:
        raise LifecycleError("lease is terminated")
    if lease.statut == ACTIVE and lease.caution_payee:
        return lease

    before = lease.model_dump()
    lease.caution_payee = True
    lease.statut = ACTIVE
    lease.date_caution_payee = lease.date_caution_payee or datetime.utcnow()
    audit_write(
        db,
        space_id=lease.space_id,
        actor_user_id=actor_user_id,
        action="lease.deposit_confirmed",
        entity_type="Lease",
        entity_id=str(lease.id),
        before=before,
        after=lease.model_dump(),
    )
    db.commit()
    hub.publish("leases", "update", lease.id, space_id=lease.space_id)
    log.info("deposit confirmed; lease active", extra={"lease_id": lease.id})

    prop = db.get(Property, lease.property_id)
    if prop is not None:
        _set_property_status(db, prop, "rented")
    return lease


def set_lease_status(
    db: Session, lease_id: int, new_status: str, *, actor_user_id: Optional[int] = None, today: Optional[date] = None
) -> Lease:
    if new_status not in LEASE_STATUSES:
        raise ValueError(f"unknown lease status: {new_status}")

    lease = _get(db, Lease, lease_id, "lease")
    current = lease.statut
    if current == new_status:
        return lease
    if (current, new_status) not in ALLOWED_TRANSITIONS:
        raise LifecycleError(f"transition {current} -> {new_status} is not supported")

    if new_status == ACTIVE:
        if not lease.caution_payee:
            raise LifecycleError("lease cannot be active before the deposit is paid")
        return confirm_deposit_payment(db, lease.id, actor_user_id=actor_user_id)
    return terminate_lease(db, lease.id, actor_user_id=actor_user_id, today=today)


def terminate_lease(
    db: Session, lease_id: int, *, actor_user_id: Optional[int] = None, today: Optional[date] = None
) -> Lease:
    lease = _get(db, Lease, lease_id, "lease")
    if lease.statut == TERMINATED:
        return lease

    before = lease.model_dump()
    lease.statut = TERMINATED
    lease.date_fin = today or date.today()
    audit_write(
        db,
        space_id=lease.space_id,
        actor_user_id=actor_user_id,
        action="lease.terminate",
        entity_type="Lease",
        entity_id=str(lease.id),
        before=before,
        after=lease.model_dump(),
    )
    db.commit()
    hub.publish("leases", "update", lease.id, space_id=lease.space_id)
    log.info("lease terminated", extra={"lease_id": lease.id})

    prop = db.get(Property, lease.property_id)
    if prop is not None and prop.statut in ("rented", "pending-validation"):
        _set_property_status(db, prop, "available")
    return lease


# -----------------------------
# Receipts
# -----------------------------
def upload_receipt(
    db: Session,
    lease_id: int,
    file: UploadFile,
    *,
    uploaded_by: int,
    store: Optional[FileStore] = None,
) -> Lease:
    """Manager side: store the deposit receipt and ask the tenant to confirm it."""
    lease = _get(db, Lease, lease_id, "lease")
    if lease.statut == TERMINATED:
        raise LifecycleError("lease is terminated")

    fs = store or get_file_store()
    bucket = settings.payment_receipts_bucket
    path = f"{lease.id}/{int(time.time() * 1000)}.{file.extension}"
    fs.upload(bucket, path, file.data, file.content_type)
    url = fs.public_url(bucket, path)

    before = lease.model_dump()
    lease.receipt_url = url
    lease.receipt_uploaded_at = datetime.utcnow()
    lease.receipt_uploaded_by = int(uploaded_by)
    lease.payment_status = AWAITING_TENANT
    audit_write(
        db,
        space_id=lease.space_id,
        actor_user_id=uploaded_by,
        action="lease.receipt_uploaded",
        entity_type="Lease",
        entity_id=str(lease.id),
        before=before,
        after=lease.model_dump(),
    )
    db.commit()
    hub.publish("leases", "update", lease.id, space_id=lease.space_id)

    notify(
        db,
        user_id=lease.locataire_id,
        lease_id=lease.id,
        type="receipt_uploaded",
        titre="Reçu de paiement disponible",
        message="Votre gestionnaire a téléversé le reçu de paiement de la caution. Merci de confirmer sa réception.",
    )
    return lease


def _tenant_lease(db: Session, lease_id: int, tenant_id: int) -> Lease:
    lease = _get(db, Lease, lease_id, "lease")
    if lease.locataire_id != tenant_id:
        raise LookupError("lease not found")
    return lease


def confirm_receipt(db: Session, lease_id: int, *, tenant_id: int) -> Lease:
    """Tenant side: acknowledge the receipt, settling the deposit."""
    lease = _tenant_lease(db, lease_id, tenant_id)
    if lease.statut == TERMINATED:
        raise LifecycleError("lease is terminated")
    if lease.payment_status != AWAITING_TENANT:
        raise LifecycleError("no receipt awaiting confirmation")

    lease.payment_status = VERIFIED
    lease.tenant_confirmed_at = datetime.utcnow()
    db.commit()

    for p in payments.pending_payments_for_lease(db, lease.id):
        if is_deposit_payment(p, lease):
            payments.mark_payment_succeeded(db, p.id, actor_user_id=tenant_id)
            break

    lease = confirm_deposit_payment(db, lease.id, actor_user_id=tenant_id)

    notify(
        db,
        user_id=lease.gestionnaire_id,
        lease_id=lease.id,
        type="payment_confirmed",
        titre="Paiement confirmé par le locataire",
        message="Le locataire a confirmé la réception du reçu. Le bail est maintenant actif.",
    )
    return lease


def dispute_receipt(db: Session, lease_id: int, *, tenant_id: int, reason: Optional[str] = None) -> Lease:
    lease = _tenant_lease(db, lease_id, tenant_id)
    if lease.payment_status != AWAITING_TENANT:
        raise LifecycleError("no receipt awaiting confirmation")

    msg = "Le locataire conteste le reçu de paiement téléversé."
    if reason:
        msg = f"{msg} Motif: {reason}"
    notify(
        db,
        user_id=lease.gestionnaire_id,
        lease_id=lease.id,
        type="payment_disputed",
        titre="Paiement contesté",
        message=msg,
    )
    return lease
