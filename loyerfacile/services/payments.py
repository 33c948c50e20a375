from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..clients.payment_gateway import PaymentGatewayClient
from ..domain.audit import audit_write
from ..domain.deposit import is_deposit_payment
from ..domain.errors import LifecycleError, PaymentGatewayError, PaymentImmutableError
from ..models import Lease, Payment
from .realtime import hub

log = logging.getLogger("loyerfacile.payments")

PENDING = "pending"
IN_PROGRESS = "in-progress"
SUCCEEDED = "succeeded"
FAILED = "failed"

PAYMENT_STATUSES = (PENDING, IN_PROGRESS, SUCCEEDED, FAILED)


@dataclass(frozen=True)
class PaymentInitiation:
    payment_id: int
    transaction_id: str
    payment_url: Optional[str]
    simulation_mode: bool
    statut: str


def _get_payment(db: Session, payment_id: int) -> Payment:
    row = db.get(Payment, payment_id)
    if row is None:
        raise LookupError("payment not found")
    return row


def _get_lease(db: Session, lease_id: int) -> Lease:
    row = db.get(Lease, lease_id)
    if row is None:
        raise LookupError("lease not found")
    return row


def insert_payment(
    db: Session,
    *,
    lease: Lease,
    montant: float,
    mois_paiement: date,
    statut: str = PENDING,
    methode_paiement: Optional[str] = None,
    numero_telephone: Optional[str] = None,
    actor_user_id: Optional[int] = None,
) -> Payment:
    """Insert and commit one payment row for a lease."""
    if float(montant) <= 0:
        raise ValueError("payment amount must be positive")
    if statut not in PAYMENT_STATUSES:
        raise ValueError(f"unknown payment status: {statut}")

    row = Payment(
        space_id=lease.space_id,
        lease_id=lease.id,
        montant=float(montant),
        mois_paiement=mois_paiement,
        statut=statut,
        methode_paiement=methode_paiement,
        numero_telephone=numero_telephone,
    )
    db.add(row)
    db.flush()
    audit_write(
        db,
        space_id=lease.space_id,
        actor_user_id=actor_user_id,
        action="payment.create",
        entity_type="Payment",
        entity_id=str(row.id),
        after=row.model_dump(),
    )
    db.commit()
    db.refresh(row)
    hub.publish("payments", "insert", row.id, space_id=row.space_id)
    log.info("payment inserted", extra={"payment_id": row.id, "lease_id": lease.id})
    return row


def mark_payment_succeeded(
    db: Session,
    payment_id: int,
    *,
    transaction_id: Optional[str] = None,
    actor_user_id: Optional[int] = None,
    at: Optional[datetime] = None,
) -> Payment:
    """
    Settle a payment. Already-succeeded rows are returned unchanged.

    When the amount equals the lease deposit and the deposit is still unpaid,
    the lease is activated through confirm_deposit_payment.
    """
    from .lease_lifecycle import confirm_deposit_payment

    row = _get_payment(db, payment_id)
    if row.statut == SUCCEEDED:
        return row

    before = row.model_dump()
    row.statut = SUCCEEDED
    row.date_paiement = at or datetime.utcnow()
    if transaction_id:
        row.transaction_id = transaction_id
    audit_write(
        db,
        space_id=row.space_id,
        actor_user_id=actor_user_id,
        action="payment.succeeded",
        entity_type="Payment",
        entity_id=str(row.id),
        before=before,
        after=row.model_dump(),
    )
    db.commit()
    hub.publish("payments", "update", row.id, space_id=row.space_id)
    log.info("payment succeeded", extra={"payment_id": row.id, "lease_id": row.lease_id})

    lease = _get_lease(db, row.lease_id)
    if is_deposit_payment(row, lease) and not lease.caution_payee and lease.statut != "terminated":
        confirm_deposit_payment(db, lease.id, actor_user_id=actor_user_id)
    return row


def mark_payment_failed(db: Session, payment_id: int, *, actor_user_id: Optional[int] = None) -> Payment:
    row = _get_payment(db, payment_id)
    if row.statut == SUCCEEDED:
        raise PaymentImmutableError("succeeded payments cannot be changed")
    if row.statut == FAILED:
        return row

    before = row.model_dump()
    row.statut = FAILED
    audit_write(
        db,
        space_id=row.space_id,
        actor_user_id=actor_user_id,
        action="payment.failed",
        entity_type="Payment",
        entity_id=str(row.id),
        before=before,
        after=row.model_dump(),
    )
    db.commit()
    hub.publish("payments", "update", row.id, space_id=row.space_id)
    log.warning("payment failed", extra={"payment_id": row.id, "lease_id": row.lease_id})
    return row


def _simulation_transaction_id() -> str:
    return f"SIM-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


def initiate_payment(
    db: Session,
    *,
    lease_id: int,
    montant: float,
    mois_paiement: date,
    methode_paiement: Optional[str] = None,
    numero_telephone: Optional[str] = None,
    actor_user_id: Optional[int] = None,
    gateway: Optional[PaymentGatewayClient] = None,
) -> PaymentInitiation:
    """
    Open a payment for a lease.

    Without aggregator credentials the payment settles immediately with a
    SIM- transaction id. Otherwise the aggregator checkout token is stored
    and the row stays in-progress until the webhook arrives.
    """
    lease = _get_lease(db, lease_id)
    if lease.statut == "terminated":
        raise LifecycleError("cannot take payments on a terminated lease")

    row = insert_payment(
        db,
        lease=lease,
        montant=montant,
        mois_paiement=mois_paiement,
        statut=IN_PROGRESS,
        methode_paiement=methode_paiement,
        numero_telephone=numero_telephone,
        actor_user_id=actor_user_id,
    )

    gw = gateway or PaymentGatewayClient()
    if not gw.enabled():
        tx = _simulation_transaction_id()
        log.info("payment simulation mode", extra={"payment_id": row.id, "lease_id": lease.id})
        row = mark_payment_succeeded(db, row.id, transaction_id=tx, actor_user_id=actor_user_id)
        return PaymentInitiation(
            payment_id=int(row.id),
            transaction_id=tx,
            payment_url=None,
            simulation_mode=True,
            statut=row.statut,
        )

    session = gw.create_checkout(
        transaction_id=f"PAY-{row.id}-{int(time.time() * 1000)}",
        amount=float(montant),
        mois_paiement=mois_paiement,
        phone=numero_telephone,
    )
    row.transaction_id = session.payment_token
    db.commit()
    hub.publish("payments", "update", row.id, space_id=row.space_id)
    return PaymentInitiation(
        payment_id=int(row.id),
        transaction_id=session.payment_token,
        payment_url=session.payment_url,
        simulation_mode=False,
        statut=row.statut,
    )


SETTLED_STATUSES = ("ACCEPTED", "SUCCESS", "SUCCEEDED")
REFUSED_STATUSES = ("REFUSED", "FAILED", "CANCELLED", "CANCELED")


def handle_gateway_webhook(
    db: Session,
    payload: dict[str, Any],
    *,
    gateway: Optional[PaymentGatewayClient] = None,
) -> Optional[Payment]:
    """
    Aggregator notification: {"transaction_id"|"payment_token", ...}.

    The notice only names the transaction. Its status is read back from the
    aggregator, and a status field in the body is ignored. Returns None for
    unknown transactions.
    """
    tx = str(payload.get("payment_token") or payload.get("transaction_id") or "").strip()
    if not tx:
        raise ValueError("webhook missing transaction id")

    row = db.scalar(select(Payment).where(Payment.transaction_id == tx))
    if row is None:
        log.warning("webhook for unknown transaction %s", tx)
        return None

    gw = gateway or PaymentGatewayClient()
    if not gw.enabled():
        raise PermissionError("webhook cannot be verified without aggregator credentials")

    checked = gw.check_transaction(tx)
    if checked.status in SETTLED_STATUSES:
        if checked.amount is not None and abs(checked.amount - float(row.montant)) > 0.5:
            log.warning(
                "aggregator amount %s differs from payment", checked.amount, extra={"payment_id": row.id}
            )
            raise PaymentGatewayError("aggregator amount does not match the payment")
        return mark_payment_succeeded(db, row.id, transaction_id=tx)
    if checked.status in REFUSED_STATUSES:
        if row.statut == SUCCEEDED:
            log.warning("ignoring failure webhook on settled payment", extra={"payment_id": row.id})
            return row
        return mark_payment_failed(db, row.id)

    log.info("aggregator status %s, payment left open", checked.status, extra={"payment_id": row.id})
    return row


def pending_payments_for_lease(db: Session, lease_id: int) -> list[Payment]:
    q = (
        select(Payment)
        .where(Payment.lease_id == lease_id, Payment.statut == PENDING)
        .order_by(Payment.mois_paiement.asc(), Payment.id.asc())
    )
    return list(db.scalars(q).all())
