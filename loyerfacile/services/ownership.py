from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import (
    AppUser,
    Lease,
    MaintenanceTicket,
    Payment,
    Property,
    PropertyAmortization,
    PropertyCharge,
    RentalRequest,
    SpaceMember,
)


def must_get_property(db: Session, *, space_id: int, property_id: int) -> Property:
    row = db.scalar(select(Property).where(Property.id == property_id, Property.space_id == space_id))
    if not row:
        raise HTTPException(status_code=404, detail="property not found")
    return row


def must_get_lease(db: Session, *, space_id: int, lease_id: int, tenant_id: int | None = None) -> Lease:
    q = select(Lease).where(Lease.id == lease_id, Lease.space_id == space_id)
    if tenant_id is not None:
        q = q.where(Lease.locataire_id == tenant_id)
    row = db.scalar(q)
    if not row:
        raise HTTPException(status_code=404, detail="lease not found")
    return row


def must_get_payment(db: Session, *, space_id: int, payment_id: int, tenant_id: int | None = None) -> Payment:
    q = select(Payment).where(Payment.id == payment_id, Payment.space_id == space_id)
    if tenant_id is not None:
        q = q.join(Lease, Lease.id == Payment.lease_id).where(Lease.locataire_id == tenant_id)
    row = db.scalar(q)
    if not row:
        raise HTTPException(status_code=404, detail="payment not found")
    return row


def must_get_ticket(db: Session, *, space_id: int, ticket_id: int, tenant_id: int | None = None) -> MaintenanceTicket:
    q = select(MaintenanceTicket).where(MaintenanceTicket.id == ticket_id, MaintenanceTicket.space_id == space_id)
    if tenant_id is not None:
        q = q.join(Lease, Lease.id == MaintenanceTicket.lease_id).where(Lease.locataire_id == tenant_id)
    row = db.scalar(q)
    if not row:
        raise HTTPException(status_code=404, detail="ticket not found")
    return row


def must_get_rental_request(db: Session, *, space_id: int, request_id: int, tenant_id: int | None = None) -> RentalRequest:
    q = select(RentalRequest).where(RentalRequest.id == request_id, RentalRequest.space_id == space_id)
    if tenant_id is not None:
        q = q.where(RentalRequest.tenant_id == tenant_id)
    row = db.scalar(q)
    if not row:
        raise HTTPException(status_code=404, detail="rental request not found")
    return row


def must_get_charge(db: Session, *, space_id: int, charge_id: int) -> PropertyCharge:
    row = db.scalar(select(PropertyCharge).where(PropertyCharge.id == charge_id, PropertyCharge.space_id == space_id))
    if not row:
        raise HTTPException(status_code=404, detail="charge not found")
    return row


def must_get_amortization(db: Session, *, space_id: int, amortization_id: int) -> PropertyAmortization:
    row = db.scalar(
        select(PropertyAmortization).where(
            PropertyAmortization.id == amortization_id, PropertyAmortization.space_id == space_id
        )
    )
    if not row:
        raise HTTPException(status_code=404, detail="amortization not found")
    return row


def must_get_member(db: Session, *, space_id: int, user_id: int) -> AppUser:
    """A user that belongs to the space (tenant or manager referenced by a write)."""
    row = db.scalar(
        select(AppUser)
        .join(SpaceMember, SpaceMember.user_id == AppUser.id)
        .where(SpaceMember.space_id == space_id, AppUser.id == user_id)
    )
    if not row:
        raise HTTPException(status_code=404, detail="user not found in space")
    return row
