from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from ..domain.deposit import is_deposit_payment
from ..models import (
    AppUser,
    Lease,
    MaintenanceTicket,
    ManagementSpace,
    Payment,
    Property,
    PropertyAmortization,
    PropertyCharge,
    SpaceMember,
)


@dataclass(frozen=True)
class LeaseView:
    id: int
    statut: str
    payment_status: str
    date_debut: date
    date_fin: Optional[date]
    montant_mensuel: float
    caution_montant: float
    caution_payee: bool
    property_id: int
    property_titre: str
    property_adresse: str
    property_ville: str
    locataire_id: int
    locataire_nom: Optional[str]
    gestionnaire_id: int
    gestionnaire_nom: Optional[str]
    advance_months_count: int
    advance_months_consumed: int
    advance_months_remaining: int
    first_regular_payment_date: Optional[date]
    receipt_url: Optional[str]


@dataclass(frozen=True)
class PendingPaymentView:
    payment: Payment
    is_deposit: bool


@dataclass(frozen=True)
class FinancialData:
    properties: list[Property]
    leases: list[Lease]
    payments: list[Payment]
    charges: list[PropertyCharge]
    amortizations: list[PropertyAmortization]


@dataclass(frozen=True)
class MemberView:
    user_id: int
    full_name: Optional[str]
    email: str
    role: str
    created_at: datetime


@dataclass(frozen=True)
class SpaceData:
    space: ManagementSpace
    properties: list[Property]
    leases: list[Lease]
    payments: list[Payment]
    tickets: list[MaintenanceTicket]
    members: list[MemberView]


@dataclass(frozen=True)
class ReceiptData:
    payment: Payment
    lease: Lease
    property: Optional[Property]
    locataire: Optional[AppUser]
    gestionnaire: Optional[AppUser]


def _display_name(u: Optional[AppUser]) -> Optional[str]:
    if u is None:
        return None
    return u.full_name or u.email


def lease_views(
    db: Session,
    *,
    space_id: int,
    tenant_id: Optional[int] = None,
    statut: Optional[str] = None,
    property_id: Optional[int] = None,
    limit: int = 200,
) -> list[LeaseView]:
    """Leases joined with their property, tenant and manager, newest first."""
    Tenant = aliased(AppUser)
    Manager = aliased(AppUser)
    q = (
        select(Lease, Property, Tenant, Manager)
        .join(Property, Property.id == Lease.property_id)
        .outerjoin(Tenant, Tenant.id == Lease.locataire_id)
        .outerjoin(Manager, Manager.id == Lease.gestionnaire_id)
        .where(Lease.space_id == space_id)
    )
    if tenant_id is not None:
        q = q.where(Lease.locataire_id == tenant_id)
    if statut:
        q = q.where(Lease.statut == statut)
    if property_id is not None:
        q = q.where(Lease.property_id == property_id)

    out: list[LeaseView] = []
    for lease, prop, tenant, manager in db.execute(q.order_by(Lease.id.desc()).limit(limit)).all():
        out.append(
            LeaseView(
                id=int(lease.id),
                statut=lease.statut,
                payment_status=lease.payment_status,
                date_debut=lease.date_debut,
                date_fin=lease.date_fin,
                montant_mensuel=float(lease.montant_mensuel),
                caution_montant=float(lease.caution_montant),
                caution_payee=bool(lease.caution_payee),
                property_id=int(prop.id),
                property_titre=prop.titre,
                property_adresse=prop.adresse,
                property_ville=prop.ville,
                locataire_id=int(lease.locataire_id),
                locataire_nom=_display_name(tenant),
                gestionnaire_id=int(lease.gestionnaire_id),
                gestionnaire_nom=_display_name(manager),
                advance_months_count=int(lease.advance_months_count),
                advance_months_consumed=int(lease.advance_months_consumed),
                advance_months_remaining=max(0, int(lease.advance_months_count) - int(lease.advance_months_consumed)),
                first_regular_payment_date=lease.first_regular_payment_date,
                receipt_url=lease.receipt_url,
            )
        )
    return out


def pending_payment_for_lease(db: Session, lease: Lease) -> Optional[PendingPaymentView]:
    """Oldest pending payment of the lease, flagged when it is the deposit."""
    row = db.scalar(
        select(Payment)
        .where(Payment.lease_id == lease.id, Payment.statut == "pending")
        .order_by(Payment.mois_paiement.asc(), Payment.id.asc())
        .limit(1)
    )
    if row is None:
        return None
    return PendingPaymentView(payment=row, is_deposit=is_deposit_payment(row, lease))


def load_financial_data(db: Session, *, space_id: int, since: Optional[date] = None) -> FinancialData:
    payments_q = select(Payment).where(Payment.space_id == space_id)
    charges_q = select(PropertyCharge).where(PropertyCharge.space_id == space_id)
    if since is not None:
        payments_q = payments_q.where(Payment.mois_paiement >= since)
        charges_q = charges_q.where(PropertyCharge.date_charge >= since)

    return FinancialData(
        properties=list(db.scalars(select(Property).where(Property.space_id == space_id).order_by(Property.id)).all()),
        leases=list(db.scalars(select(Lease).where(Lease.space_id == space_id).order_by(Lease.id)).all()),
        payments=list(db.scalars(payments_q.order_by(Payment.mois_paiement, Payment.id)).all()),
        charges=list(db.scalars(charges_q.order_by(PropertyCharge.date_charge, PropertyCharge.id)).all()),
        amortizations=list(
            db.scalars(select(PropertyAmortization).where(PropertyAmortization.space_id == space_id)).all()
        ),
    )


def load_space_members(db: Session, *, space_id: int) -> list[MemberView]:
    return [
        MemberView(user_id=int(u.id), full_name=u.full_name, email=u.email, role=m.role, created_at=m.created_at)
        for m, u in db.execute(
            select(SpaceMember, AppUser)
            .join(AppUser, AppUser.id == SpaceMember.user_id)
            .where(SpaceMember.space_id == space_id)
            .order_by(SpaceMember.id)
        ).all()
    ]


def load_space_data(db: Session, *, space_id: int, payments_since: date) -> SpaceData:
    space = db.get(ManagementSpace, space_id)
    if space is None:
        raise LookupError("space not found")

    members = load_space_members(db, space_id=space_id)
    return SpaceData(
        space=space,
        properties=list(db.scalars(select(Property).where(Property.space_id == space_id).order_by(Property.id)).all()),
        leases=list(db.scalars(select(Lease).where(Lease.space_id == space_id).order_by(Lease.id)).all()),
        payments=list(
            db.scalars(
                select(Payment).where(Payment.space_id == space_id, Payment.mois_paiement >= payments_since)
            ).all()
        ),
        tickets=list(db.scalars(select(MaintenanceTicket).where(MaintenanceTicket.space_id == space_id)).all()),
        members=members,
    )


def load_payment_receipt(db: Session, payment: Payment) -> ReceiptData:
    lease = db.get(Lease, payment.lease_id)
    if lease is None:
        raise LookupError("lease not found for payment")
    return ReceiptData(
        payment=payment,
        lease=lease,
        property=db.get(Property, lease.property_id),
        locataire=db.get(AppUser, lease.locataire_id),
        gestionnaire=db.get(AppUser, lease.gestionnaire_id),
    )
