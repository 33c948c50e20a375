from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    inspect,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


class RowMixin:
    def model_dump(self) -> dict[str, Any]:
        """Column values as a plain dict (audit before/after snapshots)."""
        return {c.key: getattr(self, c.key) for c in inspect(self).mapper.column_attrs}


# -----------------------------
# Spaces / users
# -----------------------------
class ManagementSpace(RowMixin, Base):
    __tablename__ = "management_spaces"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String(80), nullable=False, unique=True, index=True)
    nom: Mapped[str] = mapped_column(String(160), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    members: Mapped[List["SpaceMember"]] = relationship(back_populates="space", cascade="all, delete-orphan")


class AppUser(RowMixin, Base):
    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class SpaceMember(RowMixin, Base):
    __tablename__ = "space_members"
    __table_args__ = (UniqueConstraint("space_id", "user_id", name="uq_space_members_space_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[int] = mapped_column(Integer, ForeignKey("management_spaces.id"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="manager")  # admin|manager|owner|tenant
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    space: Mapped["ManagementSpace"] = relationship(back_populates="members")
    user: Mapped["AppUser"] = relationship()


class AuditEvent(RowMixin, Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[int] = mapped_column(Integer, ForeignKey("management_spaces.id"), index=True, nullable=False)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Listings
# -----------------------------
class Property(RowMixin, Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[int] = mapped_column(Integer, ForeignKey("management_spaces.id"), nullable=False, index=True)
    gestionnaire_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    titre: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    adresse: Mapped[str] = mapped_column(String(255), nullable=False)
    ville: Mapped[str] = mapped_column(String(120), nullable=False)
    quartier: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    type_propriete: Mapped[str] = mapped_column(String(60), nullable=False, default="appartement")

    prix_mensuel: Mapped[float] = mapped_column(Float, nullable=False)
    caution: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    nombre_pieces: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    surface: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # available|rented|pending-validation|unavailable
    statut: Mapped[str] = mapped_column(String(40), nullable=False, default="available", index=True)
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    leases: Mapped[List["Lease"]] = relationship(back_populates="property")
    charges: Mapped[List["PropertyCharge"]] = relationship(back_populates="property", cascade="all, delete-orphan")


class RentalRequest(RowMixin, Base):
    __tablename__ = "rental_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[int] = mapped_column(Integer, ForeignKey("management_spaces.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    manager_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    proposed_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    request_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    lease_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("leases.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


# -----------------------------
# Leases / payments
# -----------------------------
class Lease(RowMixin, Base):
    __tablename__ = "leases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[int] = mapped_column(Integer, ForeignKey("management_spaces.id"), nullable=False, index=True)

    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    locataire_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    gestionnaire_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)

    date_debut: Mapped[date] = mapped_column(Date, nullable=False)
    date_fin: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    montant_mensuel: Mapped[float] = mapped_column(Float, nullable=False)
    caution_montant: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    caution_payee: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    date_caution_payee: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # pending-deposit|actif|terminated
    statut: Mapped[str] = mapped_column(String(40), nullable=False, default="pending-deposit", index=True)
    # pending|awaiting-tenant-confirmation|verified|overdue
    payment_status: Mapped[str] = mapped_column(String(40), nullable=False, default="pending")

    advance_months_count: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    advance_months_consumed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    caution_months_count: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    agency_months_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    first_regular_payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    receipt_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    receipt_uploaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    receipt_uploaded_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)
    tenant_confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    contrat_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    property: Mapped["Property"] = relationship(back_populates="leases")
    locataire: Mapped["AppUser"] = relationship(foreign_keys=[locataire_id])
    gestionnaire: Mapped["AppUser"] = relationship(foreign_keys=[gestionnaire_id])
    payments: Mapped[List["Payment"]] = relationship(back_populates="lease", order_by="Payment.id")


class Payment(RowMixin, Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[int] = mapped_column(Integer, ForeignKey("management_spaces.id"), nullable=False, index=True)
    lease_id: Mapped[int] = mapped_column(Integer, ForeignKey("leases.id"), nullable=False, index=True)

    montant: Mapped[float] = mapped_column(Float, nullable=False)
    mois_paiement: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    date_paiement: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # pending|in-progress|succeeded|failed
    statut: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    methode_paiement: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    numero_telephone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(120), nullable=True, index=True)
    recu_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    lease: Mapped["Lease"] = relationship(back_populates="payments")


class PaymentDistributionConfig(RowMixin, Base):
    __tablename__ = "payment_distribution_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("management_spaces.id"), nullable=False, unique=True, index=True
    )

    proprietaire_pourcentage: Mapped[float] = mapped_column(Float, nullable=False, default=90.0)
    gestionnaire_pourcentage: Mapped[float] = mapped_column(Float, nullable=False, default=10.0)

    proprietaire_telephone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    proprietaire_operateur: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    gestionnaire_telephone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    gestionnaire_operateur: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    demarcheur_telephone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    demarcheur_operateur: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class PaymentDistribution(RowMixin, Base):
    __tablename__ = "payment_distributions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[int] = mapped_column(Integer, ForeignKey("management_spaces.id"), nullable=False, index=True)
    payment_id: Mapped[int] = mapped_column(Integer, ForeignKey("payments.id"), nullable=False, index=True)

    type_distribution: Mapped[str] = mapped_column(String(20), nullable=False)  # caution|loyer
    montant_total: Mapped[float] = mapped_column(Float, nullable=False)
    montant_proprietaire: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    montant_gestionnaire: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    montant_demarcheur: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    statut_proprietaire: Mapped[str] = mapped_column(String(20), nullable=False, default="en_attente")
    statut_gestionnaire: Mapped[str] = mapped_column(String(20), nullable=False, default="en_attente")
    statut_demarcheur: Mapped[str] = mapped_column(String(20), nullable=False, default="non_applicable")

    detail_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class LeasePaymentReminder(RowMixin, Base):
    __tablename__ = "lease_payment_reminders"
    __table_args__ = (
        UniqueConstraint("lease_id", "reminder_type", "reminder_date", name="uq_lease_reminders_lease_type_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lease_id: Mapped[int] = mapped_column(Integer, ForeignKey("leases.id"), nullable=False, index=True)
    reminder_type: Mapped[str] = mapped_column(String(40), nullable=False)
    reminder_date: Mapped[date] = mapped_column(Date, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Finance
# -----------------------------
class PropertyCharge(RowMixin, Base):
    __tablename__ = "property_charges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[int] = mapped_column(Integer, ForeignKey("management_spaces.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # taxe_fonciere|assurance|entretien|travaux|charges_copropriete|autre
    type_charge: Mapped[str] = mapped_column(String(60), nullable=False, default="autre")
    montant: Mapped[float] = mapped_column(Float, nullable=False)
    date_charge: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recurrent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    frequence: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    property: Mapped["Property"] = relationship(back_populates="charges")


class PropertyAmortization(RowMixin, Base):
    __tablename__ = "property_amortization"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[int] = mapped_column(Integer, ForeignKey("management_spaces.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )

    valeur_acquisition: Mapped[float] = mapped_column(Float, nullable=False)
    date_acquisition: Mapped[date] = mapped_column(Date, nullable=False)
    duree_amortissement: Mapped[int] = mapped_column(Integer, nullable=False)  # years
    valeur_residuelle: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Maintenance
# -----------------------------
class MaintenanceTicket(RowMixin, Base):
    __tablename__ = "maintenance_tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[int] = mapped_column(Integer, ForeignKey("management_spaces.id"), nullable=False, index=True)
    lease_id: Mapped[int] = mapped_column(Integer, ForeignKey("leases.id"), nullable=False, index=True)
    created_by: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False)

    titre: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    statut: Mapped[str] = mapped_column(String(20), nullable=False, default="open", index=True)  # open|in-progress|resolved|closed
    priorite: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")  # low|medium|high|urgent
    photos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    interventions: Mapped[List["MaintenanceIntervention"]] = relationship(
        back_populates="ticket", cascade="all, delete-orphan", order_by="MaintenanceIntervention.id"
    )


class MaintenanceIntervention(RowMixin, Base):
    __tablename__ = "maintenance_interventions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("maintenance_tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    intervenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False)
    statut_avant: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    statut_apres: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    ticket: Mapped["MaintenanceTicket"] = relationship(back_populates="interventions")


# -----------------------------
# Notifications
# -----------------------------
class Notification(RowMixin, Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    lease_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("leases.id"), nullable=True, index=True)

    type: Mapped[str] = mapped_column(String(60), nullable=False, index=True)
    titre: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    lu: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
