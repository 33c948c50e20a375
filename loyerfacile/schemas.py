# loyerfacile/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PropertyStatus = Literal["available", "rented", "pending-validation", "unavailable"]
LeaseStatus = Literal["pending-deposit", "actif", "terminated"]
TicketStatus = Literal["open", "in-progress", "resolved", "closed"]
TicketPriority = Literal["low", "medium", "high", "urgent"]
ReportPeriod = Literal["1month", "3months", "6months", "12months", "1year", "all"]


# -------------------- Properties --------------------

class PropertyCreate(BaseModel):
    titre: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    adresse: str = Field(min_length=1)
    ville: str = Field(min_length=1)
    quartier: Optional[str] = None
    type_propriete: str = "appartement"
    prix_mensuel: float = Field(gt=0)
    caution: Optional[float] = Field(default=None, ge=0)
    nombre_pieces: Optional[int] = Field(default=None, ge=0)
    surface: Optional[float] = Field(default=None, ge=0)
    statut: PropertyStatus = "available"
    images: list[str] = Field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class PropertyUpdate(BaseModel):
    titre: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    adresse: Optional[str] = None
    ville: Optional[str] = None
    quartier: Optional[str] = None
    type_propriete: Optional[str] = None
    prix_mensuel: Optional[float] = Field(default=None, gt=0)
    caution: Optional[float] = Field(default=None, ge=0)
    nombre_pieces: Optional[int] = Field(default=None, ge=0)
    surface: Optional[float] = Field(default=None, ge=0)
    statut: Optional[PropertyStatus] = None
    images: Optional[list[str]] = None


class PropertyOut(PropertyCreate):
    id: int
    space_id: int
    gestionnaire_id: Optional[int] = None
    statut: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class MapPointOut(BaseModel):
    id: int
    titre: str
    prix_mensuel: float
    statut: str
    latitude: float
    longitude: float


class MapOut(BaseModel):
    points: list[MapPointOut]
    geocoded: list[int] = Field(default_factory=list)
    failed: list[int] = Field(default_factory=list)


# -------------------- Rental requests --------------------

class RentalRequestCreate(BaseModel):
    property_id: int
    message: Optional[str] = None
    proposed_start_date: Optional[date] = None


class RentalRequestApprove(BaseModel):
    start_date: date
    monthly_rent: Optional[float] = Field(default=None, gt=0)


class RentalRequestReject(BaseModel):
    reason: Optional[str] = None


class RentalRequestOut(BaseModel):
    id: int
    property_id: int
    tenant_id: int
    manager_id: Optional[int] = None
    message: Optional[str] = None
    proposed_start_date: Optional[date] = None
    request_status: str
    rejection_reason: Optional[str] = None
    lease_id: Optional[int] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# -------------------- Leases --------------------

class DirectLeaseCreate(BaseModel):
    property_id: int
    tenant_id: int
    start_date: date
    monthly_rent: Optional[float] = Field(default=None, gt=0)
    manager_id: Optional[int] = None


class LeaseStatusUpdate(BaseModel):
    statut: LeaseStatus


class ReceiptDispute(BaseModel):
    reason: Optional[str] = None


class LeaseOut(BaseModel):
    id: int
    space_id: int
    property_id: int
    locataire_id: int
    gestionnaire_id: int
    date_debut: date
    date_fin: Optional[date] = None
    montant_mensuel: float
    caution_montant: float
    caution_payee: bool
    date_caution_payee: Optional[datetime] = None
    statut: str
    payment_status: str
    advance_months_count: int
    advance_months_consumed: int
    first_regular_payment_date: Optional[date] = None
    receipt_url: Optional[str] = None
    receipt_uploaded_at: Optional[datetime] = None
    tenant_confirmed_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class LeaseViewOut(BaseModel):
    id: int
    statut: str
    payment_status: str
    date_debut: date
    date_fin: Optional[date] = None
    montant_mensuel: float
    caution_montant: float
    caution_payee: bool
    property_id: int
    property_titre: str
    property_adresse: str
    property_ville: str
    locataire_id: int
    locataire_nom: Optional[str] = None
    gestionnaire_id: int
    gestionnaire_nom: Optional[str] = None
    advance_months_count: int
    advance_months_consumed: int
    advance_months_remaining: int
    first_regular_payment_date: Optional[date] = None
    receipt_url: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


# -------------------- Payments --------------------

class PaymentOut(BaseModel):
    id: int
    lease_id: int
    montant: float
    mois_paiement: date
    date_paiement: Optional[datetime] = None
    statut: str
    methode_paiement: Optional[str] = None
    numero_telephone: Optional[str] = None
    transaction_id: Optional[str] = None
    recu_url: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class PendingPaymentOut(BaseModel):
    payment: Optional[PaymentOut] = None
    is_deposit: bool = False


class InitiatePayment(BaseModel):
    lease_id: int
    montant: float = Field(gt=0)
    mois_paiement: date
    methode_paiement: Optional[str] = None
    numero_telephone: Optional[str] = None


class PaymentInitiationOut(BaseModel):
    payment_id: int
    transaction_id: str
    payment_url: Optional[str] = None
    simulation_mode: bool
    statut: str
    model_config = ConfigDict(from_attributes=True)


class DistributionConfigIn(BaseModel):
    proprietaire_pourcentage: float = Field(default=90.0, ge=0, le=100)
    gestionnaire_pourcentage: float = Field(default=10.0, ge=0, le=100)
    proprietaire_telephone: Optional[str] = None
    proprietaire_operateur: Optional[str] = None
    gestionnaire_telephone: Optional[str] = None
    gestionnaire_operateur: Optional[str] = None
    demarcheur_telephone: Optional[str] = None
    demarcheur_operateur: Optional[str] = None

    @field_validator("gestionnaire_pourcentage")
    @classmethod
    def _sum_to_100(cls, v: float, info) -> float:
        owner = info.data.get("proprietaire_pourcentage")
        if owner is not None and abs(owner + v - 100.0) > 0.01:
            raise ValueError("proprietaire_pourcentage + gestionnaire_pourcentage must equal 100")
        return v


class DistributionConfigOut(DistributionConfigIn):
    id: int
    space_id: int
    model_config = ConfigDict(from_attributes=True)


class DistributionOut(BaseModel):
    id: int
    payment_id: int
    type_distribution: str
    montant_total: float
    montant_proprietaire: float
    montant_gestionnaire: float
    montant_demarcheur: float
    statut_proprietaire: str
    statut_gestionnaire: str
    statut_demarcheur: str
    model_config = ConfigDict(from_attributes=True)


class DistributionResultOut(BaseModel):
    success: bool
    distribution: Optional[DistributionOut] = None
    error: Optional[str] = None


# -------------------- Maintenance --------------------

class TicketStatusUpdate(BaseModel):
    statut: TicketStatus
    intervention_description: Optional[str] = None


class InterventionOut(BaseModel):
    id: int
    ticket_id: int
    intervenant_id: int
    description: str
    statut_avant: Optional[str] = None
    statut_apres: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class TicketOut(BaseModel):
    id: int
    lease_id: int
    created_by: int
    titre: str
    description: str
    statut: str
    priorite: str
    photos: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class TicketDetailOut(TicketOut):
    interventions: list[InterventionOut] = Field(default_factory=list)


# -------------------- Notifications --------------------

class NotificationOut(BaseModel):
    id: int
    lease_id: Optional[int] = None
    type: str
    titre: str
    message: str
    lu: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# -------------------- Finance --------------------

class ChargeCreate(BaseModel):
    property_id: int
    type_charge: str = "autre"
    montant: float = Field(gt=0)
    date_charge: date
    description: Optional[str] = None
    recurrent: bool = False
    frequence: Optional[str] = None


class ChargeOut(ChargeCreate):
    id: int
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AmortizationCreate(BaseModel):
    property_id: int
    valeur_acquisition: float = Field(gt=0)
    date_acquisition: date
    duree_amortissement: int = Field(gt=0)
    valeur_residuelle: float = Field(default=0.0, ge=0)


class AmortizationOut(AmortizationCreate):
    id: int
    annual_amount: float = 0.0
    cumulated_amount: float = 0.0
    remaining_value: float = 0.0
    model_config = ConfigDict(from_attributes=True)


class PropertyPerformanceOut(BaseModel):
    property_id: int
    titre: str
    revenue: float
    charges: float
    profit: float
    rentability: float
    model_config = ConfigDict(from_attributes=True)


class MetricsOut(BaseModel):
    total_revenue: float
    total_charges: float
    net_profit: float
    profit_margin: float
    overdue_payments: int
    overdue_amount: float
    occupancy_rate: float = 0.0
    charges_by_type: dict[str, float] = Field(default_factory=dict)
    property_performance: list[PropertyPerformanceOut] = Field(default_factory=list)
    total_properties: int = 0
    active_leases: int = 0
    model_config = ConfigDict(from_attributes=True)


class MonthlyPointOut(BaseModel):
    month: str
    revenue: float
    charges: float
    net_profit: float
    cumulative_cash_flow: float
    model_config = ConfigDict(from_attributes=True)


class ForecastPointOut(BaseModel):
    month: str
    projected_revenue: float
    projected_charges: float
    projected_profit: float
    projected_cash_flow: float
    confidence: int
    model_config = ConfigDict(from_attributes=True)


class AlertOut(BaseModel):
    type: str
    title: str
    message: str
    metric: str
    trend: float
    model_config = ConfigDict(from_attributes=True)


class ForecastOut(BaseModel):
    status: str
    history_months: int
    points: list[ForecastPointOut] = Field(default_factory=list)
    alerts: list[AlertOut] = Field(default_factory=list)


# -------------------- Reports --------------------

class FinancialReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    space_id: Optional[int] = Field(default=None, alias="spaceId")
    period: ReportPeriod = "12months"


class SpaceReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    space_id: int = Field(alias="spaceId")


class SpaceReportOut(BaseModel):
    success: bool
    html: Optional[str] = None
    error: Optional[str] = None


# -------------------- Spaces / audit --------------------

class PrincipalOut(BaseModel):
    space_id: int
    space_slug: str
    user_id: int
    email: str
    role: str
    model_config = ConfigDict(from_attributes=True)


class MemberCreate(BaseModel):
    email: str = Field(min_length=3)
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: Literal["admin", "manager", "owner", "tenant"] = "tenant"


class MemberOut(BaseModel):
    user_id: int
    full_name: Optional[str] = None
    email: str
    role: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuditEventOut(BaseModel):
    id: int
    actor_user_id: Optional[int] = None
    action: str
    entity_type: str
    entity_id: str
    before_json: Optional[str] = None
    after_json: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
