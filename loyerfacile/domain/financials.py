from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional

from .dates import as_date, month_key, trailing_months

PAID_STATUS = "succeeded"
PENDING_STATUS = "pending"
OCCUPIED_STATUS = "rented"
ACTIVE_LEASE_STATUS = "actif"

CHARGE_TYPE_LABELS = {
    "taxe_fonciere": "Taxe foncière",
    "assurance": "Assurance",
    "entretien": "Entretien",
    "travaux": "Travaux",
    "charges_copropriete": "Charges copro",
    "autre": "Autre",
}


def _amount(row: Any) -> float:
    return float(getattr(row, "montant", 0.0) or 0.0)


def _is_paid(p: Any) -> bool:
    return (getattr(p, "statut", "") or "") == PAID_STATUS


@dataclass(frozen=True)
class FinancialMetrics:
    total_revenue: float
    total_charges: float
    net_profit: float
    profit_margin: float
    overdue_payments: int
    overdue_amount: float


@dataclass(frozen=True)
class PropertyPerformance:
    property_id: int
    titre: str
    revenue: float
    charges: float
    profit: float
    rentability: float


@dataclass(frozen=True)
class ReportMetrics(FinancialMetrics):
    occupancy_rate: float = 0.0
    charges_by_type: dict[str, float] = field(default_factory=dict)
    property_performance: list[PropertyPerformance] = field(default_factory=list)
    total_properties: int = 0
    active_leases: int = 0


@dataclass(frozen=True)
class MonthlyPoint:
    month: str
    revenue: float
    charges: float
    net_profit: float
    cumulative_cash_flow: float


@dataclass(frozen=True)
class AmortizationLine:
    annual_amount: float
    cumulated_amount: float
    remaining_value: float


def margin(net: float, revenue: float) -> float:
    return float(net / revenue * 100.0) if revenue > 0 else 0.0


def overdue_payments(payments: Iterable[Any], today: date) -> list[Any]:
    out = []
    for p in payments:
        if (getattr(p, "statut", "") or "") != PENDING_STATUS:
            continue
        due = as_date(getattr(p, "mois_paiement", None))
        if due is not None and due < today:
            out.append(p)
    return out


def aggregate_metrics(payments: list[Any], charges: list[Any], today: Optional[date] = None) -> FinancialMetrics:
    today = today or date.today()
    revenue = float(sum(_amount(p) for p in payments if _is_paid(p)))
    total_charges = float(sum(_amount(c) for c in charges))
    net = revenue - total_charges
    overdue = overdue_payments(payments, today)
    return FinancialMetrics(
        total_revenue=revenue,
        total_charges=total_charges,
        net_profit=float(net),
        profit_margin=margin(net, revenue),
        overdue_payments=len(overdue),
        overdue_amount=float(sum(_amount(p) for p in overdue)),
    )


def charges_by_type(charges: Iterable[Any]) -> dict[str, float]:
    out: dict[str, float] = {}
    for c in charges:
        t = getattr(c, "type_charge", None) or "autre"
        out[t] = float(out.get(t, 0.0) + _amount(c))
    return out


def occupancy_rate(properties: list[Any]) -> float:
    if not properties:
        return 0.0
    occupied = sum(1 for p in properties if getattr(p, "statut", None) == OCCUPIED_STATUS)
    return float(occupied / len(properties) * 100.0)


def property_performance(
    properties: list[Any],
    leases: list[Any],
    payments: list[Any],
    charges: list[Any],
) -> list[PropertyPerformance]:
    """Per-property revenue/charges, best rentability first."""
    lease_to_property = {int(l.id): int(l.property_id) for l in leases}

    revenue_by_prop: dict[int, float] = {}
    for p in payments:
        if not _is_paid(p):
            continue
        pid = lease_to_property.get(int(p.lease_id))
        if pid is not None:
            revenue_by_prop[pid] = revenue_by_prop.get(pid, 0.0) + _amount(p)

    charges_by_prop: dict[int, float] = {}
    for c in charges:
        pid = int(c.property_id)
        charges_by_prop[pid] = charges_by_prop.get(pid, 0.0) + _amount(c)

    out = []
    for prop in properties:
        rev = float(revenue_by_prop.get(int(prop.id), 0.0))
        chg = float(charges_by_prop.get(int(prop.id), 0.0))
        profit = rev - chg
        out.append(
            PropertyPerformance(
                property_id=int(prop.id),
                titre=str(getattr(prop, "titre", "") or ""),
                revenue=rev,
                charges=chg,
                profit=float(profit),
                rentability=margin(profit, rev),
            )
        )
    out.sort(key=lambda x: x.rentability, reverse=True)
    return out


def report_metrics(
    *,
    properties: list[Any],
    leases: list[Any],
    payments: list[Any],
    charges: list[Any],
    today: Optional[date] = None,
) -> ReportMetrics:
    base = aggregate_metrics(payments, charges, today=today)
    return ReportMetrics(
        total_revenue=base.total_revenue,
        total_charges=base.total_charges,
        net_profit=base.net_profit,
        profit_margin=base.profit_margin,
        overdue_payments=base.overdue_payments,
        overdue_amount=base.overdue_amount,
        occupancy_rate=occupancy_rate(properties),
        charges_by_type=charges_by_type(charges),
        property_performance=property_performance(properties, leases, payments, charges),
        total_properties=len(properties),
        active_leases=sum(1 for l in leases if getattr(l, "statut", None) == ACTIVE_LEASE_STATUS),
    )


def _bucket(payments: Iterable[Any], charges: Iterable[Any]) -> tuple[dict[str, float], dict[str, float]]:
    rev: dict[str, float] = {}
    chg: dict[str, float] = {}
    for p in payments:
        if not _is_paid(p):
            continue
        d = as_date(getattr(p, "mois_paiement", None))
        if d is None:
            continue
        k = month_key(d)
        rev[k] = rev.get(k, 0.0) + _amount(p)
    for c in charges:
        d = as_date(getattr(c, "date_charge", None))
        if d is None:
            continue
        k = month_key(d)
        chg[k] = chg.get(k, 0.0) + _amount(c)
    return rev, chg


def _points(months: list[str], rev: dict[str, float], chg: dict[str, float]) -> list[MonthlyPoint]:
    out = []
    cumulative = 0.0
    for m in months:
        r = float(rev.get(m, 0.0))
        c = float(chg.get(m, 0.0))
        cumulative += r - c
        out.append(MonthlyPoint(month=m, revenue=r, charges=c, net_profit=float(r - c), cumulative_cash_flow=float(cumulative)))
    return out


def build_monthly_history(payments: list[Any], charges: list[Any]) -> list[MonthlyPoint]:
    """Months that have activity, sorted; cumulative cash flow runs from the first one."""
    rev, chg = _bucket(payments, charges)
    return _points(sorted(set(rev) | set(chg)), rev, chg)


def monthly_series(payments: list[Any], charges: list[Any], *, months: int, today: Optional[date] = None) -> list[MonthlyPoint]:
    """Zero-filled trailing window ending with the current month."""
    today = today or date.today()
    rev, chg = _bucket(payments, charges)
    return _points(trailing_months(today, months), rev, chg)


def amortization_schedule(row: Any, years: int) -> AmortizationLine:
    acquisition = float(row.valeur_acquisition)
    residual = float(row.valeur_residuelle or 0.0)
    duration = int(row.duree_amortissement)
    if duration <= 0:
        raise ValueError("duree_amortissement must be positive")

    annual = (acquisition - residual) / duration
    cumulated = annual * int(years)
    return AmortizationLine(
        annual_amount=float(annual),
        cumulated_amount=float(cumulated),
        remaining_value=float(max(acquisition - cumulated, residual)),
    )


def years_since(acquired: date, today: date) -> int:
    years = today.year - acquired.year
    if (today.month, today.day) < (acquired.month, acquired.day):
        years -= 1
    return max(0, years)
