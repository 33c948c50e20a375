from __future__ import annotations

import os
from datetime import date, datetime
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from ..domain.deposit import is_deposit_payment
from ..domain.financials import CHARGE_TYPE_LABELS, ReportMetrics, amortization_schedule
from ..services.read_models import FinancialData, ReceiptData, SpaceData

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "templates")

MONTHS_FR = (
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
)

PERIOD_LABELS = {
    "1month": "Dernier mois",
    "3months": "3 derniers mois",
    "6months": "6 derniers mois",
    "12months": "12 derniers mois",
    "1year": "12 derniers mois",
    "all": "Historique complet",
}

CHARGE_DETAIL_LIMIT = 20
NOT_SPECIFIED = "Non spécifié"


def fcfa(v: Any) -> str:
    """12500.5 -> '12 501'; thousands separated by a space."""
    return f"{float(v or 0):,.0f}".replace(",", " ")


def date_fr(d: Optional[date]) -> str:
    if d is None:
        return ""
    return f"{d.day:02d}/{d.month:02d}/{d.year}"


def date_long_fr(d: date) -> str:
    return f"{d.day} {MONTHS_FR[d.month - 1]} {d.year}"


def charge_label(t: Optional[str]) -> str:
    return CHARGE_TYPE_LABELS.get(t or "", t or "")


def rentability_class(r: float) -> str:
    if r >= 50:
        return "success"
    if r >= 30:
        return "warning"
    return "danger"


def _env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(enabled_extensions=("html", "j2"), default=True),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["fcfa"] = fcfa
    env.filters["date_fr"] = date_fr
    env.filters["charge_label"] = charge_label
    env.filters["rentability_class"] = rentability_class
    return env


_environment = _env()


def render_financial_report(
    data: FinancialData,
    metrics: ReportMetrics,
    period: str,
    generated_on: Optional[date] = None,
) -> str:
    """Static HTML document; every text value goes through autoescaping."""
    generated_on = generated_on or date.today()
    titles = {int(p.id): p.titre for p in data.properties}

    charges = sorted(data.charges, key=lambda c: (c.date_charge, c.id), reverse=True)[:CHARGE_DETAIL_LIMIT]
    charges_by_type = sorted(metrics.charges_by_type.items(), key=lambda kv: kv[1], reverse=True)

    amortizations = []
    for a in data.amortizations:
        line = amortization_schedule(a, 1)
        amortizations.append(
            {
                "property": titles.get(int(a.property_id), f"#{a.property_id}"),
                "valeur_acquisition": a.valeur_acquisition,
                "date_acquisition": a.date_acquisition,
                "duree": a.duree_amortissement,
                "annual": line.annual_amount,
                "valeur_residuelle": a.valeur_residuelle,
            }
        )

    return _environment.get_template("financial_report.html.j2").render(
        generated_on=date_long_fr(generated_on),
        period=PERIOD_LABELS.get(period, period),
        metrics=metrics,
        charges_count=len(data.charges),
        charges_by_type=charges_by_type,
        charges=charges,
        amortizations=amortizations,
    )


def render_space_report(data: SpaceData, generated_on: Optional[date] = None) -> str:
    generated_on = generated_on or date.today()
    total = len(data.properties)
    occupied = sum(1 for p in data.properties if p.statut == "rented")
    revenue = sum(float(p.montant) for p in data.payments if p.statut == "succeeded")
    active_tickets = sum(1 for t in data.tickets if t.statut not in ("resolved", "closed"))

    return _environment.get_template("space_report.html.j2").render(
        space=data.space,
        generated_on=date_long_fr(generated_on),
        year=generated_on.year,
        total_properties=total,
        occupancy_rate=(occupied / total * 100.0) if total else 0.0,
        total_revenue=revenue,
        active_tickets=active_tickets,
        properties=data.properties,
        active_leases=[l for l in data.leases if l.statut == "actif"],
        members=data.members,
    )


def _contact(u: Any) -> dict[str, str]:
    if u is None:
        return {"nom": NOT_SPECIFIED, "telephone": NOT_SPECIFIED}
    return {"nom": u.full_name or NOT_SPECIFIED, "telephone": u.phone or NOT_SPECIFIED}


def render_payment_receipt(data: ReceiptData, generated_at: Optional[datetime] = None) -> str:
    """Receipt for one settled payment; callers check the status first."""
    generated_at = generated_at or datetime.now()
    p, prop = data.payment, data.property

    adresse = prop.adresse if prop and prop.adresse else "Adresse non spécifiée"
    if prop and prop.ville:
        adresse = f"{adresse}, {prop.ville}"

    return _environment.get_template("payment_receipt.html.j2").render(
        numero=p.transaction_id or f"{p.id:08d}",
        locataire=_contact(data.locataire),
        gestionnaire=_contact(data.gestionnaire),
        property_titre=prop.titre if prop else "Propriété",
        property_adresse=adresse,
        mois=f"{MONTHS_FR[p.mois_paiement.month - 1]} {p.mois_paiement.year}",
        date_paiement=date_fr(p.date_paiement) or NOT_SPECIFIED,
        methode=(p.methode_paiement or NOT_SPECIFIED).replace("_", " ").upper(),
        is_deposit=is_deposit_payment(p, data.lease),
        montant=p.montant,
        generated_on=f"{date_fr(generated_at)} {generated_at:%H:%M}",
        year=generated_at.year,
    )
