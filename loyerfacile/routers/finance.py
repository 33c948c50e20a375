# loyerfacile/routers/finance.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, require_staff
from ..config import settings
from ..db import get_db
from ..domain.audit import emit_audit
from ..domain.dates import add_months, month_start, period_start
from ..domain.financials import (
    amortization_schedule,
    build_monthly_history,
    monthly_series,
    report_metrics,
    years_since,
)
from ..domain.forecast import detect_alerts, forecast
from ..models import PropertyAmortization, PropertyCharge
from ..schemas import (
    AlertOut,
    AmortizationCreate,
    AmortizationOut,
    ChargeCreate,
    ChargeOut,
    ForecastOut,
    ForecastPointOut,
    MetricsOut,
    MonthlyPointOut,
    ReportPeriod,
)
from ..services.ownership import must_get_amortization, must_get_charge, must_get_property
from ..services.read_models import load_financial_data
from ..services.realtime import hub
from .errors import domain_errors

router = APIRouter(prefix="/finance", tags=["finance"])


# -------------------- Charges --------------------

@router.get("/charges", response_model=list[ChargeOut])
def list_charges(
    property_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    q = select(PropertyCharge).where(PropertyCharge.space_id == p.space_id)
    if property_id is not None:
        q = q.where(PropertyCharge.property_id == property_id)
    return list(db.scalars(q.order_by(PropertyCharge.date_charge.desc(), PropertyCharge.id.desc())).all())


@router.post("/charges", response_model=ChargeOut)
def create_charge(payload: ChargeCreate, db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    must_get_property(db, space_id=p.space_id, property_id=payload.property_id)
    row = PropertyCharge(space_id=p.space_id, **payload.model_dump())
    db.add(row)
    db.commit()
    db.refresh(row)

    emit_audit(
        db,
        space_id=p.space_id,
        actor_user_id=p.user_id,
        action="charge.create",
        entity_type="PropertyCharge",
        entity_id=str(row.id),
        after=row.model_dump(),
    )
    hub.publish("property_charges", "insert", row.id, space_id=p.space_id)
    return row


@router.delete("/charges/{charge_id}", response_model=dict)
def delete_charge(charge_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    row = must_get_charge(db, space_id=p.space_id, charge_id=charge_id)
    before = row.model_dump()
    db.delete(row)
    db.commit()
    emit_audit(
        db,
        space_id=p.space_id,
        actor_user_id=p.user_id,
        action="charge.delete",
        entity_type="PropertyCharge",
        entity_id=str(charge_id),
        before=before,
    )
    hub.publish("property_charges", "delete", charge_id, space_id=p.space_id)
    return {"ok": True, "id": charge_id}


# -------------------- Amortization --------------------

def _amortization_out(row: PropertyAmortization, today: date) -> AmortizationOut:
    line = amortization_schedule(row, years_since(row.date_acquisition, today))
    return AmortizationOut(
        id=row.id,
        property_id=row.property_id,
        valeur_acquisition=row.valeur_acquisition,
        date_acquisition=row.date_acquisition,
        duree_amortissement=row.duree_amortissement,
        valeur_residuelle=row.valeur_residuelle,
        annual_amount=line.annual_amount,
        cumulated_amount=line.cumulated_amount,
        remaining_value=line.remaining_value,
    )


@router.get("/amortizations", response_model=list[AmortizationOut])
def list_amortizations(db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    today = date.today()
    rows = db.scalars(
        select(PropertyAmortization)
        .where(PropertyAmortization.space_id == p.space_id)
        .order_by(PropertyAmortization.id)
    ).all()
    return [_amortization_out(r, today) for r in rows]


@router.post("/amortizations", response_model=AmortizationOut)
def create_amortization(
    payload: AmortizationCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    must_get_property(db, space_id=p.space_id, property_id=payload.property_id)
    if payload.valeur_residuelle > payload.valeur_acquisition:
        raise HTTPException(status_code=400, detail="valeur_residuelle cannot exceed valeur_acquisition")

    row = PropertyAmortization(space_id=p.space_id, **payload.model_dump())
    db.add(row)
    db.commit()
    db.refresh(row)
    emit_audit(
        db,
        space_id=p.space_id,
        actor_user_id=p.user_id,
        action="amortization.create",
        entity_type="PropertyAmortization",
        entity_id=str(row.id),
        after=row.model_dump(),
    )
    return _amortization_out(row, date.today())


@router.delete("/amortizations/{amortization_id}", response_model=dict)
def delete_amortization(amortization_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    row = must_get_amortization(db, space_id=p.space_id, amortization_id=amortization_id)
    db.delete(row)
    db.commit()
    return {"ok": True, "id": amortization_id}


# -------------------- Metrics / series / forecast --------------------

@router.get("/metrics", response_model=MetricsOut)
def metrics(
    period: ReportPeriod = Query(default="12months"),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    today = date.today()
    with domain_errors():
        since = period_start(period, today)
    data = load_financial_data(db, space_id=p.space_id, since=since)
    return report_metrics(
        properties=data.properties,
        leases=data.leases,
        payments=data.payments,
        charges=data.charges,
        today=today,
    )


@router.get("/monthly", response_model=list[MonthlyPointOut])
def monthly(
    months: int = Query(default=12, ge=1, le=60),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    today = date.today()
    since = add_months(month_start(today), -(months - 1))
    data = load_financial_data(db, space_id=p.space_id, since=since)
    return monthly_series(data.payments, data.charges, months=months, today=today)


@router.get("/forecast", response_model=ForecastOut)
def forecast_cash_flow(
    horizon: Optional[int] = Query(default=None, ge=1, le=24),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    """Projection from the trailing history; fewer than three months yields insufficient_data."""
    today = date.today()
    since = add_months(month_start(today), -(settings.finance_history_months - 1))
    data = load_financial_data(db, space_id=p.space_id, since=since)

    history = build_monthly_history(data.payments, data.charges)
    result = forecast(history, horizon or settings.forecast_default_months)
    alerts = detect_alerts(history, result.points)
    return ForecastOut(
        status=result.status,
        history_months=result.history_months,
        points=[ForecastPointOut.model_validate(pt) for pt in result.points],
        alerts=[AlertOut.model_validate(a) for a in alerts],
    )
