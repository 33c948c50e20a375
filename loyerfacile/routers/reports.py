# loyerfacile/routers/reports.py
from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from ..auth import Principal, require_staff
from ..config import settings
from ..db import get_db
from ..domain.dates import add_months, month_start, period_start
from ..domain.financials import report_metrics
from ..reports.financial_report import render_financial_report, render_space_report
from ..schemas import FinancialReportRequest, SpaceReportOut, SpaceReportRequest
from ..services.read_models import load_financial_data, load_space_data
from .errors import domain_errors

log = logging.getLogger("loyerfacile.reports")

router = APIRouter(prefix="/reports", tags=["reports"])


def _check_space(p: Principal, space_id: int | None) -> None:
    if space_id is not None and int(space_id) != p.space_id:
        raise HTTPException(status_code=404, detail="space not found")


@router.post("/financial", response_class=HTMLResponse)
def financial_report(
    payload: FinancialReportRequest,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    _check_space(p, payload.space_id)
    today = date.today()
    with domain_errors():
        since = period_start(payload.period, today)

    data = load_financial_data(db, space_id=p.space_id, since=since)
    metrics = report_metrics(
        properties=data.properties,
        leases=data.leases,
        payments=data.payments,
        charges=data.charges,
        today=today,
    )
    html = render_financial_report(data, metrics, payload.period, generated_on=today)
    log.info("financial report generated", extra={"space_id": p.space_id})
    return HTMLResponse(content=html)


@router.post("/space", response_model=SpaceReportOut)
def space_report(
    payload: SpaceReportRequest,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    _check_space(p, payload.space_id)
    today = date.today()
    since = add_months(month_start(today), -(settings.space_report_payment_months - 1))
    with domain_errors():
        data = load_space_data(db, space_id=p.space_id, payments_since=since)
    html = render_space_report(data, generated_on=today)
    log.info("space report generated", extra={"space_id": p.space_id})
    return SpaceReportOut(success=True, html=html)
