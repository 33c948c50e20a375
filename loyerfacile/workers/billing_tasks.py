# loyerfacile/workers/billing_tasks.py
from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date
from typing import Optional

from ..db import SessionLocal
from ..services import billing
from .celery_app import celery_app

log = logging.getLogger("loyerfacile.workers")


def _day(today: Optional[str]) -> Optional[date]:
    return date.fromisoformat(today) if today else None


@celery_app.task(name="loyerfacile.workers.billing_tasks.generate_monthly_rent_invoices")
def generate_monthly_rent_invoices(today: Optional[str] = None) -> dict:
    """Daily; idempotent within a month."""
    db = SessionLocal()
    try:
        res = billing.generate_monthly_rent_invoices(db, today=_day(today))
        log.info("invoice run: %s", asdict(res))
        return asdict(res)
    finally:
        db.close()


@celery_app.task(name="loyerfacile.workers.billing_tasks.send_payment_reminders")
def send_payment_reminders(today: Optional[str] = None) -> dict:
    db = SessionLocal()
    try:
        res = billing.send_payment_reminders(db, today=_day(today))
        log.info("reminder run: %s", asdict(res))
        return asdict(res)
    finally:
        db.close()
