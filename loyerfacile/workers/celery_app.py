# loyerfacile/workers/celery_app.py
from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from ..config import settings

BROKER = settings.celery_broker_url or "redis://localhost:6379/0"
BACKEND = settings.celery_result_backend or "redis://localhost:6379/1"

celery_app = Celery(
    "loyerfacile",
    broker=BROKER,
    backend=BACKEND,
    include=["loyerfacile.workers.billing_tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    timezone="Africa/Abidjan",
)

celery_app.conf.task_routes = {
    "loyerfacile.workers.billing_tasks.*": {"queue": "billing"},
}

# Invoices first thing in the morning, reminders once the day's invoices exist.
celery_app.conf.beat_schedule = {
    "monthly-rent-invoices": {
        "task": "loyerfacile.workers.billing_tasks.generate_monthly_rent_invoices",
        "schedule": crontab(hour=6, minute=0),
    },
    "payment-reminders": {
        "task": "loyerfacile.workers.billing_tasks.send_payment_reminders",
        "schedule": crontab(hour=8, minute=0),
    },
}
