# loyerfacile/workers/billing_worker.py
from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from datetime import date

from ..db import SessionLocal
from ..logging_config import configure_logging
from ..services import billing


def main() -> None:
    """
    Manual run of the daily billing jobs (no celery needed in dev).
    Same idempotency as the scheduled tasks.
    """
    p = argparse.ArgumentParser()
    p.add_argument("--today", default=None, help="YYYY-MM-DD; defaults to the current date")
    p.add_argument("--skip-invoices", action="store_true")
    p.add_argument("--skip-reminders", action="store_true")
    args = p.parse_args()

    configure_logging()
    today = date.fromisoformat(args.today) if args.today else None

    db = SessionLocal()
    try:
        out: dict = {}
        if not args.skip_invoices:
            out["invoices"] = asdict(billing.generate_monthly_rent_invoices(db, today=today))
        if not args.skip_reminders:
            out["reminders"] = asdict(billing.send_payment_reminders(db, today=today))
        print(json.dumps(out, default=str))
    finally:
        db.close()


if __name__ == "__main__":
    main()
