from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain.audit import audit_write
from ..domain.dates import month_bounds, month_key, month_start
from ..models import Lease, LeasePaymentReminder, Payment, Property
from . import payments
from .notifications import notify
from .realtime import hub

log = logging.getLogger("loyerfacile.billing")

MONTHS_FR = (
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
)

COURTESY_DAY = 5
DEADLINE_DAY = 10
OVERDUE_DAY = 11


@dataclass
class InvoiceRunResult:
    generated: int = 0
    advance_consumed: int = 0
    skipped: int = 0
    errors: int = 0
    payment_ids: list[int] = field(default_factory=list)


@dataclass
class ReminderRunResult:
    notifications_sent: int = 0
    reminders_recorded: int = 0
    overdue_leases: list[int] = field(default_factory=list)


def _fcfa(v: float) -> str:
    return f"{v:,.0f}".replace(",", " ")


def _billable_leases(db: Session) -> list[Lease]:
    q = (
        select(Lease)
        .where(Lease.statut == "actif", Lease.caution_payee.is_(True))
        .order_by(Lease.id.asc())
    )
    return list(db.scalars(q).all())


def _payments_in_month(db: Session, lease_id: int, month: str, statuses: Optional[tuple[str, ...]] = None) -> list[Payment]:
    start, end = month_bounds(month)
    q = select(Payment).where(
        Payment.lease_id == lease_id,
        Payment.mois_paiement >= start,
        Payment.mois_paiement <= end,
    )
    if statuses:
        q = q.where(Payment.statut.in_(statuses))
    return list(db.scalars(q).all())


def _record_reminder(db: Session, lease_id: int, reminder_type: str, on: date) -> bool:
    """Insert a reminder row; False when (lease, type, date) already exists."""
    exists = db.scalar(
        select(LeasePaymentReminder.id).where(
            LeasePaymentReminder.lease_id == lease_id,
            LeasePaymentReminder.reminder_type == reminder_type,
            LeasePaymentReminder.reminder_date == on,
        )
    )
    if exists is not None:
        return False
    db.add(LeasePaymentReminder(lease_id=lease_id, reminder_type=reminder_type, reminder_date=on, sent_at=datetime.utcnow()))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True


def _invoice_lease(db: Session, lease: Lease, today: date, result: InvoiceRunResult) -> None:
    month_first = month_start(today)
    key = month_key(today)

    first_regular = lease.first_regular_payment_date
    if first_regular is not None:
        in_advance_period = month_first < month_start(first_regular)
    else:
        in_advance_period = lease.advance_months_consumed < lease.advance_months_count

    if in_advance_period:
        if lease.advance_months_consumed >= lease.advance_months_count:
            result.skipped += 1
            return
        # the marker row makes consumption happen once per lease and month
        if not _record_reminder(db, lease.id, "advance_consumed", month_first):
            result.skipped += 1
            return
        lease.advance_months_consumed = min(lease.advance_months_count, lease.advance_months_consumed + 1)
        audit_write(
            db,
            space_id=lease.space_id,
            actor_user_id=None,
            action="lease.advance_consumed",
            entity_type="Lease",
            entity_id=str(lease.id),
            after={"month": key, "advance_months_consumed": lease.advance_months_consumed},
        )
        db.commit()
        hub.publish("leases", "update", lease.id, space_id=lease.space_id)
        result.advance_consumed += 1
        return

    if _payments_in_month(db, lease.id, key):
        result.skipped += 1
        return

    row = payments.insert_payment(db, lease=lease, montant=lease.montant_mensuel, mois_paiement=month_first)
    result.generated += 1
    result.payment_ids.append(int(row.id))
    log.info("rent invoice generated for %s", key, extra={"lease_id": lease.id, "payment_id": row.id})

    notify(
        db,
        user_id=lease.locataire_id,
        lease_id=lease.id,
        type="rappel_paiement",
        titre="Nouvelle facture de loyer",
        message=(
            f"Votre loyer de {_fcfa(lease.montant_mensuel)} FCFA pour le mois de "
            f"{MONTHS_FR[today.month - 1]} {today.year} est disponible pour paiement."
        ),
    )


def generate_monthly_rent_invoices(db: Session, today: Optional[date] = None) -> InvoiceRunResult:
    """
    Monthly billing for active leases whose deposit is paid.

    While advance months remain the month is drawn from the advance; after
    that a pending rent payment is created. Re-running within a month
    changes nothing.
    """
    today = today or date.today()
    result = InvoiceRunResult()
    for lease in _billable_leases(db):
        try:
            _invoice_lease(db, lease, today, result)
        except Exception:
            db.rollback()
            result.errors += 1
            log.exception("invoice generation failed", extra={"lease_id": lease.id})
    log.info(
        "monthly invoices: generated=%d advance=%d skipped=%d errors=%d",
        result.generated, result.advance_consumed, result.skipped, result.errors,
    )
    return result


def send_payment_reminders(db: Session, today: Optional[date] = None) -> ReminderRunResult:
    """
    Day-based rent reminders.

    - the day before first_regular_payment_date: advance ending
    - from that date on, when the month is unpaid: courtesy on the 5th,
      deadline on the 10th, overdue on the 11th (manager notified too and the
      lease marked overdue)
    """
    today = today or date.today()
    now = datetime.combine(today, datetime.utcnow().time())
    key = month_key(today)
    result = ReminderRunResult()

    def send(**kw) -> None:
        if notify(db, once_per_day=today, now=now, **kw) is not None:
            result.notifications_sent += 1

    def record(lease_id: int, reminder_type: str) -> None:
        if _record_reminder(db, lease_id, reminder_type, today):
            result.reminders_recorded += 1

    for lease in _billable_leases(db):
        prop = db.get(Property, lease.property_id)
        title = prop.titre if prop is not None else "Propriété"
        rent = _fcfa(lease.montant_mensuel)
        first = lease.first_regular_payment_date
        if first is None:
            continue

        if (first - today).days == 1:
            send(
                user_id=lease.locataire_id,
                lease_id=lease.id,
                type="advance_ending",
                titre="Fin de période d'avance demain",
                message=f"Votre période d'avance pour {title} se termine demain. Le loyer régulier de {rent} FCFA sera dû.",
            )
            record(lease.id, "advance_ending")

        if today < first:
            continue

        if today.day == COURTESY_DAY and not _payments_in_month(db, lease.id, key, (payments.SUCCEEDED,)):
            send(
                user_id=lease.locataire_id,
                lease_id=lease.id,
                type="courtesy_reminder",
                titre="Rappel de loyer",
                message=f"Rappel amical: Le loyer de {rent} FCFA pour {title} est en attente de paiement.",
            )
            record(lease.id, "courtesy")

        elif today.day == DEADLINE_DAY and not _payments_in_month(db, lease.id, key, (payments.SUCCEEDED,)):
            send(
                user_id=lease.locataire_id,
                lease_id=lease.id,
                type="payment_deadline",
                titre="Date limite de paiement",
                message=f"Aujourd'hui est la date limite pour le paiement du loyer de {title}. Montant: {rent} FCFA.",
            )
            record(lease.id, "deadline")

        elif today.day == OVERDUE_DAY and not _payments_in_month(
            db, lease.id, key, (payments.SUCCEEDED, payments.IN_PROGRESS)
        ):
            send(
                user_id=lease.locataire_id,
                lease_id=lease.id,
                type="payment_overdue",
                titre="Retard de paiement",
                message=f"Votre loyer pour {title} est en retard. Veuillez régulariser votre situation au plus vite.",
            )
            send(
                user_id=lease.gestionnaire_id,
                lease_id=lease.id,
                type="payment_overdue_manager",
                titre="Retard de paiement",
                message=(
                    f"Le loyer pour {title} n'a pas été payé à la date limite. "
                    "Aucune validation de paiement n'a été enregistrée."
                ),
            )
            if lease.payment_status != "overdue":
                lease.payment_status = "overdue"
                db.commit()
                hub.publish("leases", "update", lease.id, space_id=lease.space_id)
            record(lease.id, "overdue")
            result.overdue_leases.append(int(lease.id))

    log.info("payment reminders: notifications=%d reminders=%d", result.notifications_sent, result.reminders_recorded)
    return result
