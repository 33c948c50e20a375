from __future__ import annotations

from datetime import date

from sqlalchemy import func, select

from loyerfacile.models import Lease, LeasePaymentReminder, Notification, Payment
from loyerfacile.services import payments
from loyerfacile.services.billing import generate_monthly_rent_invoices, send_payment_reminders

from conftest import active_lease


def _rent_payments(db, lease_id):
    return list(
        db.scalars(
            select(Payment).where(Payment.lease_id == lease_id, Payment.montant == 100_000).order_by(Payment.mois_paiement)
        ).all()
    )


def _count(db, user_id, type_):
    return db.scalar(select(func.count(Notification.id)).where(Notification.user_id == user_id, Notification.type == type_))


def test_advance_months_are_consumed_before_invoicing(db, world):
    lease = active_lease(db, world, start=date(2026, 1, 15))
    assert lease.first_regular_payment_date == date(2026, 3, 15)

    r = generate_monthly_rent_invoices(db, today=date(2026, 1, 20))
    assert r.advance_consumed == 1
    assert r.generated == 0

    generate_monthly_rent_invoices(db, today=date(2026, 2, 1))
    db.refresh(lease)
    assert lease.advance_months_consumed == 2
    assert _rent_payments(db, lease.id) == []

    r = generate_monthly_rent_invoices(db, today=date(2026, 3, 1))
    assert r.generated == 1
    rows = _rent_payments(db, lease.id)
    assert [(p.mois_paiement, p.statut) for p in rows] == [(date(2026, 3, 1), "pending")]
    assert _count(db, world.tenant.id, "rappel_paiement") == 1


def test_advance_consumption_is_bounded_and_monthly_run_idempotent(db, world):
    lease = active_lease(db, world, start=date(2026, 1, 15))

    for day in (date(2026, 1, 2), date(2026, 1, 28), date(2026, 2, 1), date(2026, 2, 27)):
        generate_monthly_rent_invoices(db, today=day)
    db.refresh(lease)
    assert lease.advance_months_consumed == 2

    generate_monthly_rent_invoices(db, today=date(2026, 3, 1))
    second = generate_monthly_rent_invoices(db, today=date(2026, 3, 20))
    assert second.generated == 0
    assert second.skipped == 1
    assert len(_rent_payments(db, lease.id)) == 1

    db.refresh(lease)
    assert lease.advance_months_consumed <= lease.advance_months_count

    markers = db.scalar(
        select(func.count(LeasePaymentReminder.id)).where(
            LeasePaymentReminder.lease_id == lease.id, LeasePaymentReminder.reminder_type == "advance_consumed"
        )
    )
    assert markers == 2


def test_pending_deposit_leases_are_not_billed(db, world):
    from loyerfacile.services.lease_lifecycle import create_direct_lease

    create_direct_lease(
        db,
        space_id=world.space.id,
        property_id=world.prop.id,
        tenant_id=world.tenant.id,
        manager_id=world.manager.id,
        start_date=date(2026, 1, 1),
    )
    r = generate_monthly_rent_invoices(db, today=date(2026, 6, 1))
    assert (r.generated, r.advance_consumed, r.skipped) == (0, 0, 0)


def test_reminder_schedule(db, world):
    lease = active_lease(db, world, start=date(2026, 1, 15))
    tenant, manager = world.tenant.id, world.manager.id

    send_payment_reminders(db, today=date(2026, 3, 14))
    assert _count(db, tenant, "advance_ending") == 1

    # still inside the advance period
    send_payment_reminders(db, today=date(2026, 3, 5))
    assert _count(db, tenant, "courtesy_reminder") == 0

    first = send_payment_reminders(db, today=date(2026, 4, 5))
    again = send_payment_reminders(db, today=date(2026, 4, 5))
    assert first.notifications_sent == 1
    assert again.notifications_sent == 0
    assert again.reminders_recorded == 0
    assert _count(db, tenant, "courtesy_reminder") == 1

    send_payment_reminders(db, today=date(2026, 4, 10))
    assert _count(db, tenant, "payment_deadline") == 1

    r = send_payment_reminders(db, today=date(2026, 4, 11))
    assert r.overdue_leases == [lease.id]
    assert _count(db, tenant, "payment_overdue") == 1
    assert _count(db, manager, "payment_overdue_manager") == 1
    assert db.get(Lease, lease.id).payment_status == "overdue"


def test_paid_month_gets_no_reminder(db, world):
    lease = active_lease(db, world, start=date(2026, 1, 15))
    p = payments.insert_payment(db, lease=lease, montant=100_000, mois_paiement=date(2026, 4, 1))
    payments.mark_payment_succeeded(db, p.id)

    send_payment_reminders(db, today=date(2026, 4, 5))
    r = send_payment_reminders(db, today=date(2026, 4, 11))
    assert r.overdue_leases == []
    assert _count(db, world.tenant.id, "courtesy_reminder") == 0


def test_celery_task_runs_in_process(db, world):
    from loyerfacile.workers.billing_tasks import generate_monthly_rent_invoices as task

    active_lease(db, world, start=date(2026, 1, 15))
    out = task(today="2026-03-02")
    assert out["advance_consumed"] == 0
    assert out["generated"] == 1
    assert task(today="2026-03-03")["generated"] == 0
