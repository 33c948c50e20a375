from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select

from loyerfacile.domain.deposit import compute_deposit, first_regular_payment_date, is_deposit_payment
from loyerfacile.domain.errors import LifecycleError, PaymentImmutableError
from loyerfacile.models import Lease, Notification, Payment, Property, RentalRequest
from loyerfacile.services import lease_lifecycle, payments
from loyerfacile.services.lease_lifecycle import (
    approve_rental_request,
    cancel_rental_request,
    confirm_deposit_payment,
    create_direct_lease,
    create_rental_request,
    reject_rental_request,
    set_lease_status,
    terminate_lease,
)

from conftest import active_lease


def _direct(db, w, **kw):
    return create_direct_lease(
        db,
        space_id=w.space.id,
        property_id=w.prop.id,
        tenant_id=w.tenant.id,
        manager_id=w.manager.id,
        start_date=kw.pop("start_date", date(2026, 3, 1)),
        **kw,
    )


def test_deposit_is_five_months_of_rent():
    d = compute_deposit(80_000)
    assert d.advance == 160_000
    assert d.guarantee == 160_000
    assert d.agency_fee == 80_000
    assert d.total == 400_000

    with pytest.raises(ValueError):
        compute_deposit(0)


def test_first_regular_payment_clamps_day():
    assert first_regular_payment_date(date(2025, 12, 31)) == date(2026, 2, 28)


def test_direct_lease_creates_pending_deposit_and_payment(db, world):
    lease = _direct(db, world)

    assert lease.statut == "pending-deposit"
    assert lease.caution_payee is False
    assert lease.montant_mensuel == 100_000
    assert lease.caution_montant == 500_000
    assert lease.advance_months_count == 2
    assert lease.advance_months_consumed == 0
    assert lease.first_regular_payment_date == date(2026, 5, 1)

    rows = list(db.scalars(select(Payment).where(Payment.lease_id == lease.id)).all())
    assert len(rows) == 1
    assert rows[0].montant == 500_000
    assert rows[0].statut == "pending"
    assert rows[0].mois_paiement == date(2026, 3, 1)
    assert is_deposit_payment(rows[0], lease)

    assert db.get(Property, world.prop.id).statut == "pending-validation"


def test_monthly_rent_override(db, world):
    lease = _direct(db, world, monthly_rent=60_000)
    assert lease.caution_montant == 300_000


def test_payment_insert_failure_leaves_lease_without_payment(db, world, monkeypatch):
    def boom(*a, **kw):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(payments, "insert_payment", boom)

    with pytest.raises(RuntimeError):
        _direct(db, world)

    leases = list(db.scalars(select(Lease)).all())
    assert len(leases) == 1
    assert leases[0].statut == "pending-deposit"
    assert leases[0].caution_payee is False
    assert db.scalars(select(Payment)).all() == []
    # property untouched: step 3 never ran
    assert db.get(Property, world.prop.id).statut == "available"


def test_deposit_payment_success_activates_lease(db, world):
    lease = active_lease(db, world)

    assert lease.statut == "actif"
    assert lease.caution_payee is True
    assert lease.date_caution_payee is not None
    assert db.get(Property, world.prop.id).statut == "rented"


def test_confirm_deposit_is_idempotent(db, world):
    lease = active_lease(db, world)
    stamped = lease.date_caution_payee

    again = confirm_deposit_payment(db, lease.id)
    assert again.statut == "actif"
    assert again.caution_payee is True
    assert again.date_caution_payee == stamped


def test_confirm_deposit_on_terminated_lease_is_rejected(db, world):
    lease = _direct(db, world)
    terminate_lease(db, lease.id, today=date(2026, 3, 10))
    with pytest.raises(LifecycleError):
        confirm_deposit_payment(db, lease.id)


def test_active_back_to_pending_deposit_is_not_supported(db, world):
    lease = active_lease(db, world)
    with pytest.raises(LifecycleError):
        set_lease_status(db, lease.id, "pending-deposit")
    db.refresh(lease)
    assert lease.statut == "actif"


def test_pending_to_active_requires_deposit_flag(db, world):
    lease = _direct(db, world)
    with pytest.raises(LifecycleError):
        set_lease_status(db, lease.id, "actif")


def test_terminated_is_final(db, world):
    lease = active_lease(db, world)
    set_lease_status(db, lease.id, "terminated", today=date(2026, 6, 30))
    db.refresh(lease)
    assert lease.statut == "terminated"
    assert lease.date_fin == date(2026, 6, 30)
    assert db.get(Property, world.prop.id).statut == "available"

    with pytest.raises(LifecycleError):
        set_lease_status(db, lease.id, "actif")


def test_unknown_lease_status_is_a_value_error(db, world):
    lease = _direct(db, world)
    with pytest.raises(ValueError):
        set_lease_status(db, lease.id, "archived")


def test_succeeded_payment_cannot_fail(db, world):
    lease = active_lease(db, world)
    deposit = db.scalar(select(Payment).where(Payment.lease_id == lease.id))
    assert deposit.statut == "succeeded"

    with pytest.raises(PaymentImmutableError):
        payments.mark_payment_failed(db, deposit.id)

    # settling twice keeps the original timestamp
    first = deposit.date_paiement
    assert payments.mark_payment_succeeded(db, deposit.id).date_paiement == first


def test_rental_request_approval_creates_lease_and_notifies(db, world):
    req = create_rental_request(
        db,
        space_id=world.space.id,
        property_id=world.prop.id,
        tenant_id=world.tenant.id,
        message="Disponible dès mars",
    )
    assert req.request_status == "pending"
    assert req.manager_id == world.manager.id

    lease = approve_rental_request(db, req.id, start_date=date(2026, 3, 1), manager_id=world.manager.id)
    db.refresh(req)
    assert req.request_status == "approved"
    assert req.lease_id == lease.id
    assert lease.caution_montant == 500_000

    types = set(db.scalars(select(Notification.type).where(Notification.user_id == world.tenant.id)).all())
    assert "rental_request_approved" in types

    with pytest.raises(LifecycleError):
        reject_rental_request(db, req.id, reason="trop tard")


def test_duplicate_pending_request_is_rejected(db, world):
    kw = dict(space_id=world.space.id, property_id=world.prop.id, tenant_id=world.tenant.id)
    create_rental_request(db, **kw)
    with pytest.raises(LifecycleError):
        create_rental_request(db, **kw)


def test_reject_and_cancel(db, world):
    kw = dict(space_id=world.space.id, property_id=world.prop.id, tenant_id=world.tenant.id)
    r1 = create_rental_request(db, **kw)
    reject_rental_request(db, r1.id, reason="Dossier incomplet")
    assert db.get(RentalRequest, r1.id).rejection_reason == "Dossier incomplet"

    r2 = create_rental_request(db, **kw)
    with pytest.raises(PermissionError):
        cancel_rental_request(db, r2.id, tenant_id=world.manager.id)
    assert cancel_rental_request(db, r2.id, tenant_id=world.tenant.id).request_status == "cancelled"


def test_receipt_flow_activates_lease(db, world, store):
    from loyerfacile.storage import UploadFile

    lease = _direct(db, world)
    lease = lease_lifecycle.upload_receipt(
        db,
        lease.id,
        UploadFile(filename="recu.PDF", data=b"%PDF-1.4", content_type="application/pdf"),
        uploaded_by=world.manager.id,
    )
    assert lease.payment_status == "awaiting-tenant-confirmation"
    assert lease.receipt_url.startswith("mem://payment-receipts/")
    assert lease.receipt_url.endswith(".pdf")
    assert lease.receipt_uploaded_by == world.manager.id

    lease = lease_lifecycle.confirm_receipt(db, lease.id, tenant_id=world.tenant.id)
    assert lease.payment_status == "verified"
    assert lease.tenant_confirmed_at is not None
    assert lease.statut == "actif"
    assert lease.caution_payee is True

    deposit = db.scalar(select(Payment).where(Payment.lease_id == lease.id))
    assert deposit.statut == "succeeded"

    mgr_types = set(db.scalars(select(Notification.type).where(Notification.user_id == world.manager.id)).all())
    assert "payment_confirmed" in mgr_types


def test_receipt_dispute_only_notifies(db, world, store):
    from loyerfacile.storage import UploadFile

    lease = _direct(db, world)
    lease_lifecycle.upload_receipt(db, lease.id, UploadFile("recu.jpg", b"jpg"), uploaded_by=world.manager.id)
    lease = lease_lifecycle.dispute_receipt(db, lease.id, tenant_id=world.tenant.id, reason="montant erroné")

    assert lease.statut == "pending-deposit"
    assert lease.payment_status == "awaiting-tenant-confirmation"
    msg = db.scalar(
        select(Notification.message).where(
            Notification.user_id == world.manager.id, Notification.type == "payment_disputed"
        )
    )
    assert "montant erroné" in msg


def test_receipt_confirmation_after_termination_changes_nothing(db, world, store):
    from loyerfacile.storage import UploadFile

    lease = _direct(db, world)
    lease_lifecycle.upload_receipt(db, lease.id, UploadFile("recu.jpg", b"jpg"), uploaded_by=world.manager.id)
    terminate_lease(db, lease.id, today=date(2026, 3, 10))

    with pytest.raises(LifecycleError):
        lease_lifecycle.confirm_receipt(db, lease.id, tenant_id=world.tenant.id)

    db.refresh(lease)
    assert lease.payment_status == "awaiting-tenant-confirmation"
    assert lease.tenant_confirmed_at is None
    assert lease.caution_payee is False
    deposit = db.scalar(select(Payment).where(Payment.lease_id == lease.id))
    assert deposit.statut == "pending"


def test_other_tenant_cannot_confirm_receipt(db, world, store):
    from loyerfacile.storage import UploadFile

    lease = _direct(db, world)
    lease_lifecycle.upload_receipt(db, lease.id, UploadFile("recu.jpg", b"jpg"), uploaded_by=world.manager.id)
    with pytest.raises(LookupError):
        lease_lifecycle.confirm_receipt(db, lease.id, tenant_id=world.manager.id)
