from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select

from loyerfacile.domain.financials import report_metrics
from loyerfacile.models import Payment, PropertyAmortization, PropertyCharge
from loyerfacile.reports.financial_report import (
    fcfa,
    render_financial_report,
    render_payment_receipt,
    render_space_report,
)
from loyerfacile.services.read_models import load_financial_data, load_payment_receipt, load_space_data

from conftest import active_lease

XSS = "<script>alert(1)</script>"


def _financial_html(db, w, period="all"):
    data = load_financial_data(db, space_id=w.space.id)
    metrics = report_metrics(
        properties=data.properties,
        leases=data.leases,
        payments=data.payments,
        charges=data.charges,
        today=date(2026, 6, 1),
    )
    return render_financial_report(data, metrics, period, generated_on=date(2026, 6, 1))


def test_fcfa_format():
    assert fcfa(1234567.4) == "1 234 567"
    assert fcfa(None) == "0"


def test_financial_report_escapes_user_text(db, world):
    world.prop.titre = f"Villa {XSS}"
    db.add(
        PropertyCharge(
            space_id=world.space.id,
            property_id=world.prop.id,
            type_charge="travaux",
            montant=25_000,
            date_charge=date(2026, 2, 3),
            description=XSS,
        )
    )
    db.commit()
    active_lease(db, world)

    html = _financial_html(db, world)

    assert "<script>" not in html
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
    assert "Rapport Financier" in html
    assert "1 juin 2026" in html
    assert "500 000 FCFA" in html
    assert "Travaux" in html


def test_financial_report_with_amortization(db, world):
    db.add(
        PropertyAmortization(
            space_id=world.space.id,
            property_id=world.prop.id,
            valeur_acquisition=20_000_000,
            date_acquisition=date(2020, 1, 1),
            duree_amortissement=20,
            valeur_residuelle=0,
        )
    )
    db.commit()

    html = _financial_html(db, world, period="12months")
    assert "1 000 000 FCFA" in html
    assert "12 derniers mois" in html


def test_space_report_lists_members_and_leases(db, world):
    world.space.nom = f"Agence {XSS}"
    db.commit()
    active_lease(db, world, start=date(2026, 1, 1))

    data = load_space_data(db, space_id=world.space.id, payments_since=date(2025, 8, 1))
    html = render_space_report(data, generated_on=date(2026, 6, 1))

    assert "<script>" not in html
    assert "Koffi Locataire" in html
    assert "01/01/2026" in html
    assert "Indéterminé" in html
    assert "© 2026" in html


def test_payment_receipt_escapes_and_labels_deposit(db, world):
    world.tenant.full_name = f"Koffi {XSS}"
    world.tenant.phone = "0700000000"
    world.prop.titre = "Villa <b>Cocody</b>"
    db.commit()
    lease = active_lease(db, world)
    deposit = db.scalar(select(Payment).where(Payment.lease_id == lease.id))
    deposit.methode_paiement = "orange_money"
    deposit.transaction_id = "SIM-1-abc"
    db.commit()

    html = render_payment_receipt(load_payment_receipt(db, deposit), generated_at=datetime(2026, 2, 1, 9, 30))

    assert "<script>" not in html
    assert "Koffi &lt;script&gt;" in html
    assert "Villa &lt;b&gt;Cocody&lt;/b&gt;" in html
    assert "Rue des Jardins, Abidjan" in html
    assert "N° SIM-1-abc" in html
    assert "janvier 2026" in html
    assert "ORANGE MONEY" in html
    assert "Caution et avances" in html
    assert "500 000 FCFA" in html
    assert "Awa Gestion" in html
    assert "01/02/2026 09:30" in html
