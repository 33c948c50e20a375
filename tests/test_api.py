from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from loyerfacile.auth import issue_token
from loyerfacile.main import create_app
from loyerfacile.models import Payment
from loyerfacile.storage import set_file_store

from conftest import MemoryFileStore


def _headers(space: str, email: str, role: str = "manager") -> dict[str, str]:
    return {"X-Space-Slug": space, "X-User-Email": email, "X-User-Role": role}


MANAGER = _headers("abidjan", "awa@agence.ci")
TENANT = _headers("abidjan", "koffi@mail.ci", "tenant")
OTHER_SPACE = _headers("bouake", "yao@agence.ci")


@pytest.fixture
def client():
    return TestClient(create_app())


def _setup_lease(client) -> dict:
    r = client.post(
        "/api/properties",
        json={"titre": "Villa Riviera", "adresse": "Riviera 3", "ville": "Abidjan", "prix_mensuel": 150000},
        headers=MANAGER,
    )
    assert r.status_code == 200, r.text
    prop = r.json()

    r = client.post("/api/auth/members", json={"email": "koffi@mail.ci", "full_name": "Koffi", "role": "tenant"}, headers=MANAGER)
    assert r.status_code == 200, r.text
    tenant_id = r.json()["user_id"]

    r = client.post(
        "/api/leases/direct",
        json={"property_id": prop["id"], "tenant_id": tenant_id, "start_date": "2026-02-01"},
        headers=MANAGER,
    )
    assert r.status_code == 200, r.text
    return {"property": prop, "tenant_id": tenant_id, "lease": r.json()}


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["payment_simulation_mode"] is True
    assert r.headers.get("X-Request-ID")


def test_missing_space_header_is_unauthorized(client):
    r = client.get("/api/properties", headers={"X-User-Email": "a@b.c"})
    assert r.status_code == 401


def test_direct_lease_flow(client):
    ctx = _setup_lease(client)
    lease = ctx["lease"]
    assert lease["statut"] == "pending-deposit"
    assert lease["caution_montant"] == 750000

    r = client.get(f"/api/leases/{lease['id']}/pending-payment", headers=MANAGER)
    body = r.json()
    assert body["is_deposit"] is True
    assert body["payment"]["montant"] == 750000

    r = client.get(f"/api/properties/{ctx['property']['id']}", headers=MANAGER)
    assert r.json()["statut"] == "pending-validation"

    r = client.post(f"/api/leases/{lease['id']}/confirm-deposit", headers=MANAGER)
    assert r.status_code == 200
    assert r.json()["statut"] == "actif"
    assert r.json()["caution_payee"] is True

    r = client.post(f"/api/leases/{lease['id']}/status", json={"statut": "pending-deposit"}, headers=MANAGER)
    assert r.status_code == 409

    r = client.get(f"/api/leases/{lease['id']}/pending-payment", headers=MANAGER)
    assert r.json() == {"payment": None, "is_deposit": False}


def test_tenant_sees_only_own_leases_and_cannot_manage(client):
    ctx = _setup_lease(client)

    r = client.get("/api/leases", headers=TENANT)
    assert r.status_code == 200
    rows = r.json()
    assert [x["id"] for x in rows] == [ctx["lease"]["id"]]
    assert rows[0]["property_titre"] == "Villa Riviera"

    r = client.post("/api/properties", json={"titre": "x", "adresse": "y", "ville": "z", "prix_mensuel": 1}, headers=TENANT)
    assert r.status_code == 403

    r = client.post(f"/api/leases/{ctx['lease']['id']}/terminate", headers=TENANT)
    assert r.status_code == 403

    # a second tenant in the same space sees nothing
    other = _headers("abidjan", "ama@mail.ci", "tenant")
    assert client.get("/api/leases", headers=other).json() == []
    assert client.get(f"/api/leases/{ctx['lease']['id']}", headers=other).status_code == 404


def test_cross_space_access_is_not_found(client):
    ctx = _setup_lease(client)

    assert client.get(f"/api/properties/{ctx['property']['id']}", headers=OTHER_SPACE).status_code == 404
    assert client.get(f"/api/leases/{ctx['lease']['id']}", headers=OTHER_SPACE).status_code == 404
    assert client.get("/api/payments", headers=OTHER_SPACE).json() == []

    me = client.get("/api/auth/me", headers=MANAGER).json()
    r = client.post("/api/reports/space", json={"spaceId": me["space_id"]}, headers=OTHER_SPACE)
    assert r.status_code == 404


def test_receipt_and_ticket_uploads(client):
    store = MemoryFileStore()
    set_file_store(store)
    ctx = _setup_lease(client)
    lease_id = ctx["lease"]["id"]

    r = client.post(
        f"/api/leases/{lease_id}/receipt",
        files={"file": ("recu.pdf", b"%PDF", "application/pdf")},
        headers=MANAGER,
    )
    assert r.status_code == 200, r.text
    assert r.json()["payment_status"] == "awaiting-tenant-confirmation"

    r = client.post(f"/api/leases/{lease_id}/receipt/confirm", headers=TENANT)
    assert r.status_code == 200, r.text
    assert r.json()["statut"] == "actif"

    r = client.post(
        "/api/maintenance/tickets",
        data={"lease_id": str(lease_id), "titre": "Panne d'eau", "priorite": "urgent"},
        files=[("photos", ("a.jpg", b"1", "image/jpeg")), ("photos", ("b.jpg", b"2", "image/jpeg"))],
        headers=TENANT,
    )
    assert r.status_code == 200, r.text
    ticket = r.json()
    assert len(ticket["photos"]) == 2

    r = client.post(
        f"/api/maintenance/tickets/{ticket['id']}/status",
        json={"statut": "in-progress", "intervention_description": "Plombier envoyé"},
        headers=MANAGER,
    )
    assert r.status_code == 200, r.text
    r = client.get(f"/api/maintenance/tickets/{ticket['id']}/interventions", headers=TENANT)
    assert [i["statut_apres"] for i in r.json()] == ["in-progress"]

    notes = client.get("/api/notifications", headers=TENANT).json()
    assert "receipt_uploaded" in {n["type"] for n in notes}


def test_ticket_photo_failure_is_bad_gateway(client):
    set_file_store(MemoryFileStore(fail_on=(2,)))
    ctx = _setup_lease(client)
    r = client.post(
        "/api/maintenance/tickets",
        data={"lease_id": str(ctx["lease"]["id"]), "titre": "Vitre"},
        files=[("photos", ("a.jpg", b"1", "image/jpeg")), ("photos", ("b.jpg", b"2", "image/jpeg"))],
        headers=MANAGER,
    )
    assert r.status_code == 502

    tickets = client.get("/api/maintenance/tickets", headers=MANAGER).json()
    assert len(tickets) == 1
    assert len(tickets[0]["photos"]) == 1


def test_finance_and_reports(client):
    ctx = _setup_lease(client)
    client.post(f"/api/leases/{ctx['lease']['id']}/confirm-deposit", headers=MANAGER)

    r = client.post(
        "/api/finance/charges",
        json={
            "property_id": ctx["property"]["id"],
            "type_charge": "entretien",
            "montant": 50000,
            "date_charge": "2026-02-10",
            "description": "<b>Peinture</b>",
        },
        headers=MANAGER,
    )
    assert r.status_code == 200, r.text

    m = client.get("/api/finance/metrics", params={"period": "all"}, headers=MANAGER).json()
    assert m["total_revenue"] == 750000
    assert m["total_charges"] == 50000
    assert m["net_profit"] == 700000

    f = client.get("/api/finance/forecast", headers=MANAGER).json()
    assert f["status"] in ("ok", "insufficient_data")

    me = client.get("/api/auth/me", headers=MANAGER).json()
    r = client.post("/api/reports/financial", json={"spaceId": me["space_id"], "period": "all"}, headers=MANAGER)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert "&lt;b&gt;Peinture&lt;/b&gt;" in r.text

    r = client.post("/api/reports/space", json={"spaceId": me["space_id"]}, headers=MANAGER)
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert "Villa Riviera" in r.json()["html"]

    r = client.post("/api/reports/financial", json={"period": "decade"}, headers=MANAGER)
    assert r.status_code == 422


def test_bearer_token_auth(client):
    me = client.get("/api/auth/me", headers=MANAGER).json()
    token = issue_token(me["user_id"])

    r = client.get("/api/auth/me", headers={"X-Space-Slug": "abidjan", "Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["email"] == "awa@agence.ci"

    r = client.get("/api/auth/me", headers={"X-Space-Slug": "abidjan", "Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401

    expired = issue_token(me["user_id"], minutes=-5)
    r = client.get("/api/auth/me", headers={"X-Space-Slug": "abidjan", "Authorization": f"Bearer {expired}"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Token expired"


def test_unverifiable_webhook_does_not_activate_lease(client, db):
    ctx = _setup_lease(client)
    lease_id = ctx["lease"]["id"]
    deposit = db.scalar(select(Payment).where(Payment.lease_id == lease_id))
    deposit.transaction_id = "tok-abc"
    db.commit()

    r = client.post("/api/payments/webhook", json={"payment_token": "tok-abc", "status": "ACCEPTED"})
    assert r.status_code == 403

    lease = client.get(f"/api/leases/{lease_id}", headers=MANAGER).json()
    assert lease["statut"] == "pending-deposit"
    assert lease["caution_payee"] is False

    r = client.post("/api/payments/webhook", json={"payment_token": "tok-unknown"})
    assert r.json() == {"ok": True, "matched": False}


def test_payment_receipt_requires_settled_payment(client):
    ctx = _setup_lease(client)
    lease_id = ctx["lease"]["id"]
    deposit = client.get(f"/api/leases/{lease_id}/pending-payment", headers=MANAGER).json()["payment"]

    r = client.get(f"/api/payments/{deposit['id']}/receipt", headers=TENANT)
    assert r.status_code == 409

    client.post(f"/api/leases/{lease_id}/confirm-deposit", headers=MANAGER)
    r = client.get(f"/api/payments/{deposit['id']}/receipt", headers=TENANT)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert "Villa Riviera" in r.text
    assert "750 000 FCFA" in r.text

    other = _headers("abidjan", "ama@mail.ci", "tenant")
    assert client.get(f"/api/payments/{deposit['id']}/receipt", headers=other).status_code == 404
    assert client.get(f"/api/payments/{deposit['id']}/receipt", headers=OTHER_SPACE).status_code == 404


def test_confirm_deposit_after_termination_leaves_payment_pending(client):
    ctx = _setup_lease(client)
    lease_id = ctx["lease"]["id"]
    assert client.post(f"/api/leases/{lease_id}/terminate", headers=MANAGER).status_code == 200

    r = client.post(f"/api/leases/{lease_id}/confirm-deposit", headers=MANAGER)
    assert r.status_code == 409

    pending = client.get(f"/api/leases/{lease_id}/pending-payment", headers=MANAGER).json()
    assert pending["is_deposit"] is True
    assert pending["payment"]["statut"] == "pending"


def test_audit_trail_is_staff_only_and_filterable(client):
    ctx = _setup_lease(client)
    lease_id = ctx["lease"]["id"]
    client.post(f"/api/leases/{lease_id}/confirm-deposit", headers=MANAGER)

    assert client.get("/api/audit", headers=TENANT).status_code == 403

    rows = client.get("/api/audit", params={"entity_type": "Lease", "entity_id": str(lease_id)}, headers=MANAGER).json()
    assert "lease.deposit_confirmed" in [r["action"] for r in rows]
    assert {r["entity_type"] for r in rows} == {"Lease"}

    assert client.get("/api/audit", headers=OTHER_SPACE).json() == []
    assert client.get("/api/audit", params={"since": "2999-01-01"}, headers=MANAGER).json() == []


def test_request_id_is_echoed_or_replaced(client):
    r = client.get("/api/health", headers={"X-Request-ID": "web-1234"})
    assert r.headers["X-Request-ID"] == "web-1234"

    r = client.get("/api/health", headers={"X-Request-ID": "bad id with spaces"})
    assert r.headers["X-Request-ID"] != "bad id with spaces"
    assert len(r.headers["X-Request-ID"]) == 32
