from __future__ import annotations

import json
from datetime import date

import httpx
import pytest
from sqlalchemy import select

from loyerfacile.clients.mapbox import MapboxGeocoder, build_query
from loyerfacile.clients.payment_gateway import PaymentGatewayClient
from loyerfacile.domain.errors import GeocodingError, PaymentGatewayError, StorageError
from loyerfacile.models import Payment, Property
from loyerfacile.services import payments
from loyerfacile.services.geocoding import ensure_coordinates
from loyerfacile.services.lease_lifecycle import create_direct_lease
from loyerfacile.services.realtime import LiveQuery, RealtimeHub, hub
from loyerfacile.storage import LocalFileStore

from conftest import active_lease


def _mapbox(handler) -> MapboxGeocoder:
    return MapboxGeocoder(token="pk.test", transport=httpx.MockTransport(handler))


def test_build_query_falls_back_to_area():
    assert build_query("  12 rue des Palmiers ", "Abidjan", "Cocody", "Côte d'Ivoire") == "12 rue des Palmiers"
    assert build_query(None, "Abidjan", "Cocody", "Côte d'Ivoire") == "Cocody, Abidjan, Côte d'Ivoire"
    assert build_query("", None, None, "Côte d'Ivoire") == "Côte d'Ivoire"


def test_geocode_reads_center_as_lon_lat():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json={"features": [{"center": [-3.98, 5.35], "place_name": "Cocody, Abidjan"}]})

    res = _mapbox(handler).geocode(None, "Abidjan", "Cocody")
    assert (res.latitude, res.longitude) == (5.35, -3.98)
    assert res.place_name == "Cocody, Abidjan"
    assert seen["url"].params["country"] == "CI"
    assert seen["url"].params["access_token"] == "pk.test"


def test_geocode_errors():
    empty = _mapbox(lambda r: httpx.Response(200, json={"features": []}))
    with pytest.raises(GeocodingError):
        empty.geocode("nowhere")

    broken = _mapbox(lambda r: httpx.Response(500, text="oops"))
    with pytest.raises(GeocodingError):
        broken.geocode("nowhere")

    with pytest.raises(GeocodingError):
        MapboxGeocoder(token="").geocode("anything")


def test_ensure_coordinates_continues_after_failure(db, world):
    other = Property(
        space_id=world.space.id,
        titre="Studio Marcory",
        adresse="Zone 4",
        ville="Abidjan",
        prix_mensuel=50_000,
        images=[],
    )
    located = Property(
        space_id=world.space.id,
        titre="Déjà placé",
        adresse="Plateau",
        ville="Abidjan",
        prix_mensuel=70_000,
        images=[],
        latitude=5.32,
        longitude=-4.02,
    )
    db.add_all([other, located])
    db.commit()

    def handler(request: httpx.Request) -> httpx.Response:
        if "Rue" in request.url.path:
            return httpx.Response(200, json={"features": []})
        return httpx.Response(200, json={"features": [{"center": [-3.97, 5.29]}]})

    props = list(db.scalars(select(Property).order_by(Property.id)).all())
    run = ensure_coordinates(db, props, geocoder=_mapbox(handler))

    assert run.failed == [world.prop.id]
    assert run.updated == [other.id]
    db.refresh(other)
    assert (other.latitude, other.longitude) == (5.29, -3.97)
    assert db.get(Property, world.prop.id).latitude is None


def test_live_query_reloads_on_matching_events(db, world):
    calls = []

    def loader():
        calls.append(1)
        return len(db.scalars(select(Property)).all())

    with LiveQuery(hub, loader, table="properties", space_id=world.space.id) as lq:
        assert lq.value == 1
        db.add(Property(space_id=world.space.id, titre="Nouveau", adresse="x", ville="Bouaké", prix_mensuel=1, images=[]))
        db.commit()
        hub.publish("properties", "insert", None, space_id=world.space.id)
        assert lq.value == 2

        hub.publish("properties", "insert", None, space_id=world.space.id + 1)
        hub.publish("leases", "insert", None, space_id=world.space.id)
        assert lq.reloads == 1

    hub.publish("properties", "update", None, space_id=world.space.id)
    assert len(calls) == 2


def test_broken_listener_does_not_break_publish():
    h = RealtimeHub()
    got = []

    def bad(ev):
        raise RuntimeError("listener bug")

    h.subscribe("payments", "insert", bad)
    h.subscribe("payments", "insert", got.append)
    ev = h.publish("payments", "insert", 7)
    assert got == [ev]


def test_local_store_rejects_escaping_paths(tmp_path):
    fs = LocalFileStore(str(tmp_path), "http://files.test/")
    fs.upload("payment-receipts", "1/recu.pdf", b"pdf")
    assert (tmp_path / "payment-receipts" / "1" / "recu.pdf").read_bytes() == b"pdf"
    assert fs.public_url("payment-receipts", "1/recu.pdf") == "http://files.test/payment-receipts/1/recu.pdf"

    with pytest.raises(StorageError):
        fs.upload("payment-receipts", "../../etc/passwd", b"x")


def _gateway(handler) -> PaymentGatewayClient:
    gw = PaymentGatewayClient(transport=httpx.MockTransport(handler))
    gw.url = "https://pay.test/v2/payment"
    gw.check_url = "https://pay.test/v2/payment/check"
    gw.api_key = "key"
    gw.site_id = "site"
    return gw


class FakeAggregator:
    """Checkout always opens tok-123; the check endpoint reports `status`."""

    def __init__(self, status="PENDING", amount=None):
        self.status = status
        self.amount = amount
        self.sent = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.sent.append((request.url.path, body))
        if request.url.path.endswith("/check"):
            return httpx.Response(
                200, json={"code": "00", "data": {"status": self.status, "amount": self.amount}}
            )
        return httpx.Response(
            200, json={"code": "201", "data": {"payment_token": "tok-123", "payment_url": "https://pay.test/c/tok-123"}}
        )


def test_gateway_checkout_then_webhook(db, world):
    lease = active_lease(db, world)
    agg = FakeAggregator()
    gw = _gateway(agg)

    init = payments.initiate_payment(db, lease_id=lease.id, montant=100_000, mois_paiement=date(2026, 4, 1), gateway=gw)
    assert init.simulation_mode is False
    assert init.statut == "in-progress"
    assert init.payment_url == "https://pay.test/c/tok-123"
    path, sent = agg.sent[0]
    assert sent["currency"] == "XOF"
    assert sent["amount"] == 100_000

    # aggregator still waiting: the notice changes nothing
    row = payments.handle_gateway_webhook(db, {"payment_token": "tok-123", "status": "ACCEPTED"}, gateway=gw)
    assert row.statut == "in-progress"
    assert agg.sent[-1] == ("/v2/payment/check", {"apikey": "key", "site_id": "site", "token": "tok-123"})

    agg.status, agg.amount = "ACCEPTED", 100_000
    row = payments.handle_gateway_webhook(db, {"payment_token": "tok-123"}, gateway=gw)
    assert row.statut == "succeeded"

    # late failure notice does not undo a settled payment
    agg.status = "REFUSED"
    again = payments.handle_gateway_webhook(db, {"transaction_id": "tok-123"}, gateway=gw)
    assert again.statut == "succeeded"

    assert payments.handle_gateway_webhook(db, {"transaction_id": "unknown"}, gateway=gw) is None
    with pytest.raises(ValueError):
        payments.handle_gateway_webhook(db, {"status": "ACCEPTED"}, gateway=gw)


def test_forged_deposit_notice_leaves_lease_pending(db, world):
    lease = create_direct_lease(
        db,
        space_id=world.space.id,
        property_id=world.prop.id,
        tenant_id=world.tenant.id,
        manager_id=world.manager.id,
        start_date=date(2026, 1, 1),
    )
    agg = FakeAggregator(status="REFUSED")
    gw = _gateway(agg)
    init = payments.initiate_payment(
        db, lease_id=lease.id, montant=lease.caution_montant, mois_paiement=date(2026, 1, 1), gateway=gw
    )

    row = payments.handle_gateway_webhook(db, {"payment_token": init.transaction_id, "status": "ACCEPTED"}, gateway=gw)
    assert row.statut == "failed"
    db.refresh(lease)
    assert (lease.statut, lease.caution_payee) == ("pending-deposit", False)
    assert db.get(Property, world.prop.id).statut == "pending-validation"


def test_underpaid_deposit_is_not_settled(db, world):
    lease = create_direct_lease(
        db,
        space_id=world.space.id,
        property_id=world.prop.id,
        tenant_id=world.tenant.id,
        manager_id=world.manager.id,
        start_date=date(2026, 1, 1),
    )
    gw = _gateway(FakeAggregator(status="ACCEPTED", amount=100))
    init = payments.initiate_payment(
        db, lease_id=lease.id, montant=lease.caution_montant, mois_paiement=date(2026, 1, 1), gateway=gw
    )
    with pytest.raises(PaymentGatewayError):
        payments.handle_gateway_webhook(db, {"payment_token": init.transaction_id}, gateway=gw)
    db.refresh(lease)
    assert lease.caution_payee is False


def test_webhook_without_aggregator_credentials_is_refused(db, world):
    lease = active_lease(db, world)
    row = payments.insert_payment(db, lease=lease, montant=100_000, mois_paiement=date(2026, 4, 1), statut="in-progress")
    row.transaction_id = "tok-999"
    db.commit()

    with pytest.raises(PermissionError):
        payments.handle_gateway_webhook(db, {"payment_token": "tok-999", "status": "ACCEPTED"})
    assert db.get(Payment, row.id).statut == "in-progress"


def test_gateway_error_code(db, world):
    lease = active_lease(db, world)
    gw = _gateway(lambda r: httpx.Response(200, json={"code": "608", "message": "montant invalide"}))
    with pytest.raises(PaymentGatewayError):
        payments.initiate_payment(db, lease_id=lease.id, montant=100_000, mois_paiement=date(2026, 4, 1), gateway=gw)
