from __future__ import annotations

import os
import tempfile

_tmp = tempfile.mkdtemp(prefix="loyerfacile-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_tmp, 'test.db')}")
os.environ.setdefault("STORAGE_ROOT", os.path.join(_tmp, "storage"))
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("AUTH_MODE", "dev")
os.environ.pop("PAYMENT_API_KEY", None)
os.environ.pop("PAYMENT_SITE_ID", None)
os.environ.pop("MAPBOX_TOKEN", None)

from dataclasses import dataclass  # noqa: E402
from datetime import date  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402

from loyerfacile import models  # noqa: E402,F401
from loyerfacile.db import Base, SessionLocal, engine  # noqa: E402
from loyerfacile.models import AppUser, ManagementSpace, Property, SpaceMember  # noqa: E402
from loyerfacile.services.realtime import hub  # noqa: E402
from loyerfacile.storage import set_file_store  # noqa: E402


class MemoryFileStore:
    """Bucket stand-in; fail_on lists 1-based upload numbers that raise."""

    def __init__(self, fail_on: tuple[int, ...] = ()) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail_on = fail_on
        self.calls = 0

    def upload(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        from loyerfacile.domain.errors import StorageError

        self.calls += 1
        if self.calls in self.fail_on:
            raise StorageError(f"simulated failure on upload #{self.calls}")
        self.objects[(bucket, path)] = data
        return path

    def public_url(self, bucket: str, path: str) -> str:
        return f"mem://{bucket}/{path}"


@dataclass
class World:
    space: ManagementSpace
    manager: AppUser
    tenant: AppUser
    prop: Property


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    hub.clear()
    set_file_store(None)
    yield
    hub.clear()
    set_file_store(None)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def store():
    fs = MemoryFileStore()
    set_file_store(fs)
    return fs


def make_world(db, *, slug: str = "space-a", rent: float = 100_000.0) -> World:
    space = ManagementSpace(slug=slug, nom=f"Espace {slug}")
    manager = AppUser(email=f"manager@{slug}.local", full_name="Awa Gestion")
    tenant = AppUser(email=f"tenant@{slug}.local", full_name="Koffi Locataire")
    db.add_all([space, manager, tenant])
    db.commit()

    db.add_all(
        [
            SpaceMember(space_id=space.id, user_id=manager.id, role="manager"),
            SpaceMember(space_id=space.id, user_id=tenant.id, role="tenant"),
        ]
    )
    prop = Property(
        space_id=space.id,
        gestionnaire_id=manager.id,
        titre="Villa Cocody",
        adresse="Rue des Jardins",
        ville="Abidjan",
        quartier="Cocody",
        prix_mensuel=rent,
        statut="available",
        images=[],
    )
    db.add(prop)
    db.commit()
    return World(space=space, manager=manager, tenant=tenant, prop=prop)


@pytest.fixture
def world(db) -> World:
    return make_world(db)


def active_lease(db, w: World, *, start: date = date(2026, 1, 15)):
    """Direct lease whose deposit has been settled."""
    from loyerfacile.services import payments
    from loyerfacile.services.lease_lifecycle import create_direct_lease

    lease = create_direct_lease(
        db,
        space_id=w.space.id,
        property_id=w.prop.id,
        tenant_id=w.tenant.id,
        manager_id=w.manager.id,
        start_date=start,
    )
    deposit = payments.pending_payments_for_lease(db, lease.id)[0]
    payments.mark_payment_succeeded(db, deposit.id)
    db.refresh(lease)
    return lease
