from __future__ import annotations

import pytest
from sqlalchemy import select

from loyerfacile.domain.errors import StorageError
from loyerfacile.models import MaintenanceIntervention, MaintenanceTicket
from loyerfacile.services.maintenance import create_ticket, update_ticket_status
from loyerfacile.storage import UploadFile

from conftest import MemoryFileStore, active_lease


def _photos(n: int) -> list[UploadFile]:
    return [UploadFile(filename=f"fuite {i}.jpg", data=b"\xff\xd8" + bytes([i]), content_type="image/jpeg") for i in range(1, n + 1)]


def test_ticket_with_photos(db, world):
    lease = active_lease(db, world)
    fs = MemoryFileStore()

    t = create_ticket(
        db,
        lease_id=lease.id,
        created_by=world.tenant.id,
        titre="Fuite cuisine",
        description="L'évier fuit",
        priorite="high",
        photos=_photos(2),
        store=fs,
    )
    assert t.statut == "open"
    assert len(t.photos) == 2
    assert all(u.startswith(f"mem://maintenance-photos/{t.id}/") for u in t.photos)
    assert t.photos[0].endswith("_fuite_1.jpg")


def test_second_photo_failure_keeps_first(db, world):
    lease = active_lease(db, world)
    fs = MemoryFileStore(fail_on=(2,))

    with pytest.raises(StorageError):
        create_ticket(
            db,
            lease_id=lease.id,
            created_by=world.tenant.id,
            titre="Porte cassée",
            photos=_photos(2),
            store=fs,
        )

    tickets = list(db.scalars(select(MaintenanceTicket)).all())
    assert len(tickets) == 1
    db.refresh(tickets[0])
    assert len(tickets[0].photos) == 1
    assert tickets[0].photos[0].startswith(f"mem://maintenance-photos/{tickets[0].id}/")


def test_ticket_validation(db, world):
    lease = active_lease(db, world)
    with pytest.raises(ValueError):
        create_ticket(db, lease_id=lease.id, created_by=world.tenant.id, titre="x", priorite="critical")
    with pytest.raises(ValueError):
        create_ticket(db, lease_id=lease.id, created_by=world.tenant.id, titre="   ")
    with pytest.raises(LookupError):
        create_ticket(db, lease_id=9999, created_by=world.tenant.id, titre="Fuite")


def test_status_change_records_intervention(db, world):
    lease = active_lease(db, world)
    t = create_ticket(db, lease_id=lease.id, created_by=world.tenant.id, titre="Climatiseur")

    update_ticket_status(db, t.id, "in-progress", actor_id=world.manager.id, intervention_description="Technicien passé")
    update_ticket_status(db, t.id, "closed", actor_id=world.manager.id)
    # any status may go to any other
    t = update_ticket_status(db, t.id, "open", actor_id=world.manager.id, intervention_description="Réouvert")

    assert t.statut == "open"
    rows = list(
        db.scalars(
            select(MaintenanceIntervention)
            .where(MaintenanceIntervention.ticket_id == t.id)
            .order_by(MaintenanceIntervention.id)
        ).all()
    )
    assert [(r.statut_avant, r.statut_apres) for r in rows] == [("open", "in-progress"), ("closed", "open")]
    assert rows[0].intervenant_id == world.manager.id

    with pytest.raises(ValueError):
        update_ticket_status(db, t.id, "done", actor_id=world.manager.id)
