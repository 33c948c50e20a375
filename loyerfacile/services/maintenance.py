from __future__ import annotations

import logging
import re
import time
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from ..config import settings
from ..domain.audit import audit_write
from ..models import Lease, MaintenanceIntervention, MaintenanceTicket
from ..storage import FileStore, UploadFile, get_file_store
from .realtime import hub

log = logging.getLogger("loyerfacile.maintenance")

TICKET_STATUSES = ("open", "in-progress", "resolved", "closed")
TICKET_PRIORITIES = ("low", "medium", "high", "urgent")

_unsafe = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_name(name: str) -> str:
    return _unsafe.sub("_", name).strip("_") or "photo"


def create_ticket(
    db: Session,
    *,
    lease_id: int,
    created_by: int,
    titre: str,
    description: str = "",
    priorite: str = "medium",
    photos: Sequence[UploadFile] = (),
    store: Optional[FileStore] = None,
) -> MaintenanceTicket:
    """
    Insert a ticket, then upload its photos one by one.

    The ticket's photo list is committed after every successful upload. If an
    upload fails the ticket and the photos already attached stay as they are
    and the error propagates.
    """
    if priorite not in TICKET_PRIORITIES:
        raise ValueError(f"unknown priority: {priorite}")
    if not (titre or "").strip():
        raise ValueError("titre is required")

    lease = db.get(Lease, lease_id)
    if lease is None:
        raise LookupError("lease not found")

    ticket = MaintenanceTicket(
        space_id=lease.space_id,
        lease_id=lease.id,
        created_by=int(created_by),
        titre=titre.strip(),
        description=description or "",
        statut="open",
        priorite=priorite,
        photos=[],
    )
    db.add(ticket)
    db.flush()
    audit_write(
        db,
        space_id=lease.space_id,
        actor_user_id=created_by,
        action="ticket.create",
        entity_type="MaintenanceTicket",
        entity_id=str(ticket.id),
        after=ticket.model_dump(),
    )
    db.commit()
    db.refresh(ticket)
    hub.publish("maintenance_tickets", "insert", ticket.id, space_id=ticket.space_id)

    if not photos:
        return ticket

    fs = store or get_file_store()
    bucket = settings.maintenance_photos_bucket
    for photo in photos:
        path = f"{ticket.id}/{int(time.time() * 1000)}_{_safe_name(photo.filename)}"
        try:
            fs.upload(bucket, path, photo.data, photo.content_type)
        except Exception:
            log.exception(
                "photo upload failed; ticket kept with %d photo(s)", len(ticket.photos or []),
                extra={"ticket_id": ticket.id},
            )
            raise
        # reassign so the JSON column is flagged dirty
        ticket.photos = list(ticket.photos or []) + [fs.public_url(bucket, path)]
        db.commit()
        hub.publish("maintenance_tickets", "update", ticket.id, space_id=ticket.space_id)

    return ticket


def update_ticket_status(
    db: Session,
    ticket_id: int,
    new_status: str,
    *,
    actor_id: int,
    intervention_description: Optional[str] = None,
) -> MaintenanceTicket:
    """Any status may move to any other; a description records an intervention."""
    if new_status not in TICKET_STATUSES:
        raise ValueError(f"unknown ticket status: {new_status}")

    ticket = db.get(MaintenanceTicket, ticket_id)
    if ticket is None:
        raise LookupError("ticket not found")

    before = ticket.model_dump()
    previous = ticket.statut
    ticket.statut = new_status

    if intervention_description and intervention_description.strip():
        db.add(
            MaintenanceIntervention(
                ticket_id=ticket.id,
                intervenant_id=int(actor_id),
                description=intervention_description.strip(),
                statut_avant=previous,
                statut_apres=new_status,
            )
        )

    audit_write(
        db,
        space_id=ticket.space_id,
        actor_user_id=actor_id,
        action="ticket.status",
        entity_type="MaintenanceTicket",
        entity_id=str(ticket.id),
        before=before,
        after=ticket.model_dump(),
    )
    db.commit()
    db.refresh(ticket)
    hub.publish("maintenance_tickets", "update", ticket.id, space_id=ticket.space_id)
    log.info("ticket %s: %s -> %s", ticket.id, previous, new_status, extra={"ticket_id": ticket.id})
    return ticket
