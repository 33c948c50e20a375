# loyerfacile/routers/maintenance.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query
from fastapi import UploadFile as HttpUpload
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_staff
from ..db import get_db
from ..models import Lease, MaintenanceIntervention, MaintenanceTicket
from ..schemas import InterventionOut, TicketDetailOut, TicketOut, TicketPriority, TicketStatusUpdate
from ..services import maintenance
from ..services.ownership import must_get_lease, must_get_ticket
from ..storage import UploadFile
from .errors import domain_errors

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.get("/tickets", response_model=list[TicketOut])
def list_tickets(
    statut: Optional[str] = Query(default=None),
    lease_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    q = select(MaintenanceTicket).where(MaintenanceTicket.space_id == p.space_id)
    if p.is_tenant:
        q = q.join(Lease, Lease.id == MaintenanceTicket.lease_id).where(Lease.locataire_id == p.user_id)
    if statut:
        q = q.where(MaintenanceTicket.statut == statut)
    if lease_id is not None:
        q = q.where(MaintenanceTicket.lease_id == lease_id)
    return list(db.scalars(q.order_by(MaintenanceTicket.id.desc())).all())


@router.post("/tickets", response_model=TicketOut)
async def create_ticket(
    lease_id: int = Form(...),
    titre: str = Form(...),
    description: str = Form(default=""),
    priorite: TicketPriority = Form(default="medium"),
    photos: List[HttpUpload] = File(default=[]),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    must_get_lease(db, space_id=p.space_id, lease_id=lease_id, tenant_id=p.tenant_scope)
    uploads = [
        UploadFile(filename=f.filename or "photo", data=await f.read(), content_type=f.content_type)
        for f in photos
    ]
    with domain_errors():
        return maintenance.create_ticket(
            db,
            lease_id=lease_id,
            created_by=p.user_id,
            titre=titre,
            description=description,
            priorite=priorite,
            photos=uploads,
        )


@router.get("/tickets/{ticket_id}", response_model=TicketDetailOut)
def get_ticket(ticket_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return must_get_ticket(db, space_id=p.space_id, ticket_id=ticket_id, tenant_id=p.tenant_scope)


@router.post("/tickets/{ticket_id}/status", response_model=TicketOut)
def update_status(
    ticket_id: int,
    payload: TicketStatusUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    must_get_ticket(db, space_id=p.space_id, ticket_id=ticket_id)
    with domain_errors():
        return maintenance.update_ticket_status(
            db,
            ticket_id,
            payload.statut,
            actor_id=p.user_id,
            intervention_description=payload.intervention_description,
        )


@router.get("/tickets/{ticket_id}/interventions", response_model=list[InterventionOut])
def list_interventions(ticket_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    ticket = must_get_ticket(db, space_id=p.space_id, ticket_id=ticket_id, tenant_id=p.tenant_scope)
    return list(
        db.scalars(
            select(MaintenanceIntervention)
            .where(MaintenanceIntervention.ticket_id == ticket.id)
            .order_by(MaintenanceIntervention.id)
        ).all()
    )
