# loyerfacile/routers/properties.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_staff
from ..db import get_db
from ..domain.audit import emit_audit
from ..models import Lease, Property
from ..schemas import MapOut, MapPointOut, PropertyCreate, PropertyOut, PropertyUpdate
from ..services.geocoding import ensure_coordinates
from ..services.ownership import must_get_property
from ..services.realtime import hub

router = APIRouter(prefix="/properties", tags=["properties"])


@router.get("", response_model=list[PropertyOut])
def list_properties(
    statut: Optional[str] = Query(default=None),
    ville: Optional[str] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    q = select(Property).where(Property.space_id == p.space_id)
    if statut:
        q = q.where(Property.statut == statut)
    if ville:
        q = q.where(func.lower(Property.ville) == ville.strip().lower())
    return list(db.scalars(q.order_by(Property.id.desc()).limit(limit)).all())


@router.post("", response_model=PropertyOut)
def create_property(
    payload: PropertyCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    row = Property(space_id=p.space_id, gestionnaire_id=p.user_id, **payload.model_dump())
    db.add(row)
    db.commit()
    db.refresh(row)

    emit_audit(
        db,
        space_id=p.space_id,
        actor_user_id=p.user_id,
        action="property.create",
        entity_type="Property",
        entity_id=str(row.id),
        after=row.model_dump(),
    )
    hub.publish("properties", "insert", row.id, space_id=p.space_id)
    return row


@router.get("/map", response_model=MapOut)
def property_map(
    geocode: bool = Query(default=True),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    """Properties with coordinates; missing ones are geocoded on the way."""
    rows = list(db.scalars(select(Property).where(Property.space_id == p.space_id).order_by(Property.id)).all())
    run = ensure_coordinates(db, rows) if geocode else None

    points = [
        MapPointOut(
            id=r.id,
            titre=r.titre,
            prix_mensuel=r.prix_mensuel,
            statut=r.statut,
            latitude=r.latitude,
            longitude=r.longitude,
        )
        for r in rows
        if r.latitude is not None and r.longitude is not None
    ]
    return MapOut(
        points=points,
        geocoded=run.updated if run else [],
        failed=run.failed if run else [],
    )


@router.get("/{property_id}", response_model=PropertyOut)
def get_property(property_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return must_get_property(db, space_id=p.space_id, property_id=property_id)


@router.patch("/{property_id}", response_model=PropertyOut)
def update_property(
    property_id: int,
    payload: PropertyUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    row = must_get_property(db, space_id=p.space_id, property_id=property_id)
    before = row.model_dump()

    changes = payload.model_dump(exclude_unset=True)
    for k, v in changes.items():
        setattr(row, k, v)
    if {"adresse", "ville", "quartier"} & set(changes) and not {"latitude", "longitude"} & set(changes):
        # address moved; re-geocode lazily on the next map view
        row.latitude = None
        row.longitude = None
    db.commit()
    db.refresh(row)

    emit_audit(
        db,
        space_id=p.space_id,
        actor_user_id=p.user_id,
        action="property.update",
        entity_type="Property",
        entity_id=str(row.id),
        before=before,
        after=row.model_dump(),
    )
    hub.publish("properties", "update", row.id, space_id=p.space_id)
    return row


@router.delete("/{property_id}", response_model=dict)
def delete_property(property_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    row = must_get_property(db, space_id=p.space_id, property_id=property_id)
    lease_count = db.scalar(select(func.count(Lease.id)).where(Lease.property_id == row.id)) or 0
    if lease_count:
        raise HTTPException(status_code=409, detail="property has leases; terminate or archive instead")

    before = row.model_dump()
    db.delete(row)
    db.commit()

    emit_audit(
        db,
        space_id=p.space_id,
        actor_user_id=p.user_id,
        action="property.delete",
        entity_type="Property",
        entity_id=str(property_id),
        before=before,
    )
    hub.publish("properties", "delete", property_id, space_id=p.space_id)
    return {"ok": True, "id": property_id}
