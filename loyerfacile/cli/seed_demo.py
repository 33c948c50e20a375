# loyerfacile/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ..auth import issue_token
from ..db import Base, SessionLocal, engine
from ..models import AppUser, Lease, ManagementSpace, Property, SpaceMember
from ..services import lease_lifecycle


@dataclass(frozen=True)
class SeedResult:
    space_slug: str
    manager_email: str
    tenant_email: str
    property_id: Optional[int]
    lease_id: Optional[int]
    manager_token: str
    tenant_token: str


def _get_or_create_space(db: Session, slug: str, nom: str) -> ManagementSpace:
    row = db.query(ManagementSpace).filter(ManagementSpace.slug == slug).one_or_none()
    if row:
        return row
    row = ManagementSpace(slug=slug, nom=nom)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _get_or_create_user(db: Session, email: str, full_name: str) -> AppUser:
    row = db.query(AppUser).filter(AppUser.email == email).one_or_none()
    if row:
        return row
    row = AppUser(email=email, full_name=full_name)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _ensure_membership(db: Session, space_id: int, user_id: int, role: str) -> None:
    existing = db.query(SpaceMember).filter(
        SpaceMember.space_id == int(space_id),
        SpaceMember.user_id == int(user_id),
    ).one_or_none()
    if existing:
        return
    db.add(SpaceMember(space_id=int(space_id), user_id=int(user_id), role=str(role)))
    db.commit()


def seed_demo(
    *,
    space_slug: str,
    space_name: str,
    manager_email: str,
    tenant_email: str,
    create_sample_lease: bool = True,
) -> SeedResult:
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        space = _get_or_create_space(db, space_slug, space_name)
        manager = _get_or_create_user(db, manager_email, "Gestionnaire Démo")
        tenant = _get_or_create_user(db, tenant_email, "Locataire Démo")
        _ensure_membership(db, space.id, manager.id, "manager")
        _ensure_membership(db, space.id, tenant.id, "tenant")

        property_id: Optional[int] = None
        lease_id: Optional[int] = None
        if create_sample_lease:
            prop = db.query(Property).filter(Property.space_id == space.id).order_by(Property.id).first()
            if prop is None:
                prop = Property(
                    space_id=space.id,
                    gestionnaire_id=manager.id,
                    titre="Appartement 3 pièces Cocody",
                    adresse="Rue des Jardins",
                    ville="Abidjan",
                    quartier="Cocody",
                    type_propriete="appartement",
                    prix_mensuel=150000,
                    nombre_pieces=3,
                    images=[],
                )
                db.add(prop)
                db.commit()
                db.refresh(prop)
            property_id = int(prop.id)

            lease = db.query(Lease).filter(Lease.property_id == prop.id).order_by(Lease.id).first()
            if lease is None:
                lease = lease_lifecycle.create_direct_lease(
                    db,
                    space_id=space.id,
                    property_id=prop.id,
                    tenant_id=tenant.id,
                    manager_id=manager.id,
                    start_date=date.today().replace(day=1),
                    actor_user_id=manager.id,
                )
            lease_id = int(lease.id)

        return SeedResult(
            space_slug=space.slug,
            manager_email=manager.email,
            tenant_email=tenant.email,
            property_id=property_id,
            lease_id=lease_id,
            manager_token=issue_token(manager.id),
            tenant_token=issue_token(tenant.id),
        )
    finally:
        db.close()
