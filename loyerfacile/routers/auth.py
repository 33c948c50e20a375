# loyerfacile/routers/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_staff
from ..db import get_db
from ..domain.audit import emit_audit
from ..models import AppUser, SpaceMember
from ..schemas import MemberCreate, MemberOut, PrincipalOut
from ..services.read_models import load_space_members

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=PrincipalOut)
def me(p: Principal = Depends(get_principal)):
    return p


@router.get("/members", response_model=list[MemberOut])
def list_members(db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    return load_space_members(db, space_id=p.space_id)


@router.post("/members", response_model=MemberOut)
def add_member(payload: MemberCreate, db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    """
    Attach a user to the active space, creating the user on first sight.
    Tenants must be members before a lease can name them.
    """
    email = payload.email.strip().lower()
    user = db.scalar(select(AppUser).where(AppUser.email == email))
    if user is None:
        user = AppUser(email=email, full_name=payload.full_name, phone=payload.phone)
        db.add(user)
        db.flush()

    existing = db.scalar(
        select(SpaceMember).where(SpaceMember.space_id == p.space_id, SpaceMember.user_id == user.id)
    )
    if existing is not None:
        raise HTTPException(status_code=409, detail="user is already a member of this space")

    mem = SpaceMember(space_id=p.space_id, user_id=int(user.id), role=payload.role)
    db.add(mem)
    db.commit()
    db.refresh(mem)

    emit_audit(
        db,
        space_id=p.space_id,
        actor_user_id=p.user_id,
        action="member.add",
        entity_type="SpaceMember",
        entity_id=str(mem.id),
        after=mem.model_dump(),
    )
    return MemberOut(
        user_id=int(user.id),
        full_name=user.full_name,
        email=user.email,
        role=mem.role,
        created_at=mem.created_at,
    )
