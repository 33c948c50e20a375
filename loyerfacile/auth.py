# loyerfacile/auth.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import AppUser, ManagementSpace, SpaceMember


ROLES = ("admin", "manager", "owner", "tenant")
STAFF_ROLES = ("admin", "manager", "owner")


@dataclass(frozen=True)
class Principal:
    space_id: int
    space_slug: str
    user_id: int
    email: str
    role: str  # admin | manager | owner | tenant

    @property
    def is_tenant(self) -> bool:
        return self.role == "tenant"

    @property
    def tenant_scope(self) -> Optional[int]:
        """user id to filter lease-bound rows by; None for staff."""
        return self.user_id if self.is_tenant else None


# -------------------------
# JWT helpers
# -------------------------
JWT_ALGORITHM = "HS256"


def issue_token(user_id: int, *, minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(int(user_id)),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=int(minutes or settings.jwt_exp_minutes))).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    try:
        return dict(jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM]))
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


# -------------------------
# Space + membership helpers
# -------------------------
def _resolve_space(db: Session, space_slug: str) -> ManagementSpace:
    space = db.scalar(select(ManagementSpace).where(ManagementSpace.slug == space_slug))
    if space:
        return space
    raise HTTPException(status_code=401, detail="Unknown space")


def _get_membership(db: Session, space_id: int, user_id: int) -> SpaceMember | None:
    return db.scalar(
        select(SpaceMember).where(SpaceMember.space_id == space_id, SpaceMember.user_id == user_id)
    )


def _principal_from_user(db: Session, *, space_slug: str, user: AppUser) -> Principal:
    space = _resolve_space(db, space_slug)
    mem = _get_membership(db, space_id=int(space.id), user_id=int(user.id))
    if mem is None:
        raise HTTPException(status_code=403, detail="Not a member of this space")
    return Principal(
        space_id=int(space.id),
        space_slug=str(space.slug),
        user_id=int(user.id),
        email=str(user.email),
        role=str(mem.role),
    )


def _dev_principal(request: Request, db: Session, space_slug: str) -> Principal:
    email = (request.headers.get(settings.dev_header_user_email) or "").strip().lower()
    role_hint = (request.headers.get(settings.dev_header_user_role) or "manager").strip().lower()
    if not email:
        raise HTTPException(status_code=401, detail="Missing X-User-Email for dev auth")

    space = db.scalar(select(ManagementSpace).where(ManagementSpace.slug == space_slug))
    if space is None and settings.dev_auto_provision:
        space = ManagementSpace(slug=space_slug, nom=space_slug)
        db.add(space)
        db.commit()
        db.refresh(space)

    user = db.scalar(select(AppUser).where(AppUser.email == email))
    if user is None and settings.dev_auto_provision:
        user = AppUser(email=email, full_name=email.split("@")[0])
        db.add(user)
        db.commit()
        db.refresh(user)

    if space is None or user is None:
        raise HTTPException(status_code=401, detail="Dev auth could not provision user/space")

    mem = _get_membership(db, space_id=int(space.id), user_id=int(user.id))
    if mem is None:
        if not settings.dev_auto_provision:
            raise HTTPException(status_code=403, detail="Not a member of this space")
        mem = SpaceMember(space_id=int(space.id), user_id=int(user.id), role=role_hint if role_hint in ROLES else "manager")
        db.add(mem)
        db.commit()

    return Principal(
        space_id=int(space.id),
        space_slug=str(space.slug),
        user_id=int(user.id),
        email=str(user.email),
        role=str(mem.role),
    )


# -------------------------
# get_principal
# -------------------------
def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    x_space_slug: Optional[str] = Header(default=None, alias="X-Space-Slug"),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Auth modes supported (in priority order):
      1) Authorization: Bearer <token>
      2) dev header spoofing (ONLY if settings.auth_mode == "dev")
    """
    space_slug = str(x_space_slug or "").strip()
    if not space_slug:
        raise HTTPException(status_code=401, detail="Missing X-Space-Slug (active space context).")

    token = None
    if authorization and str(authorization).lower().startswith("bearer "):
        token = str(authorization).split(" ", 1)[1].strip()

    if token:
        claims = decode_token(token)
        sub = str(claims.get("sub") or "")
        if not sub.isdigit():
            raise HTTPException(status_code=401, detail="Token missing sub")

        user = db.get(AppUser, int(sub))
        if user is None:
            raise HTTPException(status_code=401, detail="Unknown user")
        return _principal_from_user(db, space_slug=space_slug, user=user)

    if settings.auth_mode == "dev":
        return _dev_principal(request, db, space_slug)

    raise HTTPException(status_code=401, detail="Not authenticated")


def require_staff(p: Principal = Depends(get_principal)) -> Principal:
    if p.role not in STAFF_ROLES:
        raise HTTPException(status_code=403, detail="Requires manager, owner or admin role")
    return p


def require_tenant(p: Principal = Depends(get_principal)) -> Principal:
    if not p.is_tenant:
        raise HTTPException(status_code=403, detail="Requires tenant role")
    return p
