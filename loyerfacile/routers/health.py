# loyerfacile/routers/health.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db

router = APIRouter(tags=["health"])


@router.get("/health", response_model=dict)
def health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {
        "status": "ok",
        "version": settings.app_version,
        "env": settings.app_env,
        "payment_simulation_mode": settings.payment_simulation_mode,
        "storage_backend": settings.storage_backend,
    }
