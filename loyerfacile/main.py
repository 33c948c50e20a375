# loyerfacile/main.py
from __future__ import annotations

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .config import settings
from .logging_config import configure_logging

from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.auth import router as auth_router
from .routers.audit import router as audit_router

from .routers.properties import router as properties_router
from .routers.rental_requests import router as rental_requests_router
from .routers.leases import router as leases_router
from .routers.payments import router as payments_router
from .routers.maintenance import router as maintenance_router
from .routers.notifications import router as notifications_router

from .routers.finance import router as finance_router
from .routers.reports import router as reports_router

API_PREFIX = "/api"


def _cors_origins() -> list[str]:
    val = settings.cors_allow_origins
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="LoyerFacile", version=settings.app_version)

    # last added runs first: request id is set before the access log line
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Core
    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(auth_router, prefix=API_PREFIX)
    app.include_router(audit_router, prefix=API_PREFIX)

    # Listings + lease lifecycle
    app.include_router(properties_router, prefix=API_PREFIX)
    app.include_router(rental_requests_router, prefix=API_PREFIX)
    app.include_router(leases_router, prefix=API_PREFIX)
    app.include_router(payments_router, prefix=API_PREFIX)
    app.include_router(maintenance_router, prefix=API_PREFIX)
    app.include_router(notifications_router, prefix=API_PREFIX)

    # Finance
    app.include_router(finance_router, prefix=API_PREFIX)
    app.include_router(reports_router, prefix=API_PREFIX)

    if settings.storage_backend == "local":
        os.makedirs(settings.storage_root, exist_ok=True)
        app.mount("/files", StaticFiles(directory=settings.storage_root), name="files")

    return app


app = create_app()
