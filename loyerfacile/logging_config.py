from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import settings
from .middleware.request_id import get_request_id

# extra={...} keys copied onto the JSON line when a call site passes them
STRUCTURED_EXTRAS = ("space_id", "user_id", "lease_id", "payment_id", "ticket_id", "property_id")


class JsonFormatter(logging.Formatter):
    """One JSON object per line, tagged with the current request id."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "env": settings.app_env,
        }

        rid = get_request_id()
        if rid:
            line["request_id"] = rid

        line.update({k: getattr(record, k) for k in STRUCTURED_EXTRAS if hasattr(record, k)})

        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)

        # French labels and names stay readable in the log stream
        return json.dumps(line, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    """Route the API, the Celery worker and the CLI through the same JSON handler."""
    level = (level or settings.log_level or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(level)
    # request lines carry the Mapbox token in the query string
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel((settings.sql_log_level or "WARNING").upper())
