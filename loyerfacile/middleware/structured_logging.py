from __future__ import annotations

import json
import logging
import time
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings

log = logging.getLogger("loyerfacile.request")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Emits one structured log line per request with:
      request_id, space_slug, user_email, method, path, status_code, latency_ms

    Runs inside RequestIDMiddleware, which sets request.state.request_id.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.time()

        # Headers are good enough for the access line; the real principal is
        # resolved inside handlers.
        space_slug = request.headers.get(settings.dev_header_space_slug)
        user_email = request.headers.get(settings.dev_header_user_email)

        request_id: Optional[str] = getattr(request.state, "request_id", None)

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            latency_ms = int((time.time() - t0) * 1000)
            log.info(
                json.dumps(
                    {
                        "event": "http_request",
                        "request_id": request_id,
                        "method": request.method,
                        "path": request.url.path,
                        "query": str(request.url.query) if request.url.query else "",
                        "status_code": status_code,
                        "latency_ms": latency_ms,
                        "space_slug": space_slug,
                        "user_email": user_email,
                    },
                    default=str,
                )
            )
