"""Request context middleware: request id, timing and the access log.

- Propagates ``X-Request-ID`` or generates one, and exposes it to the log
  formatter through ``request_id_var``
- Adds ``X-Response-Time``
- Logs every request as one structured record
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..core.logging_config import request_id_var

logger = logging.getLogger(__name__)

# Editors auto-save every few seconds; keep those out of INFO.
_QUIET_METHODS = frozenset({"PUT"})
_QUIET_SUFFIX = "/edit"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Single middleware handling request id, timing and request logging."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request_id_var.set(rid)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        response.headers["X-Request-ID"] = rid
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        quiet = (
            request.method in _QUIET_METHODS
            and request.url.path.endswith(_QUIET_SUFFIX)
            and response.status_code < 400
        )
        logger.log(
            logging.DEBUG if quiet else logging.INFO,
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response
