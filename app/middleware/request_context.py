"""Request context middleware: request ID, timing, one summary log line.

A content edit fans out into one recompute per learner, all logging from
the same request while other learners' pings log in between.  The
request ID stamped on every record (see app/core/logging.py) makes a
single batch greppable.

The ID lives in a ContextVar rather than a thread-local: many requests
share one event-loop thread, and each asyncio task gets its own copy of
the context.  Tasks spawned by ``asyncio.gather`` inherit the request's
copy, so recalculation workers log with the trainer's request ID.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import learner_id_var, request_id_var

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request ID, times the request, logs completion.

    X-Request-ID is honoured when the client sends one and always echoed
    back on the response.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)
        learner_id_var.set(None)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
