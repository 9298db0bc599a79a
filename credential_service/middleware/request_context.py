"""Request context middleware: request ids and authenticated subjects in logs.

Every request gets an id (client-supplied ``X-Request-ID`` or a fresh
uuid4).  Once the access token has been verified, the authenticated
subject joins it.  Both live in ``ContextVar``s, which are per-task in
async code, so concurrent requests on one thread never see each other's
values.  A root logging filter copies them onto every LogRecord.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
subject_var: ContextVar[str] = ContextVar("subject", default="-")


class _RequestContextFilter(logging.Filter):
    """Attach request_id and subject to every LogRecord.

    Values passed explicitly via ``extra=`` win over the context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        if not hasattr(record, "subject"):
            record.subject = subject_var.get("-")  # type: ignore[attr-defined]
        return True


def install_log_filter() -> None:
    """Install the filter on the root logger's handlers, once."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if not any(isinstance(f, _RequestContextFilter) for f in handler.filters):
            handler.addFilter(_RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, time the request, log one summary line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)
        subject_var.set("-")

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        principal = getattr(request.state, "principal", None)
        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "subject": principal.subject if principal is not None else "-",
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
