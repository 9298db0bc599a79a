"""Translate credential-core exceptions into HTTP responses.

Every authentication failure gets the same status, body and header, so a
caller cannot tell an expired token from a forged one or a replayed one.
The distinguishing detail has already been logged where it was raised.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from credential_service.core.errors import AuthError, StoreUnavailable

logger = logging.getLogger(__name__)

GENERIC_AUTH_DETAIL = "Invalid or expired credentials"
UNAVAILABLE_DETAIL = "Service temporarily unavailable"


def unauthorized_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": GENERIC_AUTH_DETAIL},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _auth_error_handler(_request: Request, _exc: Exception) -> JSONResponse:
    return unauthorized_response()


async def _store_unavailable_handler(request: Request, _exc: Exception) -> JSONResponse:
    logger.error("Token store unavailable, failing closed  path=%s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": UNAVAILABLE_DETAIL},
        headers={"Retry-After": "5"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, _auth_error_handler)
    app.add_exception_handler(StoreUnavailable, _store_unavailable_handler)
