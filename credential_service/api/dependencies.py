from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from credential_service.middleware.request_context import subject_var
from credential_service.models.principal import Principal
from credential_service.services.container import Services

logger = logging.getLogger(__name__)

# auto_error=False: a missing header must produce our generic 401, not
# FastAPI's own "Not authenticated" body.
bearer_scheme = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    return request.app.state.services


async def require_principal(
    request: Request,
    services: Annotated[Services, Depends(get_services)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Principal:
    """Authenticate the bearer token and attach the principal to the request.

    Used as a FastAPI dependency on every protected endpoint.  Failures
    propagate as AuthError / StoreUnavailable and are rendered by the
    handlers in ``credential_service.api.errors``.
    """
    raw_token = credentials.credentials if credentials is not None else None
    principal = await services.authenticator.authenticate(raw_token)
    request.state.principal = principal
    subject_var.set(principal.subject)
    return principal


def require_role(role: str):
    """Dependency factory: demand a specific role.

    Usage: Depends(require_role("admin"))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_principal)],
    ) -> Principal:
        if not principal.has_role(role):
            logger.warning(
                "Access denied: subject=%s role=%s required=%s",
                principal.subject,
                principal.role,
                role,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard
