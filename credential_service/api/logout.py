"""Logout endpoint: revoke the refresh token, answer success regardless.

Logout is idempotent and never reveals session state: an invalid,
expired, already-revoked or missing token all get ``{"success": true}``.
What actually happened is logged by the rotation protocol.

Clients that also send their access token as a bearer header get it
revoked as well; otherwise it keeps working until its short TTL runs out.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel

from credential_service.api.dependencies import bearer_scheme, get_services
from credential_service.services.container import Services

router = APIRouter(prefix="/auth", tags=["auth"])


class SuccessOut(BaseModel):
    success: bool = True


def _presented_refresh(body: Any) -> str | None:
    # Any JSON is accepted; anything but a string refresh_token is ignored.
    if not isinstance(body, dict):
        return None
    token = body.get("refresh_token")
    return token if isinstance(token, str) else None


@router.post("/logout", response_model=SuccessOut)
async def logout(
    services: Annotated[Services, Depends(get_services)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    body: Annotated[Any, Body()] = None,
) -> SuccessOut:
    await services.rotation.logout(
        _presented_refresh(body),
        credentials.credentials if credentials is not None else None,
    )
    return SuccessOut()
