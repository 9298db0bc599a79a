"""Refresh endpoint: exchange the current refresh token for a new pair.

All rotation rules live in ``RotationProtocol.refresh``; this module only
maps the HTTP contract onto it:

  400  refresh_token missing
  401  invalid, expired, wrong type, reused or revoked (one generic body)
  503  token store unreachable
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from credential_service.api.dependencies import get_services
from credential_service.api.login import TokenPairOut
from credential_service.services.container import Services

router = APIRouter(prefix="/auth", tags=["auth"])


class RefreshIn(BaseModel):
    refresh_token: str | None = None


@router.post("/refresh", response_model=TokenPairOut)
async def refresh(
    services: Annotated[Services, Depends(get_services)],
    payload: RefreshIn | None = None,
) -> TokenPairOut:
    if payload is None or not payload.refresh_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="refresh_token required",
        )

    _principal, pair = await services.rotation.refresh(payload.refresh_token)
    return TokenPairOut.from_pair(pair)
