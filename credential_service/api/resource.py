from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from credential_service.api.dependencies import require_principal
from credential_service.models.principal import Principal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["resource"])


class PrincipalOut(BaseModel):
    subject: str
    role: str
    email: str | None = None


@router.get("/resource/me", response_model=PrincipalOut)
async def get_me(
    principal: Annotated[Principal, Depends(require_principal)],
) -> PrincipalOut:
    """Protected endpoint: requires a valid, unrevoked access token.

    Returns the principal the request authenticator resolved from the
    user directory.
    """
    logger.info("Resource accessed by subject=%s", principal.subject)
    return PrincipalOut(
        subject=principal.subject, role=principal.role, email=principal.email
    )
