from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from credential_service.api.dependencies import get_services, require_role
from credential_service.api.logout import SuccessOut
from credential_service.models.principal import Principal
from credential_service.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/sessions/{subject}/revoke", response_model=SuccessOut)
async def admin_revoke_sessions(
    subject: str,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    services: Annotated[Services, Depends(get_services)],
) -> SuccessOut:
    """Clear a subject's refresh chain; its next refresh attempt is rejected."""
    logger.info(
        "Admin session revocation  admin=%s subject=%s", principal.subject, subject
    )
    await services.rotation.revoke_sessions(subject)
    return SuccessOut()
