"""Request authenticator: access token in, principal out.

Per protected request:
  1. verify the signature against the access key ring (active, then legacy)
  2. confirm ``typ == access`` and the access audience
  3. if the token carries a jti, reject it when the ledger has it
  4. resolve the principal from the user directory by subject

Every failure raises an ``AuthError``; the HTTP layer turns all of them
into one identical 401.  Store outages raise ``StoreUnavailable`` and are
never treated as "not revoked".
"""

from __future__ import annotations

import logging

from credential_service.core.errors import (
    AuthError,
    MalformedToken,
    RevokedToken,
    UnknownPrincipal,
)
from credential_service.core.metrics import AuthMetrics, NullAuthMetrics
from credential_service.models.principal import Principal
from credential_service.repos.user_repo import UserDirectory
from credential_service.services.revocation_ledger import RevocationLedger
from credential_service.services.token_service import TokenService

logger = logging.getLogger(__name__)


class RequestAuthenticator:
    def __init__(
        self,
        *,
        tokens: TokenService,
        ledger: RevocationLedger,
        directory: UserDirectory,
        metrics: AuthMetrics | None = None,
    ) -> None:
        self._tokens = tokens
        self._ledger = ledger
        self._directory = directory
        self._metrics = metrics or NullAuthMetrics()

    async def authenticate(self, raw_token: str | None) -> Principal:
        try:
            principal = await self._authenticate(raw_token)
        except AuthError as exc:
            self._metrics.record("authenticate", exc.reason)
            logger.warning("Access token rejected  reason=%s: %s", exc.reason, exc)
            raise
        self._metrics.record("authenticate", "ok")
        logger.debug("Token validated for subject=%s role=%s", principal.subject, principal.role)
        return principal

    async def _authenticate(self, raw_token: str | None) -> Principal:
        if not raw_token:
            raise MalformedToken("missing bearer token")

        claims = self._tokens.verify_access(raw_token)

        jti = claims.get("jti")
        if jti and await self._ledger.is_revoked(jti):
            raise RevokedToken(f"access token {jti} revoked")

        principal = self._directory.find_principal(claims["sub"])
        if principal is None:
            raise UnknownPrincipal(f"subject {claims['sub']} not found or inactive")
        return principal
