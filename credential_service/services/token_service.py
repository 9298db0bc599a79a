"""Credential Issuer: mints and verifies access and refresh JWTs (ES256).

Access and refresh tokens are signed by *independent* key rings and carry
different audiences and ``typ`` claims.  A refresh token presented as an
access token fails the signature check first; if an operator ever points
both rings at the same key, the audience and ``typ`` checks still keep the
two kinds apart.

Refresh tokens carry no role.  The refresh path resolves the principal
from the user directory, so a role change takes effect on the next
rotation.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

import jwt

from credential_service.core.errors import (
    ExpiredToken,
    MalformedToken,
    SigningError,
    TypeMismatch,
)
from credential_service.models.principal import Principal
from credential_service.models.tokens import IssuedToken, TokenPair, TokenType
from credential_service.services.keys import KeyRing, VerifyResult, VerifyStatus

logger = logging.getLogger(__name__)

ACCESS_AUDIENCE = "credential-service-access"
REFRESH_AUDIENCE = "credential-service-refresh"

_ACCESS_REQUIRED = ("sub", "exp", "iat", "typ")
_REFRESH_REQUIRED = ("sub", "exp", "iat", "typ", "jti")


class TokenService:
    def __init__(
        self,
        *,
        access_keys: KeyRing,
        refresh_keys: KeyRing,
        issuer: str = "credential-service",
        access_ttl_seconds: int = 15 * 60,
        refresh_ttl_seconds: int = 7 * 24 * 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._access_keys = access_keys
        self._refresh_keys = refresh_keys
        self._issuer = issuer
        self._access_ttl = access_ttl_seconds
        self._refresh_ttl = refresh_ttl_seconds
        self._clock = clock

    @property
    def issuer(self) -> str:
        return self._issuer

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def issue_access(self, principal: Principal) -> IssuedToken:
        claims: dict[str, Any] = {"role": principal.role}
        if principal.email:
            claims["email"] = principal.email
        return self._issue(
            self._access_keys,
            sub=principal.subject,
            typ="access",
            audience=ACCESS_AUDIENCE,
            ttl=self._access_ttl,
            extra=claims,
        )

    def issue_refresh(self, principal: Principal) -> IssuedToken:
        return self._issue(
            self._refresh_keys,
            sub=principal.subject,
            typ="refresh",
            audience=REFRESH_AUDIENCE,
            ttl=self._refresh_ttl,
        )

    def issue_pair(self, principal: Principal) -> TokenPair:
        return TokenPair(
            access=self.issue_access(principal),
            refresh=self.issue_refresh(principal),
        )

    def _issue(
        self,
        keys: KeyRing,
        *,
        sub: str,
        typ: TokenType,
        audience: str,
        ttl: int,
        extra: dict[str, Any] | None = None,
    ) -> IssuedToken:
        now = int(self._clock())
        jti = str(uuid.uuid4())
        payload: dict[str, Any] = {
            "sub": sub,
            "typ": typ,
            "jti": jti,
            "iss": self._issuer,
            "aud": audience,
            "iat": now,
            "exp": now + ttl,
            **(extra or {}),
        }
        try:
            token = keys.sign(payload)
        except (jwt.PyJWTError, TypeError, ValueError) as exc:
            logger.critical("Token signing failed  typ=%s kid=%s", typ, keys.signing_key.kid)
            raise SigningError(f"cannot sign {typ} token") from exc
        return IssuedToken(token=token, jti=jti, expires_at=now + ttl)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_access(self, token: str) -> dict[str, Any]:
        """Return the claims of a valid access token.

        Raises MalformedToken, ExpiredToken or TypeMismatch.
        """
        result = self._access_keys.verify(
            token,
            issuer=self._issuer,
            audience=ACCESS_AUDIENCE,
            required=_ACCESS_REQUIRED,
        )
        return _claims_or_raise(result, expected_typ="access")

    def verify_refresh(self, token: str, *, verify_exp: bool = True) -> dict[str, Any]:
        """Return the claims of a refresh token.

        ``verify_exp=False`` is for logout, where a token on its way out
        may already be past its expiry.
        """
        result = self._refresh_keys.verify(
            token,
            issuer=self._issuer,
            audience=REFRESH_AUDIENCE,
            required=_REFRESH_REQUIRED,
            verify_exp=verify_exp,
        )
        return _claims_or_raise(result, expected_typ="refresh")


def _claims_or_raise(result: VerifyResult, *, expected_typ: TokenType) -> dict[str, Any]:
    if result.status is VerifyStatus.EXPIRED:
        raise ExpiredToken(f"{expected_typ} token expired ({result.detail})")
    if result.status is VerifyStatus.WRONG_AUDIENCE:
        raise TypeMismatch(f"expected {expected_typ} audience ({result.detail})")
    if not result.ok or result.claims is None:
        raise MalformedToken(f"{result.status.value}: {result.detail}")

    claims = result.claims
    if claims.get("typ") != expected_typ:
        raise TypeMismatch(f"expected typ={expected_typ}, got {claims.get('typ')!r}")
    return claims
