"""Refresh-token rotation: login, refresh and logout as a per-subject state
machine.

States per subject::

    NO_SESSION ──login──▶ ACTIVE(r1) ──refresh(r1)──▶ ACTIVE(r2) ──▶ ...
         ▲                    │
         └──logout / expiry───┘

The session registry holds the ``r`` of ``ACTIVE(r)``; the revocation
ledger holds every refresh id that has been consumed or logged out.

Refresh accepts a token only when it is the subject's current one.  Any
other valid-looking refresh token (already rotated, displaced by a newer
login, logged out) is a replay and is rejected, every time.  Each refresh
token can rotate at most once:

  1. registry says it is current, and the ledger has not seen it
  2. it goes into the ledger
  3. a new pair is minted
  4. the registry advances from the old id to the new one with a
     compare-and-set; if another request advanced it first, this one
     loses and gets ReuseDetected

A consumed token is therefore in the ledger before its successor is
handed out, and two concurrent presentations of the same token cannot
both succeed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from credential_service.core.errors import (
    AuthError,
    ReuseDetected,
    StoreUnavailable,
    UnknownPrincipal,
)
from credential_service.core.metrics import AuthMetrics, NullAuthMetrics
from credential_service.models.principal import Principal
from credential_service.models.tokens import TokenPair
from credential_service.repos.user_repo import UserDirectory
from credential_service.services import events as topics
from credential_service.services.events import EventPublisher, NullEventPublisher
from credential_service.services.revocation_ledger import (
    RevocationLedger,
    remaining_ttl,
)
from credential_service.services.session_registry import SessionRegistry
from credential_service.services.token_service import TokenService

logger = logging.getLogger(__name__)


class RotationProtocol:
    def __init__(
        self,
        *,
        tokens: TokenService,
        registry: SessionRegistry,
        ledger: RevocationLedger,
        directory: UserDirectory,
        events: EventPublisher | None = None,
        metrics: AuthMetrics | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._tokens = tokens
        self._registry = registry
        self._ledger = ledger
        self._directory = directory
        self._events = events or NullEventPublisher()
        self._metrics = metrics or NullAuthMetrics()
        self._clock = clock

    # ------------------------------------------------------------------
    # login: NO_SESSION | ACTIVE(any) -> ACTIVE(new)
    # ------------------------------------------------------------------

    async def login(self, principal: Principal) -> TokenPair:
        """Start a new refresh chain for an already-verified principal.

        Overwrites any existing chain for the subject (last write wins).
        """
        pair = self._tokens.issue_pair(principal)
        await self._registry.set_current(
            principal.subject,
            pair.refresh.jti,
            remaining_ttl(pair.refresh.expires_at, self._clock()),
        )
        self._metrics.record("login", "ok")
        logger.info(
            "Session started  subject=%s jti=%s",
            principal.subject,
            pair.refresh.jti,
            extra={"subject": principal.subject, "jti": pair.refresh.jti},
        )
        await self._publish(
            topics.SESSION_CREATED,
            {"subject": principal.subject, "jti": pair.refresh.jti},
        )
        return pair

    # ------------------------------------------------------------------
    # refresh: ACTIVE(r) --r--> ACTIVE(r')
    # ------------------------------------------------------------------

    async def refresh(self, presented: str) -> tuple[Principal, TokenPair]:
        """Exchange the subject's current refresh token for a new pair.

        Raises an AuthError subclass on any rejection and StoreUnavailable
        when the registry or ledger cannot be reached.
        """
        try:
            claims = self._tokens.verify_refresh(presented)
        except AuthError as exc:
            self._metrics.record("refresh", exc.reason)
            logger.warning("Refresh rejected  reason=%s: %s", exc.reason, exc)
            raise

        subject: str = claims["sub"]
        jti: str = claims["jti"]

        current = await self._registry.get_current(subject)
        if current != jti:
            await self._reuse_detected(subject, jti, current=current)

        if await self._ledger.is_revoked(jti):
            await self._reuse_detected(subject, jti, current=current)

        principal = self._directory.find_principal(subject)
        if principal is None:
            self._metrics.record("refresh", UnknownPrincipal.reason)
            logger.warning("Refresh for unknown or inactive subject=%s", subject)
            raise UnknownPrincipal(f"subject {subject} not found or inactive")

        await self._ledger.revoke(jti, float(claims["exp"]))
        pair = self._tokens.issue_pair(principal)

        advanced = await self._registry.replace_current(
            subject,
            jti,
            pair.refresh.jti,
            remaining_ttl(pair.refresh.expires_at, self._clock()),
        )
        if not advanced:
            # A concurrent refresh with the same token committed first.
            await self._reuse_detected(subject, jti, current=None)

        self._metrics.record("refresh", "ok")
        logger.info(
            "Refresh token rotated  subject=%s old_jti=%s new_jti=%s",
            subject,
            jti,
            pair.refresh.jti,
            extra={"subject": subject, "jti": pair.refresh.jti},
        )
        await self._publish(
            topics.SESSION_ROTATED,
            {"subject": subject, "old_jti": jti, "jti": pair.refresh.jti},
        )
        return principal, pair

    async def _reuse_detected(
        self, subject: str, jti: str, *, current: str | None
    ) -> None:
        self._metrics.record("refresh", ReuseDetected.reason)
        logger.warning(
            "Refresh token reuse or revoked token  subject=%s jti=%s active_session=%s",
            subject,
            jti,
            "yes" if current else "no",
            extra={
                "subject": subject,
                "jti": jti,
                "security_event": "refresh_token_reuse",
            },
        )
        await self._publish(
            topics.REFRESH_REUSE_DETECTED, {"subject": subject, "jti": jti}
        )
        raise ReuseDetected(f"refresh token {jti} is not current for {subject}")

    # ------------------------------------------------------------------
    # logout: ACTIVE(r) --r--> NO_SESSION
    # ------------------------------------------------------------------

    async def logout(
        self,
        presented_refresh: str | None,
        presented_access: str | None = None,
    ) -> None:
        """Revoke the presented tokens.  Never raises.

        Only signature and type are checked on the refresh token; an
        expired one is still revoked.  The registry entry is cleared if it
        still names this refresh token, so a newer login's chain is left
        alone.  The access token is revoked only when presented; otherwise
        it stays valid until it expires.
        """
        if presented_refresh:
            await self._logout_refresh(presented_refresh)
        else:
            logger.debug("Logout without refresh token")

        if presented_access:
            await self._logout_access(presented_access)

    async def _logout_refresh(self, presented: str) -> None:
        try:
            claims = self._tokens.verify_refresh(presented, verify_exp=False)
        except AuthError as exc:
            self._metrics.record("logout", "ignored")
            logger.info("Logout with unverifiable refresh token: %s", exc)
            return

        subject: str = claims["sub"]
        jti: str = claims["jti"]
        try:
            await self._ledger.revoke(jti, float(claims["exp"]))
            cleared = await self._registry.clear_if_current(subject, jti)
        except StoreUnavailable:
            self._metrics.record("logout", "store_unavailable")
            logger.error(
                "Logout could not revoke refresh token  subject=%s jti=%s",
                subject,
                jti,
            )
            return

        self._metrics.record("logout", "ok")
        logger.info(
            "Refresh token revoked on logout  subject=%s jti=%s session_cleared=%s",
            subject,
            jti,
            cleared,
            extra={"subject": subject, "jti": jti},
        )
        if cleared:
            await self._publish(
                topics.SESSION_REVOKED,
                {"subject": subject, "jti": jti, "cause": "logout"},
            )

    async def _logout_access(self, presented: str) -> None:
        try:
            claims = self._tokens.verify_access(presented)
        except AuthError as exc:
            # Expired or invalid access tokens already don't work.
            logger.debug("Logout access token not revoked: %s", exc)
            return

        jti = claims.get("jti")
        if not jti:
            return
        try:
            await self._ledger.revoke(jti, float(claims["exp"]))
        except StoreUnavailable:
            logger.error("Logout could not revoke access token  jti=%s", jti)
            return
        logger.info("Access token revoked on logout  jti=%s", jti)

    # ------------------------------------------------------------------
    # administrative revocation: ACTIVE(r) -> NO_SESSION
    # ------------------------------------------------------------------

    async def revoke_sessions(self, subject: str) -> None:
        """Drop the subject's refresh chain.

        The current refresh token fails its next rotation with
        ReuseDetected.  Access tokens already issued run to expiry.
        """
        await self._registry.clear(subject)
        self._metrics.record("session_revoke", "ok")
        logger.info("Session revoked by administrator  subject=%s", subject)
        await self._publish(
            topics.SESSION_REVOKED, {"subject": subject, "cause": "admin"}
        )

    async def _publish(self, topic: str, payload: dict[str, Any]) -> None:
        # The state change is already committed; a failing subscriber must
        # not turn it into an error for the caller.
        try:
            await self._events.publish(topic, payload)
        except Exception:
            logger.exception("Event publish failed  topic=%s", topic)
