"""Revocation ledger: token ids that must be rejected before they expire.

JWTs are valid until ``exp``; the server cannot un-issue one.  The ledger
is the small stateful layer that makes early invalidation possible.  It
records *only* revoked ids (consumed refresh tokens, logged-out tokens),
never live ones.

Each entry's TTL is ``max(1, ceil(expires_at - now))``: it lives exactly as long
as the token it blocks could still be replayed, then vanishes on its own.
Once both have expired, the signature check rejects the token anyway.
Entries are never deleted early.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable

from credential_service.core.metrics import AuthMetrics, NullAuthMetrics
from credential_service.services.kv_store import KeyValueStore

_PREFIX = "bl:"


def remaining_ttl(expires_at: float, now: float) -> int:
    """Whole seconds left until *expires_at*, rounded up, never less than one."""
    return max(1, math.ceil(expires_at - now))


class RevocationLedger:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        metrics: AuthMetrics | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._metrics = metrics or NullAuthMetrics()
        self._clock = clock

    async def revoke(self, jti: str, expires_at: float) -> None:
        """Blacklist *jti* until the token would have expired."""
        await self._store.set(
            f"{_PREFIX}{jti}", "1", remaining_ttl(expires_at, self._clock())
        )

    async def is_revoked(self, jti: str) -> bool:
        revoked = await self._store.get(f"{_PREFIX}{jti}") is not None
        self._metrics.record("ledger_check", "revoked" if revoked else "valid")
        return revoked
