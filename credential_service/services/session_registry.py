"""Session registry: subject -> id of its one currently-valid refresh token.

One key per subject, last write wins.  Two near-simultaneous logins both
get tokens, but only the later ``set_current`` survives; the earlier
login's refresh token fails at its next rotation (registry mismatch), not
immediately.  That single-active-chain behaviour is intended.

Entries carry a TTL equal to the tracked refresh token's remaining
lifetime, so a session record expires in lockstep with its token.
"""

from __future__ import annotations

from credential_service.services.kv_store import KeyValueStore

_PREFIX = "rt:"


class SessionRegistry:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @staticmethod
    def _key(subject: str) -> str:
        return f"{_PREFIX}{subject}"

    async def set_current(self, subject: str, jti: str, ttl_seconds: int) -> None:
        await self._store.set(self._key(subject), jti, ttl_seconds)

    async def get_current(self, subject: str) -> str | None:
        return await self._store.get(self._key(subject))

    async def replace_current(
        self, subject: str, expected: str, jti: str, ttl_seconds: int
    ) -> bool:
        """Advance the chain from *expected* to *jti* atomically.

        Returns False when another writer got there first.
        """
        return await self._store.compare_and_set(
            self._key(subject), expected, jti, ttl_seconds
        )

    async def clear(self, subject: str) -> None:
        """Administrative revocation: the current refresh token stops working."""
        await self._store.delete(self._key(subject))

    async def clear_if_current(self, subject: str, jti: str) -> bool:
        return await self._store.compare_and_delete(self._key(subject), jti)
