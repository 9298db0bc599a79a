"""TTL-capable key-value store shared by the revocation ledger and the
session registry.

Both collaborators live in one store and are separated by key prefix
(``bl:`` for the ledger, ``rt:`` for the registry).  Every entry is
written with a TTL, so nothing here ever needs a cleanup job: an entry
disappears when the token it describes could no longer be used anyway.

Two implementations:

  InMemoryKeyValueStore: per-process dict, for tests and local dev.
  RedisKeyValueStore: shared across API instances (redis.asyncio).

Compare-and-set and compare-and-delete are single atomic operations.  In
Redis they run as Lua scripts (GET + SET/DEL in one server-side step), so
two API instances racing on the same key cannot both win.

Failures of the backing store surface as ``StoreUnavailable``.  Nothing
retries; callers fail closed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Protocol, runtime_checkable

from redis.exceptions import RedisError

from credential_service.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Write *value* under *key*, replacing any previous value."""
        ...

    async def delete(self, key: str) -> None: ...

    async def compare_and_set(
        self, key: str, expected: str, value: str, ttl_seconds: int
    ) -> bool:
        """Replace the value only if it currently equals *expected*."""
        ...

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        """Delete the key only if its value currently equals *expected*."""
        ...

    async def ping(self) -> bool: ...


class InMemoryKeyValueStore:
    """In-memory store with Redis-like TTL semantics.

    Limitation: per-process.  A revocation on instance A is invisible on
    instance B, which is why production runs on Redis.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        # key -> (value, absolute expiry in clock seconds)
        self._data: dict[str, tuple[str, float]] = {}
        self._clock = clock

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        # Mimic Redis TTL behavior: expired keys read as absent
        if expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> str | None:
        return self._live(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def compare_and_set(
        self, key: str, expected: str, value: str, ttl_seconds: int
    ) -> bool:
        # No await between read and write: atomic on the event loop.
        if self._live(key) != expected:
            return False
        self._data[key] = (value, self._clock() + ttl_seconds)
        return True

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        if self._live(key) != expected:
            return False
        del self._data[key]
        return True

    async def ping(self) -> bool:
        return True

    def ttl(self, key: str) -> float | None:
        """Seconds until *key* expires, or None when absent."""
        if self._live(key) is None:
            return None
        return self._data[key][1] - self._clock()

    def clear(self) -> None:
        self._data.clear()


# KEYS[1]=key  ARGV[1]=expected  ARGV[2]=new value  ARGV[3]=ttl seconds
_COMPARE_AND_SET = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
  redis.call('SET', KEYS[1], ARGV[2], 'EX', ARGV[3])
  return 1
end
return 0
"""

# KEYS[1]=key  ARGV[1]=expected
_COMPARE_AND_DELETE = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
  return redis.call('DEL', KEYS[1])
end
return 0
"""


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except RedisError as exc:
        logger.error("Key-value store %s failed: %s", operation, exc)
        raise StoreUnavailable(f"store {operation} failed") from exc


class RedisKeyValueStore:
    """Redis-backed store, shared by every API instance.

    Expects a client created with ``decode_responses=True``.
    """

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        with _store_errors("get"):
            return await self._redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        # SETEX writes value and TTL in one command: a crash can never
        # leave a key without an expiry.
        with _store_errors("set"):
            await self._redis.setex(key, ttl_seconds, value)

    async def delete(self, key: str) -> None:
        with _store_errors("delete"):
            await self._redis.delete(key)

    async def compare_and_set(
        self, key: str, expected: str, value: str, ttl_seconds: int
    ) -> bool:
        with _store_errors("compare_and_set"):
            swapped = await self._redis.eval(
                _COMPARE_AND_SET, 1, key, expected, value, str(ttl_seconds)
            )
        return bool(swapped)

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        with _store_errors("compare_and_delete"):
            deleted = await self._redis.eval(_COMPARE_AND_DELETE, 1, key, expected)
        return bool(deleted)

    async def ping(self) -> bool:
        with _store_errors("ping"):
            return bool(await self._redis.ping())
