"""Redis connection management.

When REDIS_URL is configured the ledger and the registry share one Redis
connection pool; when it is not (local dev, tests) they fall back to the
in-memory store and no Redis server is needed.

Redis fits this data: every entry is small, hot (read on every protected
request), shared across API instances, and carries a TTL.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def create_redis_client(url: str) -> aioredis.Redis:  # type: ignore[type-arg]
    return aioredis.from_url(
        url,
        decode_responses=True,  # return str instead of bytes
        max_connections=20,
    )


@asynccontextmanager
async def lifespan_redis(client: aioredis.Redis | None) -> AsyncIterator[None]:  # type: ignore[type-arg]
    """Startup/shutdown hook: verify the connection, release it on exit.

    An unreachable Redis does not stop startup.  Requests that need the
    store answer 503 until it comes back; nothing falls back to memory
    once Redis is configured.
    """
    if client is None:
        logger.info("No REDIS_URL configured, using the in-memory token store")
        yield
        return

    try:
        await client.ping()  # type: ignore[misc]  # redis stubs mistype async ping as bool
        logger.info("Redis connected")
    except RedisError:
        logger.exception("Redis connection failed on startup")

    try:
        yield
    finally:
        await client.aclose()
        logger.info("Redis connection pool closed")
