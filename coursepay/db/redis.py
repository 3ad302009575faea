"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured a real connection pool
is created at import time; when it is unset (local dev, tests) the
pool is None and consumers fall back to in-process implementations.

The service uses Redis for one thing: a distributed lock keyed by
transaction id, so that webhook deliveries for the same payment are
processed one at a time across every API instance.  Redis's SET NX PX
gives a lock with a built-in expiry, which means a crashed worker can
never wedge a transaction forever.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from coursepay.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


async def ping_redis() -> bool:
    """True when Redis answers PING."""
    if redis_pool is None:
        return False
    return bool(await redis_pool.ping())  # type: ignore[misc]


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook for Redis, mirrors lifespan_db()."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured, webhook locks are process-local")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # Keep serving; lock acquisition will fail loudly per request.
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
