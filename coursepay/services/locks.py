"""Per-transaction locks for webhook processing.

The gateway may deliver the same webhook more than once, sometimes
concurrently.  Holding a lock keyed by transaction id while a delivery
is reconciled means a second delivery only starts once the first has
committed, at which point it sees a terminal status and is acknowledged
as a duplicate.

Two implementations, same pattern as the other Redis consumers:

  RedisWebhookLocks     SET NX PX via redis-py's Lock helper, shared by
                        every API instance.  The lock expires on its own
                        if the holder dies.
  InMemoryWebhookLocks  one asyncio.Lock per in-flight transaction id,
                        dropped again once nobody holds or awaits it.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

import redis.asyncio as aioredis

from coursepay.db.redis import redis_pool

LOCK_TIMEOUT_SECONDS = 30
LOCK_WAIT_SECONDS = 10


class WebhookLocks(Protocol):
    def hold(self, transaction_id: str) -> AbstractAsyncContextManager[None]: ...


class InMemoryWebhookLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, transaction_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(transaction_id, asyncio.Lock())
        self._holders[transaction_id] = self._holders.get(transaction_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[transaction_id] -= 1
            if self._holders[transaction_id] == 0:
                del self._holders[transaction_id]
                del self._locks[transaction_id]

    def __len__(self) -> int:
        return len(self._locks)


class RedisWebhookLocks:
    _PREFIX = "lock:webhook:"

    def __init__(self, redis: aioredis.Redis) -> None:  # type: ignore[type-arg]
        self._redis = redis

    @asynccontextmanager
    async def hold(self, transaction_id: str) -> AsyncIterator[None]:
        # Raises redis.exceptions.LockError when the wait times out;
        # the webhook then fails with 500 and the gateway redelivers.
        async with self._redis.lock(
            f"{self._PREFIX}{transaction_id}",
            timeout=LOCK_TIMEOUT_SECONDS,
            blocking_timeout=LOCK_WAIT_SECONDS,
        ):
            yield


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    webhook_locks: WebhookLocks = RedisWebhookLocks(redis_pool)
else:
    webhook_locks = InMemoryWebhookLocks()
