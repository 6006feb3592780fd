"""
stores/redis_store.py — StateStore backed by redis.asyncio.

  - Values are JSON strings; SETEX when a store TTL is given, plain SET otherwise
  - lock() is redis-py's distributed Lock on lock:{key}, so several API workers
    can share one redis without interleaving read-modify-write on a record
  - The client is created by cache.create_redis_pool() and owned by the app lifespan
"""
import json
import logging
from typing import AsyncContextManager, Optional

import redis.asyncio as aioredis

from onboarding.cache import make_lock_key

logger = logging.getLogger(__name__)


class RedisStateStore:
    def __init__(self, client: aioredis.Redis, lock_timeout_seconds: float = 5.0) -> None:
        self._client = client
        self._lock_timeout = lock_timeout_seconds

    async def get(self, key: str) -> Optional[dict]:
        raw = await self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: dict, ttl_seconds: Optional[int] = None) -> None:
        payload = json.dumps(value)
        if ttl_seconds is None:
            await self._client.set(key, payload)
        else:
            await self._client.setex(key, ttl_seconds, payload)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    def lock(self, key: str) -> AsyncContextManager:
        # timeout: auto-release if a worker dies mid-update
        # blocking_timeout: give up (LockError) rather than queue forever
        return self._client.lock(
            make_lock_key(key),
            timeout=self._lock_timeout,
            blocking_timeout=self._lock_timeout,
        )

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis connection pool closed")
