"""
stores/memory.py — in-process StateStore.

Single-process only: used for local development and the test suite. Values are
kept as JSON text so callers never share mutable state with the store (same
contract as the redis backend). Store TTLs are checked against the injected
clock on read; there is no sweeper.
"""
import json
from datetime import datetime, timedelta
from typing import AsyncContextManager, Optional

from onboarding.clock import Clock, SystemClock
from onboarding.stores.base import KeyedLocks


class InMemoryStateStore:
    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or SystemClock()
        self._entries: dict[str, tuple[str, Optional[datetime]]] = {}
        self._locks = KeyedLocks()

    async def get(self, key: str) -> Optional[dict]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and self._clock.now() >= expires_at:
            # Store TTL reached: gone, as in redis
            del self._entries[key]
            return None
        return json.loads(raw)

    async def set(self, key: str, value: dict, ttl_seconds: Optional[int] = None) -> None:
        expires_at = None
        if ttl_seconds is not None:
            expires_at = self._clock.now() + timedelta(seconds=ttl_seconds)
        self._entries[key] = (json.dumps(value), expires_at)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def lock(self, key: str) -> AsyncContextManager[None]:
        return self._locks.hold(key)

    async def close(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
