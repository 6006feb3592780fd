"""
stores/base.py — the keyed, TTL-aware table every state service is written against.

Values are JSON-compatible dicts. A store TTL makes the physical record vanish;
it is independent of the logical windows (session expiry, OTP lock) that the
services evaluate themselves.

Mutations in the services follow one shape:

    async with store.lock(key):
        record = await store.get(key)
        ...
        await store.set(key, record, ttl_seconds=...)

lock() guards a single key. No operation ever holds two locks.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Optional, Protocol


class StateStore(Protocol):
    async def get(self, key: str) -> Optional[dict]:
        """Return the stored dict, or None if absent or past its store TTL."""
        ...

    async def set(self, key: str, value: dict, ttl_seconds: Optional[int] = None) -> None:
        """Write value, replacing any previous one. ttl_seconds=None keeps it until deleted."""
        ...

    async def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""
        ...

    def lock(self, key: str) -> AsyncContextManager[None]:
        """Exclusive section for read-modify-write on one key."""
        ...

    async def close(self) -> None:
        ...


class KeyedLocks:
    """
    One asyncio.Lock per key, created on first use and dropped once nobody
    holds or waits on it, so the table does not grow with every key ever seen.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
