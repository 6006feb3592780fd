"""
stores/sql_store.py — StateStore backed by the state_entries table.

  - One short transaction per call; get-then-add/update upsert (ORM-only, no raw SQL)
  - expires_at is compared with the injected clock on read; expired rows are
    deleted lazily, there is no sweeper job
  - lock() is process-local (asyncio), so run a single API worker against a
    given database, or use the redis backend for multi-worker deployments
"""
import logging
from datetime import timedelta
from typing import AsyncContextManager, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from onboarding.clock import Clock, SystemClock, ensure_utc
from onboarding.models.state_entry import StateEntryORM
from onboarding.stores.base import KeyedLocks

logger = logging.getLogger(__name__)


class SqlStateStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Optional[Clock] = None,
        engine: Optional[AsyncEngine] = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._engine = engine
        self._locks = KeyedLocks()

    async def get(self, key: str) -> Optional[dict]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(StateEntryORM).where(StateEntryORM.key == key)
            )
            orm = result.scalar_one_or_none()
            if orm is None:
                return None
            if orm.expires_at is not None and self._clock.now() >= ensure_utc(orm.expires_at):
                await db.delete(orm)
                await db.commit()
                logger.debug("Evicted expired state entry key=%s", key)
                return None
            return dict(orm.value)

    async def set(self, key: str, value: dict, ttl_seconds: Optional[int] = None) -> None:
        expires_at = None
        if ttl_seconds is not None:
            expires_at = self._clock.now() + timedelta(seconds=ttl_seconds)

        async with self._session_factory() as db:
            result = await db.execute(
                select(StateEntryORM).where(StateEntryORM.key == key)
            )
            orm = result.scalar_one_or_none()
            if orm is None:
                orm = StateEntryORM(key=key, value=value, expires_at=expires_at)
                db.add(orm)
            else:
                orm.value = value  # new dict object, so SQLAlchemy marks the column dirty
                orm.expires_at = expires_at
            await db.commit()

    async def delete(self, key: str) -> None:
        async with self._session_factory() as db:
            await db.execute(delete(StateEntryORM).where(StateEntryORM.key == key))
            await db.commit()

    def lock(self, key: str) -> AsyncContextManager[None]:
        return self._locks.hold(key)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database engine disposed")
