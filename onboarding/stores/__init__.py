"""
stores — StateStore backends and the factory that picks one from settings.
"""
import logging
from typing import Optional

from onboarding.clock import Clock
from onboarding.config import Settings
from onboarding.stores.base import KeyedLocks, StateStore
from onboarding.stores.memory import InMemoryStateStore

logger = logging.getLogger(__name__)

__all__ = ["KeyedLocks", "StateStore", "InMemoryStateStore", "build_store"]


async def build_store(settings: Settings, clock: Optional[Clock] = None) -> StateStore:
    """
    Build the backend named by settings.store_backend.
    redis and sql imports are deferred so the memory backend needs neither driver.
    """
    if settings.store_backend == "redis":
        from onboarding.cache import create_redis_pool
        from onboarding.stores.redis_store import RedisStateStore

        client = await create_redis_pool(settings.redis_url)
        return RedisStateStore(client, lock_timeout_seconds=settings.lock_timeout_seconds)

    if settings.store_backend == "sql":
        from onboarding.database import create_engine, create_tables, make_session_factory
        from onboarding.stores.sql_store import SqlStateStore

        engine = create_engine(settings.database_url, echo=settings.debug)
        await create_tables(engine)
        logger.info("State tables ready on %s", engine.url.render_as_string(hide_password=True))
        return SqlStateStore(make_session_factory(engine), clock=clock, engine=engine)

    logger.warning("Using in-memory state store — state is lost on restart")
    return InMemoryStateStore(clock=clock)
