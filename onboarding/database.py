"""
database.py — SQLAlchemy 2.0 async engine and session factory for the sql store backend.

This module owns ALL database connection infrastructure.
Nothing else in the codebase creates engines or sessions directly.

Unlike the redis/memory backends the engine is only built when
settings.store_backend == "sql", so importing this module never needs a
database driver.

Usage (stores/sql_store.py):
    engine = create_engine(settings.database_url, echo=settings.debug)
    await create_tables(engine)
    store = SqlStateStore(make_session_factory(engine), clock)
"""
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


# ---------------------------------------------------------------------------
# Declarative base — ALL ORM models inherit from this
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """
    SQLAlchemy declarative base.
    All ORM models in onboarding/models/ inherit from Base.
    """
    pass


# ---------------------------------------------------------------------------
# Async engine — one per application lifetime
# ---------------------------------------------------------------------------
def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Build the async engine. SQLite gets the driver's default pool (no pool sizing)."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo)
    return create_async_engine(
        database_url,
        echo=echo,                # Logs SQL statements in debug mode (keys only, no payloads in WHERE)
        pool_size=5,              # Core connection pool size
        max_overflow=10,          # Extra connections under peak load
        pool_pre_ping=True,       # Detect and discard stale connections before each use
    )


# ---------------------------------------------------------------------------
# Session factory — produces AsyncSession instances
# ---------------------------------------------------------------------------
def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,   # Keep objects usable after commit without re-querying
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create the state tables if missing (idempotent)."""
    # Imported for its side effect: registers StateEntryORM on Base.metadata
    import onboarding.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
