"""
models/__init__.py — imports all ORM models so Base.metadata sees them
before database.create_tables() runs.
"""
from onboarding.models.state_entry import StateEntryORM

__all__ = ["StateEntryORM"]
