"""
models/state_entry.py — SQLAlchemy ORM model for the sql store backend.

Table: state_entries

One row per store key (session:{id}, draft:{id}, otp:{mobile}). The row is the
SQL equivalent of a redis key: a JSON value plus an optional expires_at. Rows
past expires_at are treated as absent and deleted on the next read.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.database import Base


class StateEntryORM(Base):
    """
    value: the record dict exactly as the services wrote it.
    expires_at: store TTL deadline, NULL for records kept until deleted (drafts).
    """
    __tablename__ = "state_entries"

    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Namespaced store key, e.g. 'session:{uuid}'",
    )
    value: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
