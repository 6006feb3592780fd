"""
SessionStore — session identity, mode and sliding expiry.

Expiry is passive: nothing runs when a session lapses. get_session() compares
expires_at with the clock, reports Expired and flips is_active off, but keeps
the record; the backing store drops it SESSION_RETENTION_GRACE_SECONDS later.

extend_session() resets the window from "now" even for a lapsed record, so a
client that reconnects within the grace period can revive its session.
"""
from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Optional, Union

from onboarding.cache import make_session_key
from onboarding.clock import Clock, SystemClock, seconds_until, seconds_until_ceil
from onboarding.results import Expired, NotFound, Ok
from onboarding.session.schemas import (
    Session,
    SessionExtension,
    SessionMode,
    SessionRecord,
    SessionValidity,
)
from onboarding.stores.base import StateStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# TTL constants (seconds)
# ---------------------------------------------------------------------------
SESSION_TTL_SECONDS: int = 1800              # 30 minutes
SESSION_WARNING_SECONDS: int = 120           # 2 minutes before expiry
SESSION_RETENTION_GRACE_SECONDS: int = 3600  # lapsed record kept this long after expires_at


class SessionStore:
    def __init__(
        self,
        store: StateStore,
        clock: Optional[Clock] = None,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        warning_seconds: int = SESSION_WARNING_SECONDS,
        retention_grace_seconds: int = SESSION_RETENTION_GRACE_SECONDS,
        key_prefix: str = "",
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self.ttl_seconds = ttl_seconds
        self._warning_seconds = warning_seconds
        self._grace_seconds = retention_grace_seconds
        self._key_prefix = key_prefix

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _key(self, session_id: str) -> str:
        return make_session_key(session_id, self._key_prefix)

    def _store_ttl(self, record: SessionRecord) -> int:
        """Physical lifetime left: until expires_at plus the retention grace."""
        retain_until = record.expires_at + timedelta(seconds=self._grace_seconds)
        return max(1, seconds_until_ceil(retain_until, self._clock.now()))

    async def _load(self, session_id: str) -> Optional[SessionRecord]:
        raw = await self._store.get(self._key(session_id))
        if raw is None:
            return None
        return SessionRecord.model_validate(raw)

    async def _save(self, record: SessionRecord) -> None:
        await self._store.set(
            self._key(record.session_id),
            record.model_dump(mode="json"),
            ttl_seconds=self._store_ttl(record),
        )

    def _view(self, record: SessionRecord) -> Session:
        ttl = seconds_until(record.expires_at, self._clock.now())
        return Session(
            **record.model_dump(),
            ttl_seconds_remaining=ttl,
            is_expiring_soon=0 < ttl <= self._warning_seconds,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create_session(self, mode: SessionMode, staff_id: Optional[str] = None) -> Session:
        """Mint a new session. Never fails; every call is a new identity."""
        now = self._clock.now()
        record = SessionRecord(
            session_id=str(uuid.uuid4()),
            mode=mode,
            staff_id=staff_id if mode == SessionMode.ASSISTED else None,
            created_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
            is_active=True,
        )
        await self._save(record)
        logger.info("Created session session_id=%s mode=%s", record.session_id, mode.value)
        return self._view(record)

    async def get_session(self, session_id: str) -> Union[Ok[Session], NotFound, Expired]:
        key = self._key(session_id)
        async with self._store.lock(key):
            record = await self._load(session_id)
            if record is None:
                return NotFound(key=session_id)

            if self._clock.now() >= record.expires_at:
                if record.is_active:
                    record.is_active = False
                    await self._save(record)
                    logger.info("Session lapsed session_id=%s", session_id)
                return Expired(key=session_id, expired_at=record.expires_at)

        return Ok(self._view(record))

    async def extend_session(self, session_id: str) -> Union[Ok[SessionExtension], NotFound]:
        """Reset the window to now + TTL, reviving a lapsed record that still exists."""
        key = self._key(session_id)
        async with self._store.lock(key):
            record = await self._load(session_id)
            if record is None:
                return NotFound(key=session_id)

            now = self._clock.now()
            was_active = now < record.expires_at
            record.expires_at = now + timedelta(seconds=self.ttl_seconds)
            record.is_active = True
            await self._save(record)

        logger.info(
            "Extended session session_id=%s revived=%s", session_id, not was_active
        )
        return Ok(SessionExtension(new_expires_at=record.expires_at, new_ttl_seconds=self.ttl_seconds))

    async def end_session(self, session_id: str) -> None:
        """Delete the session. Ending an unknown session is a no-op."""
        await self._store.delete(self._key(session_id))
        logger.info("Ended session session_id=%s", session_id)

    async def validate_session(self, session_id: str) -> SessionValidity:
        """Read-only liveness check. Never raises, never writes."""
        record = await self._load(session_id)
        if record is None:
            return SessionValidity(is_valid=False)
        ttl = seconds_until(record.expires_at, self._clock.now())
        is_valid = self._clock.now() < record.expires_at
        return SessionValidity(
            is_valid=is_valid,
            ttl_seconds_remaining=ttl if is_valid else 0,
            is_expiring_soon=is_valid and ttl <= self._warning_seconds,
        )
