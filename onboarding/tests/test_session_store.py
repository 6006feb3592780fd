"""
SessionStore tests — TTL, passive expiry, extension and idempotent end.

Groups:
  1. Creation and validation
  2. Passive expiry (Expired vs NotFound)
  3. Extension, including revival of a lapsed record
  4. End session
"""
from __future__ import annotations

import pytest

from onboarding.clock import ManualClock
from onboarding.results import Expired, NotFound, Ok
from onboarding.session.schemas import SessionMode
from onboarding.session.service import (
    SESSION_RETENTION_GRACE_SECONDS,
    SESSION_TTL_SECONDS,
    SessionStore,
)


def test_session_ttl_constant() -> None:
    assert SESSION_TTL_SECONDS == 1800


# ===========================================================================
# TEST GROUP 1: Creation and validation
# ===========================================================================

@pytest.mark.asyncio
async def test_create_self_session_then_validate(sessions: SessionStore) -> None:
    session = await sessions.create_session(SessionMode.SELF)

    assert session.mode == SessionMode.SELF
    assert session.is_active is True
    assert session.staff_id is None
    assert session.ttl_seconds_remaining == 1800

    validity = await sessions.validate_session(session.session_id)
    assert validity.is_valid is True
    assert 1799 < validity.ttl_seconds_remaining <= 1800
    assert validity.is_expiring_soon is False


@pytest.mark.asyncio
async def test_each_create_mints_a_new_identity(sessions: SessionStore) -> None:
    first = await sessions.create_session(SessionMode.SELF)
    second = await sessions.create_session(SessionMode.SELF)
    assert first.session_id != second.session_id


@pytest.mark.asyncio
async def test_staff_id_kept_only_for_assisted(sessions: SessionStore) -> None:
    assisted = await sessions.create_session(SessionMode.ASSISTED, staff_id="STF-042")
    self_service = await sessions.create_session(SessionMode.SELF, staff_id="STF-042")

    assert assisted.staff_id == "STF-042"
    assert self_service.staff_id is None


@pytest.mark.asyncio
async def test_validate_unknown_session_is_not_an_error(sessions: SessionStore) -> None:
    validity = await sessions.validate_session("no-such-session")
    assert validity.is_valid is False
    assert validity.ttl_seconds_remaining == 0


@pytest.mark.asyncio
async def test_ttl_counts_down_with_clock(sessions: SessionStore, clock: ManualClock) -> None:
    session = await sessions.create_session(SessionMode.SELF)
    clock.advance(1700)

    result = await sessions.get_session(session.session_id)
    assert isinstance(result, Ok)
    assert result.value.ttl_seconds_remaining == 100
    assert result.value.is_expiring_soon is True


# ===========================================================================
# TEST GROUP 2: Passive expiry
# ===========================================================================

@pytest.mark.asyncio
async def test_get_unknown_session_is_not_found(sessions: SessionStore) -> None:
    result = await sessions.get_session("missing")
    assert isinstance(result, NotFound)


@pytest.mark.asyncio
async def test_get_after_expiry_reports_expired_not_not_found(
    sessions: SessionStore, clock: ManualClock
) -> None:
    session = await sessions.create_session(SessionMode.SELF)
    clock.advance(1800)

    result = await sessions.get_session(session.session_id)
    assert isinstance(result, Expired)
    assert result.expired_at == session.expires_at

    validity = await sessions.validate_session(session.session_id)
    assert validity.is_valid is False
    assert validity.ttl_seconds_remaining == 0


@pytest.mark.asyncio
async def test_expired_record_is_marked_inactive_but_kept(
    sessions: SessionStore, clock: ManualClock
) -> None:
    session = await sessions.create_session(SessionMode.SELF)
    clock.advance(1801)
    await sessions.get_session(session.session_id)

    # Still physically present: a second lookup is Expired again, not NotFound
    again = await sessions.get_session(session.session_id)
    assert isinstance(again, Expired)


@pytest.mark.asyncio
async def test_record_disappears_after_retention_grace(
    sessions: SessionStore, clock: ManualClock
) -> None:
    session = await sessions.create_session(SessionMode.SELF)
    clock.advance(SESSION_TTL_SECONDS + SESSION_RETENTION_GRACE_SECONDS + 1)

    result = await sessions.get_session(session.session_id)
    assert isinstance(result, NotFound)


# ===========================================================================
# TEST GROUP 3: Extension
# ===========================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize("elapsed", [0, 1, 900, 1799])
async def test_extend_always_yields_full_ttl(
    sessions: SessionStore, clock: ManualClock, elapsed: int
) -> None:
    session = await sessions.create_session(SessionMode.SELF)
    clock.advance(elapsed)

    result = await sessions.extend_session(session.session_id)
    assert isinstance(result, Ok)
    assert result.value.new_ttl_seconds == SESSION_TTL_SECONDS
    assert result.value.new_expires_at == clock.now() + (session.expires_at - session.created_at)


@pytest.mark.asyncio
async def test_extend_moves_expiry_forward(sessions: SessionStore, clock: ManualClock) -> None:
    session = await sessions.create_session(SessionMode.SELF)
    clock.advance(600)

    result = await sessions.extend_session(session.session_id)
    assert isinstance(result, Ok)
    assert result.value.new_expires_at > session.expires_at


@pytest.mark.asyncio
async def test_extend_revives_lapsed_session(sessions: SessionStore, clock: ManualClock) -> None:
    session = await sessions.create_session(SessionMode.ASSISTED, staff_id="STF-7")
    clock.advance(2000)
    assert isinstance(await sessions.get_session(session.session_id), Expired)

    extended = await sessions.extend_session(session.session_id)
    assert isinstance(extended, Ok)

    result = await sessions.get_session(session.session_id)
    assert isinstance(result, Ok)
    assert result.value.is_active is True
    assert result.value.ttl_seconds_remaining == 1800
    assert result.value.staff_id == "STF-7"


@pytest.mark.asyncio
async def test_extend_unknown_session_is_not_found(sessions: SessionStore) -> None:
    assert isinstance(await sessions.extend_session("missing"), NotFound)


# ===========================================================================
# TEST GROUP 4: End session
# ===========================================================================

@pytest.mark.asyncio
async def test_end_session_deletes_and_is_idempotent(sessions: SessionStore) -> None:
    session = await sessions.create_session(SessionMode.SELF)

    await sessions.end_session(session.session_id)
    await sessions.end_session(session.session_id)
    await sessions.end_session("never-existed")

    assert isinstance(await sessions.get_session(session.session_id), NotFound)
    assert (await sessions.validate_session(session.session_id)).is_valid is False
