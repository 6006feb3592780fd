"""
OtpAttemptTracker tests — attempt budget, lockout, lazy unlock, challenge expiry.

Groups:
  1. Requesting challenges
  2. Verification outcomes
  3. Lockout and cooldown
  4. Status reads
"""
from __future__ import annotations

import pytest

from onboarding.clock import ManualClock
from onboarding.otp.service import (
    OTP_LOCK_SECONDS,
    OTP_MAX_ATTEMPTS,
    OtpAttemptTracker,
    generate_otp_code,
)
from onboarding.results import ChallengeExpired, InvalidCredential, Ok, RateLimited
from onboarding.tests.conftest import KNOWN_OTP, MOBILE, OTHER_MOBILE, WRONG_OTP


async def _exhaust(tracker: OtpAttemptTracker, mobile: str = MOBILE):
    result = None
    for _ in range(OTP_MAX_ATTEMPTS):
        result = await tracker.verify_otp(mobile, WRONG_OTP)
    return result


def test_limit_constants() -> None:
    assert OTP_MAX_ATTEMPTS == 5
    assert OTP_LOCK_SECONDS == 30


def test_generated_codes_are_six_digits() -> None:
    for _ in range(50):
        code = generate_otp_code()
        assert len(code) == 6
        assert code.isdigit()


# ===========================================================================
# TEST GROUP 1: Requesting challenges
# ===========================================================================

@pytest.mark.asyncio
async def test_first_request_creates_full_budget(tracker: OtpAttemptTracker) -> None:
    result = await tracker.request_otp(MOBILE)

    assert isinstance(result, Ok)
    assert result.value.otp_sent is True
    assert result.value.expires_in_seconds == 300
    assert result.value.remaining_attempts == OTP_MAX_ATTEMPTS
    assert result.value.mobile_number == "0171******8"


@pytest.mark.asyncio
async def test_request_does_not_consume_or_restore_attempts(tracker: OtpAttemptTracker) -> None:
    await tracker.request_otp(MOBILE)
    await tracker.verify_otp(MOBILE, WRONG_OTP)
    await tracker.verify_otp(MOBILE, WRONG_OTP)

    again = await tracker.request_otp(MOBILE)
    assert again.value.remaining_attempts == 3

    status = await tracker.get_status(MOBILE)
    assert status.remaining_attempts == 3


# ===========================================================================
# TEST GROUP 2: Verification outcomes
# ===========================================================================

@pytest.mark.asyncio
async def test_correct_code_verifies(tracker: OtpAttemptTracker) -> None:
    await tracker.request_otp(MOBILE)
    result = await tracker.verify_otp(MOBILE, KNOWN_OTP)

    assert isinstance(result, Ok)
    assert result.value.verified is True


@pytest.mark.asyncio
async def test_wrong_code_reports_remaining_attempts(tracker: OtpAttemptTracker) -> None:
    await tracker.request_otp(MOBILE)

    for expected_remaining in (4, 3, 2, 1):
        result = await tracker.verify_otp(MOBILE, WRONG_OTP)
        assert isinstance(result, InvalidCredential)
        assert result.remaining_attempts == expected_remaining


@pytest.mark.asyncio
@pytest.mark.parametrize("failures", [0, 1, 2, 3, 4])
async def test_correct_code_after_failures_resets_budget(
    tracker: OtpAttemptTracker, failures: int
) -> None:
    await tracker.request_otp(MOBILE)
    for _ in range(failures):
        await tracker.verify_otp(MOBILE, WRONG_OTP)

    result = await tracker.verify_otp(MOBILE, KNOWN_OTP)
    assert isinstance(result, Ok)

    status = await tracker.get_status(MOBILE)
    assert status.remaining_attempts == OTP_MAX_ATTEMPTS
    assert status.is_locked is False


@pytest.mark.asyncio
async def test_code_is_single_use(tracker: OtpAttemptTracker) -> None:
    await tracker.request_otp(MOBILE)
    assert isinstance(await tracker.verify_otp(MOBILE, KNOWN_OTP), Ok)

    replay = await tracker.verify_otp(MOBILE, KNOWN_OTP)
    assert isinstance(replay, InvalidCredential)
    assert replay.remaining_attempts == OTP_MAX_ATTEMPTS - 1


@pytest.mark.asyncio
async def test_expired_challenge_does_not_spend_an_attempt(
    tracker: OtpAttemptTracker, clock: ManualClock
) -> None:
    await tracker.request_otp(MOBILE)
    clock.advance(301)

    result = await tracker.verify_otp(MOBILE, KNOWN_OTP)
    assert isinstance(result, ChallengeExpired)

    status = await tracker.get_status(MOBILE)
    assert status.remaining_attempts == OTP_MAX_ATTEMPTS

    # A new challenge works normally
    await tracker.request_otp(MOBILE)
    assert isinstance(await tracker.verify_otp(MOBILE, KNOWN_OTP), Ok)


@pytest.mark.asyncio
async def test_numbers_are_tracked_independently(tracker: OtpAttemptTracker) -> None:
    await _exhaust(tracker, MOBILE)

    await tracker.request_otp(OTHER_MOBILE)
    result = await tracker.verify_otp(OTHER_MOBILE, KNOWN_OTP)
    assert isinstance(result, Ok)


# ===========================================================================
# TEST GROUP 3: Lockout and cooldown
# ===========================================================================

@pytest.mark.asyncio
async def test_five_wrong_codes_on_fresh_number_lock_it(tracker: OtpAttemptTracker) -> None:
    """No challenge requested at all: every verify is a wrong code."""
    results = [await tracker.verify_otp("01700000000", WRONG_OTP) for _ in range(5)]

    assert all(isinstance(r, InvalidCredential) for r in results[:4])
    assert isinstance(results[4], RateLimited)
    assert results[4].cooldown_seconds == 30

    status = await tracker.get_status("01700000000")
    assert status.is_locked is True
    assert status.remaining_attempts == 0
    assert status.cooldown_seconds == 30


@pytest.mark.asyncio
async def test_locked_number_rejects_verify_and_request(
    tracker: OtpAttemptTracker, clock: ManualClock
) -> None:
    await tracker.request_otp(MOBILE)
    await _exhaust(tracker)
    clock.advance(10)

    verify = await tracker.verify_otp(MOBILE, KNOWN_OTP)
    assert isinstance(verify, RateLimited)
    assert verify.cooldown_seconds == 20

    request = await tracker.request_otp(MOBILE)
    assert isinstance(request, RateLimited)
    assert request.cooldown_seconds == 20


@pytest.mark.asyncio
async def test_cooldown_rounds_up_partial_seconds(
    tracker: OtpAttemptTracker, clock: ManualClock
) -> None:
    await _exhaust(tracker)
    clock.advance(29.2)

    result = await tracker.request_otp(MOBILE)
    assert isinstance(result, RateLimited)
    assert result.cooldown_seconds == 1


@pytest.mark.asyncio
async def test_request_after_cooldown_sees_full_budget(
    tracker: OtpAttemptTracker, clock: ManualClock
) -> None:
    await _exhaust(tracker)
    clock.advance(OTP_LOCK_SECONDS)

    result = await tracker.request_otp(MOBILE)
    assert isinstance(result, Ok)
    assert result.value.remaining_attempts == OTP_MAX_ATTEMPTS


@pytest.mark.asyncio
async def test_verify_after_cooldown_counts_from_full_budget(
    tracker: OtpAttemptTracker, clock: ManualClock
) -> None:
    await _exhaust(tracker)
    clock.advance(OTP_LOCK_SECONDS + 5)

    result = await tracker.verify_otp(MOBILE, WRONG_OTP)
    assert isinstance(result, InvalidCredential)
    assert result.remaining_attempts == OTP_MAX_ATTEMPTS - 1


@pytest.mark.asyncio
async def test_lock_discards_outstanding_challenge(
    tracker: OtpAttemptTracker, clock: ManualClock
) -> None:
    await tracker.request_otp(MOBILE)
    await _exhaust(tracker)
    clock.advance(OTP_LOCK_SECONDS)

    # The pre-lock code is gone; only a newly requested challenge verifies
    result = await tracker.verify_otp(MOBILE, KNOWN_OTP)
    assert isinstance(result, InvalidCredential)


# ===========================================================================
# TEST GROUP 4: Status reads
# ===========================================================================

@pytest.mark.asyncio
async def test_status_for_unknown_number_is_full_and_not_persisted(
    tracker: OtpAttemptTracker, store
) -> None:
    status = await tracker.get_status(MOBILE)

    assert status.remaining_attempts == OTP_MAX_ATTEMPTS
    assert status.max_attempts == OTP_MAX_ATTEMPTS
    assert status.is_locked is False
    assert status.cooldown_seconds == 0
    assert len(store) == 0


@pytest.mark.asyncio
async def test_status_clears_elapsed_lock_without_explicit_reset(
    tracker: OtpAttemptTracker, clock: ManualClock
) -> None:
    await _exhaust(tracker)
    locked = await tracker.get_status(MOBILE)
    assert locked.is_locked is True
    assert locked.lock_expires_at is not None

    clock.advance(OTP_LOCK_SECONDS)
    status = await tracker.get_status(MOBILE)

    assert status.is_locked is False
    assert status.remaining_attempts == OTP_MAX_ATTEMPTS
    assert status.lock_expires_at is None
    assert status.cooldown_seconds == 0


@pytest.mark.asyncio
async def test_status_never_exposes_the_code(store, clock: ManualClock) -> None:
    # A code that cannot occur inside MOBILE, so any match is a real leak
    issued = "987650"
    tracker = OtpAttemptTracker(store, clock=clock, code_factory=lambda: issued)
    await tracker.request_otp(MOBILE)
    status = await tracker.get_status(MOBILE)
    dumped = status.model_dump(by_alias=True)

    assert "code" not in dumped
    assert "codeExpiresAt" not in dumped
    assert issued not in str(dumped)
    assert issued not in MOBILE
