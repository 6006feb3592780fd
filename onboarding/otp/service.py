"""
OtpAttemptTracker — per-mobile-number challenge/response attempt limits.

States per number:

    Fresh ──request/verify──▶ Active ──N wrong codes──▶ Locked
                                ▲                          │
                                └── correct code / cooldown elapsed ┘

  - Requesting a challenge never spends or restores attempts; only wrong codes spend
  - The last attempt locks the number for OTP_LOCK_SECONDS and discards the challenge
  - A correct code restores the full budget and unlocks, unconditionally
  - An elapsed lock is cleared by whichever call observes it first (request,
    verify or status); there is no timer
  - A code presented after its challenge window gets ChallengeExpired and does
    not spend an attempt; verifying with no challenge at all is a wrong code

Codes are compared in constant time and never logged.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from onboarding.cache import make_otp_key, mask_mobile_number
from onboarding.clock import Clock, SystemClock, seconds_until_ceil
from onboarding.otp.schemas import OtpAttemptState, OtpChallenge, OtpRecord, OtpVerification
from onboarding.results import ChallengeExpired, InvalidCredential, Ok, RateLimited
from onboarding.stores.base import StateStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------
OTP_MAX_ATTEMPTS: int = 5
OTP_LOCK_SECONDS: int = 30
OTP_EXPIRY_SECONDS: int = 300        # challenge validity, 5 minutes
OTP_RETENTION_SECONDS: int = 3600    # store TTL for attempt records
OTP_CODE_LENGTH: int = 6


def generate_otp_code(length: int = OTP_CODE_LENGTH) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


class OtpAttemptTracker:
    def __init__(
        self,
        store: StateStore,
        clock: Optional[Clock] = None,
        max_attempts: int = OTP_MAX_ATTEMPTS,
        lock_seconds: int = OTP_LOCK_SECONDS,
        expiry_seconds: int = OTP_EXPIRY_SECONDS,
        retention_seconds: int = OTP_RETENTION_SECONDS,
        code_factory: Optional[Callable[[], str]] = None,
        key_prefix: str = "",
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self.max_attempts = max_attempts
        self.lock_seconds = lock_seconds
        self.expiry_seconds = expiry_seconds
        self._retention_seconds = max(retention_seconds, lock_seconds, expiry_seconds)
        self._code_factory = code_factory or generate_otp_code
        self._key_prefix = key_prefix

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _key(self, mobile_number: str) -> str:
        return make_otp_key(mobile_number, self._key_prefix)

    def _fresh(self, mobile_number: str, now: datetime) -> OtpRecord:
        return OtpRecord(
            mobile_number=mobile_number,
            remaining_attempts=self.max_attempts,
            max_attempts=self.max_attempts,
            created_at=now,
        )

    def _reset(self, record: OtpRecord) -> None:
        record.remaining_attempts = self.max_attempts
        record.max_attempts = self.max_attempts
        record.is_locked = False
        record.lock_expires_at = None

    def _reconcile(self, record: OtpRecord, now: datetime) -> bool:
        """Clear a lock whose cooldown has run out. Returns True if the record changed."""
        if record.is_locked and (record.lock_expires_at is None or now >= record.lock_expires_at):
            self._reset(record)
            logger.info("OTP lock elapsed mobile=%s", mask_mobile_number(record.mobile_number))
            return True
        return False

    def _rate_limited(self, record: OtpRecord, now: datetime) -> RateLimited:
        return RateLimited(
            cooldown_seconds=seconds_until_ceil(record.lock_expires_at, now),
            lock_expires_at=record.lock_expires_at,
        )

    async def _load(self, mobile_number: str) -> Optional[OtpRecord]:
        raw = await self._store.get(self._key(mobile_number))
        if raw is None:
            return None
        return OtpRecord.model_validate(raw)

    async def _save(self, record: OtpRecord) -> None:
        await self._store.set(
            self._key(record.mobile_number),
            record.model_dump(mode="json"),
            ttl_seconds=self._retention_seconds,
        )

    def _state(self, record: OtpRecord, now: datetime) -> OtpAttemptState:
        return OtpAttemptState(
            mobile_number=record.mobile_number,
            remaining_attempts=record.remaining_attempts,
            max_attempts=record.max_attempts,
            is_locked=record.is_locked,
            lock_expires_at=record.lock_expires_at,
            cooldown_seconds=seconds_until_ceil(record.lock_expires_at, now) if record.is_locked else 0,
            last_attempt_at=record.last_attempt_at,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def request_otp(self, mobile_number: str) -> Union[Ok[OtpChallenge], RateLimited]:
        """Issue a new challenge, replacing any outstanding one."""
        key = self._key(mobile_number)
        async with self._store.lock(key):
            now = self._clock.now()
            record = await self._load(mobile_number)
            if record is None:
                record = self._fresh(mobile_number, now)
            else:
                self._reconcile(record, now)
                if record.is_locked:
                    logger.warning(
                        "OTP request while locked mobile=%s", mask_mobile_number(mobile_number)
                    )
                    return self._rate_limited(record, now)

            record.code = self._code_factory()
            record.code_expires_at = now + timedelta(seconds=self.expiry_seconds)
            await self._save(record)

        logger.info(
            "OTP challenge issued mobile=%s remaining_attempts=%d",
            mask_mobile_number(mobile_number),
            record.remaining_attempts,
        )
        return Ok(
            OtpChallenge(
                expires_in_seconds=self.expiry_seconds,
                mobile_number=mask_mobile_number(mobile_number),
                remaining_attempts=record.remaining_attempts,
            )
        )

    async def verify_otp(
        self, mobile_number: str, submitted_code: str
    ) -> Union[Ok[OtpVerification], InvalidCredential, RateLimited, ChallengeExpired]:
        key = self._key(mobile_number)
        masked = mask_mobile_number(mobile_number)
        async with self._store.lock(key):
            now = self._clock.now()
            record = await self._load(mobile_number)
            if record is None:
                record = self._fresh(mobile_number, now)
            else:
                self._reconcile(record, now)

            if record.is_locked:
                logger.warning("OTP verify while locked mobile=%s", masked)
                return self._rate_limited(record, now)

            record.last_attempt_at = now

            # ---- Stale challenge: discard it, keep the attempt budget ------
            if record.code is not None and record.code_expires_at is not None and now >= record.code_expires_at:
                expired_at = record.code_expires_at
                record.code = None
                record.code_expires_at = None
                await self._save(record)
                logger.info("OTP challenge expired mobile=%s", masked)
                return ChallengeExpired(expired_at=expired_at)

            # ---- Correct code: one-time use, full reset --------------------
            if record.code is not None and secrets.compare_digest(
                record.code.encode("utf-8"), submitted_code.encode("utf-8")
            ):
                self._reset(record)
                record.code = None
                record.code_expires_at = None
                await self._save(record)
                logger.info("OTP verified mobile=%s", masked)
                return Ok(OtpVerification(verified=True))

            # ---- Wrong code (or no challenge at all) -----------------------
            record.remaining_attempts = max(0, record.remaining_attempts - 1)
            if record.remaining_attempts == 0:
                record.is_locked = True
                record.lock_expires_at = now + timedelta(seconds=self.lock_seconds)
                record.code = None
                record.code_expires_at = None
                await self._save(record)
                logger.warning(
                    "OTP attempts exhausted, locked mobile=%s cooldown=%ds", masked, self.lock_seconds
                )
                return self._rate_limited(record, now)

            await self._save(record)

        logger.info(
            "OTP rejected mobile=%s remaining_attempts=%d", masked, record.remaining_attempts
        )
        return InvalidCredential(remaining_attempts=record.remaining_attempts)

    async def get_status(self, mobile_number: str) -> OtpAttemptState:
        """Current attempt state. Unknown numbers report a full budget without creating a record."""
        key = self._key(mobile_number)
        async with self._store.lock(key):
            now = self._clock.now()
            record = await self._load(mobile_number)
            if record is None:
                return self._state(self._fresh(mobile_number, now), now)
            if self._reconcile(record, now):
                await self._save(record)
        return self._state(record, now)
