"""
clock.py — time source for every expiry decision.

Stores never call datetime.now() directly: sessions, OTP locks and store TTLs
are all evaluated against an injected Clock, so expiry is passive (compared on
access) and deterministic under test (ManualClock).
"""
import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """
    Clock that only moves when told to.

    Used by the test suite to step through TTL windows and lock cooldowns
    without sleeping.
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = start or datetime(2026, 1, 30, 9, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> datetime:
        self._now = self._now + timedelta(seconds=seconds)
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment


def seconds_until(deadline: Optional[datetime], now: datetime) -> int:
    """Whole seconds left before deadline, floored, never negative."""
    if deadline is None:
        return 0
    return max(0, math.floor((deadline - now).total_seconds()))


def seconds_until_ceil(deadline: Optional[datetime], now: datetime) -> int:
    """Like seconds_until but rounds up — a 0.2s remainder still reads as 1s of cooldown."""
    if deadline is None:
        return 0
    return max(0, math.ceil((deadline - now).total_seconds()))


def ensure_utc(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
