"""
results.py — tagged result types returned by the state stores.

Expected conditions (expiry, lockout, wrong code, late writes) are values the
caller branches on, never exceptions. Each operation returns either Ok(value)
or one of the failure kinds below; routes translate failures into HTTP errors
(see errors.py).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    """No record for the key."""
    key: str


@dataclass(frozen=True)
class Expired:
    """Record exists but its time window has lapsed (sessions only)."""
    key: str
    expired_at: datetime


@dataclass(frozen=True)
class RateLimited:
    """OTP cooldown active."""
    cooldown_seconds: int
    lock_expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class InvalidCredential:
    """Wrong OTP code; the call itself succeeded."""
    remaining_attempts: int


@dataclass(frozen=True)
class Conflict:
    """Write attempted against an already-submitted draft."""
    key: str
    reason: str


@dataclass(frozen=True)
class ValidationFailure:
    field: str
    issue: str


@dataclass(frozen=True)
class ChallengeExpired:
    """The OTP challenge outlived its validity window; a new one must be requested."""
    expired_at: datetime


Failure = Union[NotFound, Expired, RateLimited, InvalidCredential, Conflict, ValidationFailure, ChallengeExpired]
