"""
errors.py — translation from store failures to HTTP errors.

Stores return tagged results (results.py). Routes call unwrap() on them: Ok
yields its value, every failure kind raises ApiError, which the handler in
main.py renders into the standard envelope.

  NotFound           → 404 NOT_FOUND
  Expired            → 401 SESSION_EXPIRED
  RateLimited        → 429 RATE_LIMITED      (message carries the cooldown)
  InvalidCredential  → 401 INVALID_OTP       (message carries remaining attempts)
  Conflict           → 409 CONFLICT
  ValidationFailure  → 422 VALIDATION_ERROR
  ChallengeExpired   → 400 OTP_EXPIRED
"""
from __future__ import annotations

from typing import Any, Optional, TypeVar, Union

from onboarding.results import (
    ChallengeExpired,
    Conflict,
    Expired,
    Failure,
    InvalidCredential,
    NotFound,
    Ok,
    RateLimited,
    ValidationFailure,
)

T = TypeVar("T")


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or []


def failure_to_error(failure: Failure, subject: str = "Record") -> ApiError:
    """Map one failure kind to an ApiError. `subject` names the resource in 404/401 messages."""
    if isinstance(failure, NotFound):
        return ApiError(404, "NOT_FOUND", f"{subject} not found")
    if isinstance(failure, Expired):
        return ApiError(401, "SESSION_EXPIRED", f"{subject} has expired. Please start again.")
    if isinstance(failure, RateLimited):
        return ApiError(
            429,
            "RATE_LIMITED",
            f"Too many attempts. Please wait {failure.cooldown_seconds} seconds.",
            details=[{"field": "cooldownSeconds", "issue": str(failure.cooldown_seconds)}],
        )
    if isinstance(failure, InvalidCredential):
        return ApiError(
            401,
            "INVALID_OTP",
            f"Invalid OTP. {failure.remaining_attempts} attempts remaining.",
            details=[{"field": "remainingAttempts", "issue": str(failure.remaining_attempts)}],
        )
    if isinstance(failure, Conflict):
        return ApiError(409, "CONFLICT", failure.reason)
    if isinstance(failure, ValidationFailure):
        return ApiError(
            422,
            "VALIDATION_ERROR",
            "Request validation failed",
            details=[{"field": failure.field, "issue": failure.issue}],
        )
    if isinstance(failure, ChallengeExpired):
        return ApiError(400, "OTP_EXPIRED", "OTP has expired. Please request a new OTP.")
    raise TypeError(f"Not a failure result: {failure!r}")


def unwrap(result: Union[Ok[T], Failure], subject: str = "Record") -> T:
    """Return the Ok value or raise the mapped ApiError."""
    if isinstance(result, Ok):
        return result.value
    raise failure_to_error(result, subject)
