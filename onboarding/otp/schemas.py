"""
schemas.py — OTP Pydantic v2 data contracts.

OtpRecord is the stored form and holds the live challenge code; it never
leaves the service. Everything returned to callers (OtpAttemptState,
OtpChallenge, OtpVerification) is code-free.
"""
from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, Field

from onboarding.otp.validator import normalize_mobile_number
from onboarding.schemas import ApiModel

MobileNumber = Annotated[str, AfterValidator(normalize_mobile_number)]


class OtpRecord(ApiModel):
    mobile_number: str
    remaining_attempts: int = Field(..., ge=0)
    max_attempts: int
    is_locked: bool = False
    lock_expires_at: Optional[datetime] = None
    code: Optional[str] = None
    code_expires_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    created_at: datetime


class OtpAttemptState(ApiModel):
    mobile_number: str
    remaining_attempts: int
    max_attempts: int
    is_locked: bool = False
    lock_expires_at: Optional[datetime] = None
    cooldown_seconds: int = 0
    last_attempt_at: Optional[datetime] = None


class OtpChallenge(ApiModel):
    otp_sent: bool = True
    expires_in_seconds: int
    mobile_number: str = Field(..., description="Masked, e.g. 0171******8")
    remaining_attempts: int


class OtpVerification(ApiModel):
    verified: bool
    session_id: Optional[str] = None
    # Applicant lookup lives outside this service; always null here
    user_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class OtpRequest(ApiModel):
    mobile_number: MobileNumber
    session_id: Optional[str] = None


class OtpVerifyRequest(ApiModel):
    mobile_number: MobileNumber
    otp: str = Field(..., min_length=4, max_length=8, pattern=r"^\d+$")
    session_id: Optional[str] = None
