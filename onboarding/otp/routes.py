"""
OTP HTTP routes — POST /api/auth/otp/request
                  POST /api/auth/otp/resend
                  POST /api/auth/otp/verify
                  GET  /api/auth/otp/status?mobile_number=...

Mobile numbers are validated and normalised by the request schemas (or
check_mobile_number for the query string) before the tracker sees them.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from onboarding.dependencies import get_otp_tracker
from onboarding.errors import unwrap
from onboarding.otp.schemas import OtpRequest, OtpVerifyRequest
from onboarding.otp.service import OtpAttemptTracker
from onboarding.otp.validator import check_mobile_number
from onboarding.schemas import envelope

router = APIRouter(prefix="/api/auth/otp", tags=["otp"])
logger = logging.getLogger(__name__)


@router.post("/request")
async def request_otp(
    body: OtpRequest,
    tracker: OtpAttemptTracker = Depends(get_otp_tracker),
) -> dict:
    """429 RATE_LIMITED while the number is locked."""
    challenge = unwrap(await tracker.request_otp(body.mobile_number))
    return envelope(200, "OTP sent successfully to your mobile number", challenge)


@router.post("/resend")
async def resend_otp(
    body: OtpRequest,
    tracker: OtpAttemptTracker = Depends(get_otp_tracker),
) -> dict:
    """Same as /request: a new code, the attempt budget carries over."""
    challenge = unwrap(await tracker.request_otp(body.mobile_number))
    return envelope(200, "New OTP sent successfully", challenge)


@router.post("/verify")
async def verify_otp(
    body: OtpVerifyRequest,
    tracker: OtpAttemptTracker = Depends(get_otp_tracker),
) -> dict:
    """
    200: verified
    401 INVALID_OTP: wrong code, message carries remaining attempts
    429 RATE_LIMITED: locked (including the attempt that caused the lock)
    400 OTP_EXPIRED: challenge window passed, request a new code
    """
    verification = unwrap(await tracker.verify_otp(body.mobile_number, body.otp))
    verification = verification.model_copy(update={"session_id": body.session_id})
    return envelope(200, "OTP verified successfully", verification)


@router.get("/status")
async def otp_status(
    mobile_number: str = Query(..., min_length=1),
    tracker: OtpAttemptTracker = Depends(get_otp_tracker),
) -> dict:
    normalized = unwrap(check_mobile_number(mobile_number, field="mobile_number"))
    state = await tracker.get_status(normalized)
    return envelope(200, "OTP status retrieved", state)
