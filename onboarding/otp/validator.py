"""
Mobile number validation — runs BEFORE anything reaches the OtpAttemptTracker.

The tracker keys attempt state by mobile number, so every spelling of the same
number (+8801712345678, 8801712345678, 01712345678) must collapse to one key,
otherwise an attacker gets a fresh attempt budget per spelling. Numbers are
normalised to the national form 01XXXXXXXXX.
"""
from __future__ import annotations

from typing import Union

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberType

from onboarding.results import Ok, ValidationFailure

DEFAULT_REGION = "BD"
_MOBILE_TYPES = (PhoneNumberType.MOBILE, PhoneNumberType.FIXED_LINE_OR_MOBILE)


def normalize_mobile_number(raw: str) -> str:
    """
    Return the national 11-digit form of a Bangladesh mobile number.

    Raises:
        ValueError: If the number cannot be parsed, is not valid for BD,
            or is not a mobile number.
    """
    try:
        parsed = phonenumbers.parse(raw.strip(), DEFAULT_REGION)
    except NumberParseException as exc:
        raise ValueError(f"Invalid mobile number format: {exc}") from exc

    if not phonenumbers.is_valid_number_for_region(parsed, DEFAULT_REGION):
        raise ValueError("Please enter a valid Bangladesh mobile number")
    if phonenumbers.number_type(parsed) not in _MOBILE_TYPES:
        raise ValueError("Please enter a mobile number, not a landline")

    return f"0{parsed.national_number}"


def check_mobile_number(raw: str, field: str = "mobileNumber") -> Union[Ok[str], ValidationFailure]:
    """Result-returning variant for callers that branch instead of catching."""
    try:
        return Ok(normalize_mobile_number(raw))
    except ValueError as exc:
        return ValidationFailure(field=field, issue=str(exc))
