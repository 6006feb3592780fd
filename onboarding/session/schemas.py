"""
schemas.py — Session Pydantic v2 data contracts.

Defines:
  - SessionMode enum (SELF / ASSISTED)
  - SessionRecord        what is persisted under session:{id}
  - Session              SessionRecord + fields derived from "now" at read time
  - SessionExtension, SessionValidity
  - CreateSessionRequest

ttl_seconds_remaining and is_expiring_soon are never stored: they are computed
from expires_at and the clock on every read.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from onboarding.schemas import ApiModel


class SessionMode(str, Enum):
    SELF = "SELF"
    ASSISTED = "ASSISTED"


class SessionRecord(ApiModel):
    session_id: str
    mode: SessionMode
    staff_id: Optional[str] = Field(
        default=None,
        description="Branch staff member driving an ASSISTED application. Always None for SELF.",
    )
    created_at: datetime
    expires_at: datetime
    is_active: bool = True


class Session(SessionRecord):
    ttl_seconds_remaining: int = Field(..., ge=0)
    is_expiring_soon: bool = False


class SessionExtension(ApiModel):
    new_expires_at: datetime
    new_ttl_seconds: int


class SessionValidity(ApiModel):
    is_valid: bool
    ttl_seconds_remaining: int = 0
    is_expiring_soon: bool = False


class CreateSessionRequest(ApiModel):
    mode: SessionMode
    staff_id: Optional[str] = Field(default=None, min_length=1, max_length=64)

    @model_validator(mode="after")
    def staff_only_when_assisted(self) -> "CreateSessionRequest":
        if self.mode == SessionMode.ASSISTED and not self.staff_id:
            raise ValueError("staffId is required for ASSISTED sessions")
        if self.mode == SessionMode.SELF and self.staff_id:
            raise ValueError("staffId is only allowed for ASSISTED sessions")
        return self
