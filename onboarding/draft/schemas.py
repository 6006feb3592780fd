"""
schemas.py — Draft Pydantic v2 data contracts.

Defines:
  - StepVersion        per-step save counter (one per step_number)
  - StepRecord         latest payload for a step, backs GET /drafts/{id}/step/{n}
  - Draft              the whole application-in-progress for one session
  - DraftRecord        Draft + per-step records, the stored form
  - DraftSaveReceipt, StepData, SubmissionReceipt
  - InitializeDraftRequest, SaveDraftStepRequest, SubmitApplicationRequest

Payloads are opaque: the store never looks inside a step's data dict.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from onboarding.schemas import ApiModel


class StepVersion(ApiModel):
    step_number: int = Field(..., ge=1)
    step_name: str
    version: int = Field(..., ge=1)
    saved_at: datetime
    is_complete: bool = False


class StepRecord(ApiModel):
    step_name: str
    data: Dict[str, Any] = Field(default_factory=dict)
    is_complete: bool = False
    saved_at: datetime


class Draft(ApiModel):
    session_id: str
    application_id: str
    reference_number: str
    current_step: int = 1
    highest_completed_step: int = 0
    draft_version: int = 1
    step_versions: List[StepVersion] = Field(default_factory=list)
    # "step_{n}" → payload, the shape the wizard restores from
    data: Dict[str, Any] = Field(default_factory=dict)
    last_saved_at: datetime
    created_at: datetime
    is_submitted: bool = False
    submitted_at: Optional[datetime] = None


class DraftRecord(Draft):
    """Persisted form of a Draft: the latest StepRecord per step replaces the data map."""
    # str(step_number) → StepRecord (JSON object keys are strings)
    steps: Dict[str, StepRecord] = Field(default_factory=dict)


class DraftSaveReceipt(ApiModel):
    success: bool = True
    draft_version: int
    saved_at: datetime


class StepData(ApiModel):
    data: Dict[str, Any]
    is_complete: bool


class SubmissionReceipt(ApiModel):
    reference_number: str
    application_id: str
    submitted_at: datetime
    status: Literal["SUBMITTED", "PENDING_VERIFICATION"] = "SUBMITTED"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class InitializeDraftRequest(ApiModel):
    session_id: str = Field(..., min_length=1)


class SaveDraftStepRequest(ApiModel):
    session_id: str = Field(..., min_length=1)
    step_number: int = Field(..., ge=1)
    step_name: str = Field(..., min_length=1, max_length=100)
    data: Dict[str, Any] = Field(default_factory=dict)
    is_step_complete: bool = False
    # false: saving into a missing draft is a 404 instead of creating it
    auto_create: bool = True


class SubmitApplicationRequest(ApiModel):
    session_id: str = Field(..., min_length=1)
