"""
Draft HTTP routes — POST   /api/drafts/initialize
                    GET    /api/drafts/{session_id}
                    POST   /api/drafts/save
                    DELETE /api/drafts/{session_id}
                    GET    /api/drafts/{session_id}/versions
                    GET    /api/drafts/{session_id}/step/{step_number}
                    POST   /api/application/submit

Writes (initialize, save, submit) go through require_live_session() first;
reads and clear work on any draft, live session or not.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Path, Request

from onboarding.dependencies import get_draft_store, require_live_session
from onboarding.draft.schemas import (
    InitializeDraftRequest,
    SaveDraftStepRequest,
    SubmitApplicationRequest,
)
from onboarding.draft.service import DraftStore
from onboarding.errors import unwrap
from onboarding.schemas import envelope

router = APIRouter(prefix="/api", tags=["draft"])
logger = logging.getLogger(__name__)


@router.post("/drafts/initialize")
async def initialize_draft(
    request: Request,
    body: InitializeDraftRequest,
    drafts: DraftStore = Depends(get_draft_store),
) -> dict:
    """Starts over: any existing draft for the session is discarded."""
    await require_live_session(request, body.session_id)
    draft = await drafts.initialize_draft(body.session_id)
    return envelope(200, "Draft initialized successfully", draft)


@router.get("/drafts/{session_id}")
async def get_draft(
    session_id: str,
    drafts: DraftStore = Depends(get_draft_store),
) -> dict:
    draft = await drafts.get_draft(session_id)
    if draft is None:
        return envelope(200, "No draft found for this session", None)
    return envelope(200, "Draft retrieved successfully", draft)


@router.post("/drafts/save")
async def save_draft_step(
    request: Request,
    body: SaveDraftStepRequest,
    drafts: DraftStore = Depends(get_draft_store),
) -> dict:
    """409 CONFLICT once the application has been submitted."""
    await require_live_session(request, body.session_id)
    result = await drafts.save_draft_step(
        body.session_id,
        body.step_number,
        body.step_name,
        body.data,
        is_complete=body.is_step_complete,
        auto_create=body.auto_create,
    )
    receipt = unwrap(result, subject="Draft")
    return envelope(200, "Draft saved", receipt)


@router.delete("/drafts/{session_id}")
async def clear_draft(
    session_id: str,
    drafts: DraftStore = Depends(get_draft_store),
) -> dict:
    await drafts.clear_draft(session_id)
    return envelope(200, "Draft cleared successfully")


@router.get("/drafts/{session_id}/versions")
async def get_step_versions(
    session_id: str,
    drafts: DraftStore = Depends(get_draft_store),
) -> dict:
    versions = await drafts.get_step_versions(session_id)
    message = "Versions retrieved" if versions else "No versions found"
    return envelope(200, message, versions)


@router.get("/drafts/{session_id}/step/{step_number}")
async def get_step_data(
    session_id: str,
    step_number: int = Path(..., ge=1),
    drafts: DraftStore = Depends(get_draft_store),
) -> dict:
    step = await drafts.get_step_data(session_id, step_number)
    if step is None:
        return envelope(200, "Step data not found", None)
    return envelope(200, "Step data retrieved", step)


@router.post("/application/submit")
async def submit_application(
    request: Request,
    body: SubmitApplicationRequest,
    drafts: DraftStore = Depends(get_draft_store),
) -> dict:
    await require_live_session(request, body.session_id)
    receipt = unwrap(await drafts.submit_draft(body.session_id), subject="Draft")
    logger.info("Application submitted session_id=%s", body.session_id)
    return envelope(200, "Application submitted successfully", receipt)
