"""
Session HTTP routes — POST   /api/session/create
                      GET    /api/session/{session_id}
                      POST   /api/session/{session_id}/extend
                      DELETE /api/session/{session_id}
                      GET    /api/session/{session_id}/validate
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from onboarding.dependencies import get_session_store
from onboarding.errors import unwrap
from onboarding.schemas import envelope
from onboarding.session.schemas import CreateSessionRequest
from onboarding.session.service import SessionStore

router = APIRouter(prefix="/api/session", tags=["session"])
logger = logging.getLogger(__name__)


@router.post("/create")
async def create_session(
    body: CreateSessionRequest,
    sessions: SessionStore = Depends(get_session_store),
) -> dict:
    session = await sessions.create_session(body.mode, body.staff_id)
    return envelope(200, "Session created successfully", session)


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    sessions: SessionStore = Depends(get_session_store),
) -> dict:
    """404 if unknown, 401 SESSION_EXPIRED if the window has lapsed."""
    session = unwrap(await sessions.get_session(session_id), subject="Session")
    return envelope(200, "Session retrieved successfully", session)


@router.post("/{session_id}/extend")
async def extend_session(
    session_id: str,
    sessions: SessionStore = Depends(get_session_store),
) -> dict:
    extension = unwrap(await sessions.extend_session(session_id), subject="Session")
    return envelope(200, "Session extended successfully", extension)


@router.delete("/{session_id}")
async def end_session(
    session_id: str,
    sessions: SessionStore = Depends(get_session_store),
) -> dict:
    await sessions.end_session(session_id)
    return envelope(200, "Session ended successfully")


@router.get("/{session_id}/validate")
async def validate_session(
    session_id: str,
    sessions: SessionStore = Depends(get_session_store),
) -> dict:
    validity = await sessions.validate_session(session_id)
    return envelope(200, "Session validated", validity)
