"""
FastAPI dependencies — hand the app-scoped stores to route handlers.

The three stores are built once (main.create_app / lifespan) and kept on
app.state. require_live_session() is the caller-side policy that ties draft
writes to a live session; the DraftStore itself never checks.
"""
from fastapi import Request

from onboarding.config import Settings
from onboarding.draft.service import DraftStore
from onboarding.errors import ApiError
from onboarding.otp.service import OtpAttemptTracker
from onboarding.results import Expired, NotFound
from onboarding.session.service import SessionStore


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_draft_store(request: Request) -> DraftStore:
    return request.app.state.draft_store


def get_otp_tracker(request: Request) -> OtpAttemptTracker:
    return request.app.state.otp_tracker


async def require_live_session(request: Request, session_id: str) -> None:
    """
    Raise 404 / 401 unless session_id names a live session.
    Skipped entirely when settings.enforce_session_on_draft_writes is off.
    """
    settings: Settings = request.app.state.settings
    if not settings.enforce_session_on_draft_writes:
        return

    sessions: SessionStore = request.app.state.session_store
    result = await sessions.get_session(session_id)
    if isinstance(result, NotFound):
        raise ApiError(404, "NOT_FOUND", "Session not found")
    if isinstance(result, Expired):
        raise ApiError(401, "SESSION_EXPIRED", "Session has expired. Please start again.")
