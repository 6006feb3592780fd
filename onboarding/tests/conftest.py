"""
Test configuration for the onboarding state service.

Every fixture shares one ManualClock, so a test can create a session, call
clock.advance(1801) and observe expiry without sleeping. The OTP tracker
issues the fixed code KNOWN_OTP so verification paths are deterministic.
"""
from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from onboarding.clock import ManualClock
from onboarding.config import Settings
from onboarding.draft.service import DraftStore
from onboarding.main import create_app
from onboarding.otp.service import OtpAttemptTracker
from onboarding.session.service import SessionStore
from onboarding.stores.memory import InMemoryStateStore

KNOWN_OTP = "123456"
WRONG_OTP = "000000"
MOBILE = "01712345678"
OTHER_MOBILE = "01812345678"


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(clock: ManualClock) -> InMemoryStateStore:
    return InMemoryStateStore(clock=clock)


@pytest.fixture
def sessions(store: InMemoryStateStore, clock: ManualClock) -> SessionStore:
    return SessionStore(store, clock=clock)


@pytest.fixture
def drafts(store: InMemoryStateStore, clock: ManualClock) -> DraftStore:
    return DraftStore(store, clock=clock)


@pytest.fixture
def tracker(store: InMemoryStateStore, clock: ManualClock) -> OtpAttemptTracker:
    return OtpAttemptTracker(store, clock=clock, code_factory=lambda: KNOWN_OTP)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        store_backend="memory",
        otp_fixed_code=KNOWN_OTP,
        enforce_session_on_draft_writes=True,
        debug=False,
    )


@pytest_asyncio.fixture
async def client(test_settings: Settings, store: InMemoryStateStore, clock: ManualClock):
    """Async httpx client using ASGI transport — no live server needed."""
    app = create_app(test_settings, store=store, clock=clock)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
