"""
main.py — Onboarding state service FastAPI application entry point.

Start with: uvicorn onboarding.main:app --reload --port 8000

Tests build their own app with create_app(settings, store=InMemoryStateStore(clock), clock=clock)
so the stores are wired immediately and no lifespan is needed.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from onboarding.clock import Clock, SystemClock
from onboarding.config import Settings, settings as default_settings
from onboarding.draft.routes import router as draft_router
from onboarding.draft.service import DraftStore
from onboarding.errors import ApiError
from onboarding.otp.routes import router as otp_router
from onboarding.otp.service import OtpAttemptTracker
from onboarding.schemas import Envelope, ErrorBody, ErrorDetail
from onboarding.session.routes import router as session_router
from onboarding.session.service import SessionStore
from onboarding.stores import StateStore, build_store

# ---------------------------------------------------------------------------
# Logging — configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if default_settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Store wiring
# ---------------------------------------------------------------------------
def wire_stores(app: FastAPI, store: StateStore, clock: Clock, settings: Settings) -> None:
    """Build the three state services over one backing store and park them on app.state."""
    code_factory = None
    if settings.otp_fixed_code:
        fixed_code = settings.otp_fixed_code
        code_factory = lambda: fixed_code  # noqa: E731
        logger.warning("OTP_FIXED_CODE is set — every challenge uses the same code (development only)")

    app.state.store = store
    app.state.session_store = SessionStore(
        store,
        clock=clock,
        ttl_seconds=settings.session_ttl_seconds,
        warning_seconds=settings.session_warning_seconds,
        retention_grace_seconds=settings.session_retention_grace_seconds,
        key_prefix=settings.key_prefix,
    )
    app.state.draft_store = DraftStore(store, clock=clock, key_prefix=settings.key_prefix)
    app.state.otp_tracker = OtpAttemptTracker(
        store,
        clock=clock,
        max_attempts=settings.otp_max_attempts,
        lock_seconds=settings.otp_lock_seconds,
        expiry_seconds=settings.otp_expiry_seconds,
        retention_seconds=settings.otp_retention_seconds,
        code_factory=code_factory,
        key_prefix=settings.key_prefix,
    )


# ---------------------------------------------------------------------------
# Lifespan — startup & shutdown hooks
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Build the configured store backend (redis pool / SQL tables / memory)
         unless one was injected into create_app()
    Shutdown:
      1. Close the backend the lifespan opened
    """
    settings: Settings = app.state.settings
    owns_store = getattr(app.state, "store", None) is None
    if owns_store:
        store = await build_store(settings, clock=app.state.clock)
        wire_stores(app, store, app.state.clock, settings)
        logger.info("State store backend=%s ready", settings.store_backend)

    logger.info("Onboarding state service v%s starting up", settings.app_version)
    yield

    # --- Shutdown ---
    if owns_store:
        await app.state.store.close()
    logger.info("Onboarding state service shutting down")


# ---------------------------------------------------------------------------
# Error response helper
# ---------------------------------------------------------------------------
def _make_error_response(
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Build a standard {status, message, error: {code, details}} response."""
    body = Envelope(
        status=status_code,
        message=message,
        error=ErrorBody(
            code=code,
            details=[ErrorDetail(**d) for d in (details or [])],
        ),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


# ---------------------------------------------------------------------------
# Global exception handlers
# ---------------------------------------------------------------------------
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Failures translated from store results (errors.unwrap) or caller policy."""
    return _make_error_response(
        code=exc.code,
        message=exc.message,
        details=exc.details,
        status_code=exc.status_code,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies, bad mobile numbers, step_number < 1: every violation in one 422."""
    details = []
    for error in exc.errors():
        # "body" is implied for JSON payloads
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        details.append({"field": field or None, "issue": error["msg"]})
    return _make_error_response(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        details=details,
        status_code=422,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Routing-level errors (unknown path, wrong method) in the same envelope."""
    code_map = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        429: "RATE_LIMITED",
    }
    code = code_map.get(exc.status_code, f"HTTP_{exc.status_code}")
    return _make_error_response(
        code=code,
        message=str(exc.detail),
        status_code=exc.status_code,
    )


def _unhandled_exception_handler(debug: bool):
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Store outages and bugs. Exception text is only echoed to the client when debug is on."""
        logger.error(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            exc_info=True,
        )
        if debug:
            details = [{"issue": f"{type(exc).__name__}: {exc}"}]
            message = "An unexpected error occurred (debug details included)"
        else:
            details = []
            message = "An unexpected error occurred"
        return _make_error_response(
            code="INTERNAL_ERROR",
            message=message,
            details=details,
            status_code=500,
        )

    return unhandled_exception_handler


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------
def create_app(
    settings: Optional[Settings] = None,
    store: Optional[StateStore] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    settings = settings or default_settings
    clock = clock or SystemClock()

    app = FastAPI(
        title="Onboarding State API",
        version=settings.app_version,
        description=(
            "Session, draft and OTP attempt state for the credit card application wizard. "
            "TTL-governed sessions, versioned step drafts and rate-limited OTP verification."
        ),
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    app.state.settings = settings
    app.state.clock = clock
    app.state.store = None
    if store is not None:
        wire_stores(app, store, clock, settings)

    # -----------------------------------------------------------------------
    # CORS middleware — restricted to frontend origins from settings
    # -----------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Registered BEFORE routers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler(settings.debug))

    # -----------------------------------------------------------------------
    # Health endpoint (no auth required)
    # -----------------------------------------------------------------------
    @app.get("/api/health", tags=["System"])
    async def health_check() -> dict:
        """Returns service health status and the active store backend."""
        return {
            "status": "ok",
            "version": settings.app_version,
            "store_backend": settings.store_backend,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    app.include_router(session_router)
    app.include_router(draft_router)
    app.include_router(otp_router)
    return app


app = create_app()
