"""
api/main.py -- FastAPI application entry point for HireBoard authentication.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware -- adds CORS headers for the configured browser origins
                       (credentials allowed so the refresh cookie round-trips)
  2. log_requests   -- one access-log line per request

Lifespan builds every collaborator of AuthService exactly once -- the DB
engine, both stores, the token issuer, the password hasher and the Google
verifier -- and disposes the engine on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import AuthError, InternalError
from auth.identity import GoogleIdentityVerifier
from auth.service import AuthService
from auth.store import AccountStore, OtpStore, create_db_engine
from auth.tokens import PasswordHasher, TokenIssuer
from core.config import Settings, get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("hireboard.api")


def build_auth_service(settings: Settings, accounts: AccountStore, otps: OtpStore) -> AuthService:
    """Wire AuthService from settings. Shared by the lifespan and the tests."""
    return AuthService(
        accounts=accounts,
        otps=otps,
        tokens=TokenIssuer.from_settings(settings),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        identity=GoogleIdentityVerifier.from_settings(settings),
        identity_timeout=settings.identity_verify_timeout_seconds,
        otp_max_age_seconds=settings.otp_max_age_seconds,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the database and build AuthService on startup; dispose the engine on shutdown."""
    logger.info("HireBoard auth API starting up")
    settings = get_settings()
    engine = create_db_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.auth_service = build_auth_service(settings, AccountStore(engine), OtpStore(engine))
    logger.info("Auth initialized (secure_cookies=%s, samesite=%s)", settings.secure_cookies, settings.cookie_samesite)

    yield

    engine.dispose()
    logger.info("HireBoard auth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="HireBoard Auth API",
    description="Signup with e-mail OTP, password login, Google sign-in and password reset.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every failure leaves as {"error": {"code", "message", "detail"}} whatever
# raised it, so the frontend reads one shape.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map the service's failure taxonomy onto HTTP.

    InternalError was already logged with its cause by the service; only its
    generic message reaches the client.
    """
    resp = _error(exc.status_code, exc.code, exc.message)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the request body fails validation.

    422 is reserved for a wrong OTP, so malformed input must not share it.
    The submitted values are left out of the detail; they may be passwords.
    """
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
    detail = ", ".join(f for f in fields if f) or None
    return _error(400, "validation_error", "Please fill in all fields.", detail=detail)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Wrap HTTPException (401 from get_access_claims, 404, 405) in the envelope.

    A dict detail already has code and message and is used as-is.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything the service did not translate becomes a generic 500.

    The traceback is logged; the client sees only InternalError's message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, InternalError.code, InternalError.message)


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
