"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/signup          -- create account after OTP check; sets refresh cookie
  POST /api/v1/auth/login           -- password login; sets refresh cookie
  POST /api/v1/auth/google          -- Google ID token sign-in; sets refresh cookie
  GET  /api/v1/auth/reset-password  -- is the reset cookie still usable?
  POST /api/v1/auth/reset-password  -- set a new password (reset cookie required)
  GET  /api/v1/auth/me              -- claims of the caller's access token

Every handler is a thin adapter: parse the body, call one AuthService flow,
serialise the AuthResult. Failures are AuthError subclasses and are turned
into responses by the exception handler in api/main.py.

Security:
  [M5] Cache-Control: no-store on every response that carries a token.
  The refresh token is only ever written to the httpOnly cookie, never to
  the JSON body. The reset token is only ever read from its cookie.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.models import (
    AuthResponse,
    GoogleSignInRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    ResetPasswordRequest,
    SignUpRequest,
)
from auth.dependencies import get_access_claims, get_auth_service, get_reset_token, get_settings_from_app
from auth.service import AuthResult, AuthService
from auth.tokens import set_refresh_cookie
from core.config import Settings

# Auth policy:
# - POST /api/v1/auth/signup, /login, /google:  public -- these establish identity
# - GET/POST /api/v1/auth/reset-password:       reset cookie (checked by the service)
# - GET /api/v1/auth/me:                        access token (get_access_claims)
router = APIRouter()


def _token_response(result: AuthResult, settings: Settings) -> JSONResponse:
    resp = JSONResponse(status_code=result.status_code, content=result.body())
    set_refresh_cookie(resp, result.refresh_token, settings)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/signup", response_model=AuthResponse, status_code=201)
async def signup(
    body: SignUpRequest,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings_from_app),
) -> JSONResponse:
    """Create a user account. The OTP must be the latest one mailed to the address."""
    result = await service.sign_up(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        phone=body.phone,
        password=body.password,
        otp=body.otp,
    )
    return _token_response(result, settings)


@router.post("/auth/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings_from_app),
) -> JSONResponse:
    """Authenticate with email and password.

    Unknown email and wrong password return the same 401 body.
    """
    result = await service.login(body.email, body.password)
    return _token_response(result, settings)


@router.post("/auth/google", response_model=AuthResponse)
async def google_sign_in(
    body: GoogleSignInRequest,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings_from_app),
) -> JSONResponse:
    """Sign in with a Google ID token, creating or linking the account by email."""
    result = await service.federated_sign_in(body.identity_token)
    return _token_response(result, settings)


@router.get("/auth/reset-password", response_model=MessageResponse)
async def check_reset_token(
    service: AuthService = Depends(get_auth_service),
    reset_token: str | None = Depends(get_reset_token),
) -> MessageResponse:
    result = await service.check_reset_token(reset_token)
    return MessageResponse(message=result.message)


@router.post("/auth/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
    reset_token: str | None = Depends(get_reset_token),
) -> MessageResponse:
    result = await service.reset_password(body.new_password, reset_token)
    return MessageResponse(message=result.message)


@router.get("/auth/me", response_model=MeResponse)
async def me(claims: dict = Depends(get_access_claims)) -> MeResponse:
    """Return the identity carried by the caller's access token."""
    return MeResponse(id=claims["id"], role=claims["role"])
