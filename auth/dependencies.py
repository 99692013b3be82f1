"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_auth_service() hands routes the AuthService built in the lifespan.
get_reset_token() reads the reset cookie; an absent cookie is passed through
as None so the service decides how to refuse it.
get_access_claims() verifies an "Authorization: Bearer <access token>"
header and raises HTTP 401 if it is missing or invalid. It only proves who
the caller is and which role they carry -- it does not enforce permissions.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.service import AuthService
from core.config import Settings


def get_settings_from_app(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_reset_token(request: Request) -> str | None:
    settings: Settings = request.app.state.settings
    return request.cookies.get(settings.reset_cookie_name) or None


def get_access_claims(request: Request) -> dict:
    """Require a valid access token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(claims: dict = Depends(get_access_claims)): ...

    Returns the token's userInfo claim ({"id", "role"}).
    """
    auth_header = request.headers.get("Authorization", "")
    token = auth_header[7:] if auth_header.startswith("Bearer ") else ""
    payload = request.app.state.auth_service.tokens.decode_access_token(token) if token else None
    if payload is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return payload["userInfo"]
