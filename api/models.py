"""
API request and response models for HireBoard REST endpoints.

Pydantic v2 models for what crosses the wire. The dataclasses in
auth/models.py are the domain side; route handlers translate between them.

Wire field names are camelCase (firstName, accessToken, ...) to match the
browser client; Python attribute names stay snake_case via alias_generator.
"""

from typing import Annotated, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

_REQUEST_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
)

# Surrounding whitespace is trimmed from names and contact fields only.
# Passwords and OTPs are compared byte for byte and are passed through as sent.
TrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True)]


class SignUpRequest(BaseModel):
    """Request body for POST /api/v1/auth/signup."""

    model_config = _REQUEST_CONFIG

    first_name: TrimmedStr = Field(min_length=1, max_length=100)
    last_name: TrimmedStr = Field(min_length=1, max_length=100)
    email: TrimmedStr = Field(min_length=3, max_length=255)
    phone: TrimmedStr = Field(min_length=1, max_length=30)
    # bcrypt reads at most 72 bytes; the service rejects longer multi-byte input.
    password: str = Field(min_length=1, max_length=72)
    otp: str = Field(min_length=1, max_length=32)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = _REQUEST_CONFIG

    email: TrimmedStr = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class GoogleSignInRequest(BaseModel):
    """Request body for POST /api/v1/auth/google.

    tokenId is accepted as an alias for older clients.
    """

    model_config = _REQUEST_CONFIG

    identity_token: TrimmedStr = Field(
        min_length=1,
        max_length=8192,
        validation_alias=AliasChoices("identityToken", "tokenId"),
    )


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/reset-password."""

    model_config = _REQUEST_CONFIG

    new_password: str = Field(min_length=1, max_length=72)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AuthResponse(BaseModel):
    """Success body for signup, login and Google sign-in.

    The refresh token is deliberately absent -- it travels in the httpOnly
    cookie only.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    message: str
    access_token: str
    role: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class MeResponse(BaseModel):
    """Claims carried by the caller's access token."""

    model_config = ConfigDict(frozen=True)

    id: int
    role: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
