"""
auth/errors.py -- Failure taxonomy for the authentication flows.

Every outcome the service can refuse with is one AuthError subclass. Each
class carries the HTTP status, a machine-readable code and the default
message, so api/main.py maps them to responses with a single exception
handler and the service never imports FastAPI.

InvalidCredentialsError has one message for both "unknown email" and
"wrong password".
"""

from __future__ import annotations


class AuthError(Exception):
    status_code: int = 400
    code: str = "auth_error"
    message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(AuthError):
    status_code = 400
    code = "validation_error"
    message = "Please fill in all fields."


class ConflictError(AuthError):
    status_code = 409
    code = "conflict"
    message = "Email already in use."


class InvalidOtpError(AuthError):
    status_code = 422
    code = "invalid_otp"
    message = "Invalid OTP"


class InvalidCredentialsError(AuthError):
    status_code = 401
    code = "invalid_credentials"
    message = "Email or password is incorrect"


class BlockedAccountError(AuthError):
    status_code = 403
    code = "account_blocked"
    message = "Your account has been blocked"


class InvalidIdentityTokenError(AuthError):
    status_code = 401
    code = "invalid_identity_token"
    message = "Invalid Google identity token"


class UnverifiedEmailError(AuthError):
    status_code = 400
    code = "unverified_email"
    message = "Google account email not verified."


class UnauthorizedError(AuthError):
    status_code = 401
    code = "unauthorized"
    message = "Unauthorized or token expired"


class InvalidTokenError(AuthError):
    status_code = 401
    code = "invalid_token"
    message = "Invalid or expired token"


class NotFoundError(AuthError):
    status_code = 404
    code = "not_found"
    message = "User not found"


class InternalError(AuthError):
    status_code = 500
    code = "internal_error"
    message = "An unexpected error occurred."
