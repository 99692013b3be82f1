"""
auth/service.py -- The authentication flows: signup, login, Google sign-in,
and password reset.

AuthService composes the collaborators built at startup (stores, token
issuer, password hasher, identity verifier) and exposes one coroutine per
flow. Each flow either returns an AuthResult or raises an AuthError subclass
from auth/errors.py -- never a raw SQLAlchemy, bcrypt, or provider exception.
The route layer serialises the result; it makes no decisions of its own.

Security:
  [C1] login() always runs bcrypt, against a dummy hash when the email is
       unknown or the account has no password. Unknown email, federation-only
       account and wrong password produce the same error after the same work.

  [M1] Uniqueness of email is the database's job. Concurrent signups for one
       email are resolved by the UNIQUE constraint; the loser gets
       ConflictError. Concurrent first Google sign-ins re-read the winner's
       record instead of failing.

  Collaborator faults (storage errors, an unreachable identity provider) are
  logged with their traceback and surface as InternalError with a generic
  message. No retries happen here.

Only bcrypt is pushed to the thread pool. Store calls are short synchronous
SQLAlchemy queries and run inline on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from auth.errors import (
    BlockedAccountError,
    ConflictError,
    InternalError,
    InvalidCredentialsError,
    InvalidIdentityTokenError,
    InvalidOtpError,
    InvalidTokenError,
    NotFoundError,
    UnauthorizedError,
    UnverifiedEmailError,
    ValidationError,
)
from auth.identity import GoogleIdentityVerifier, IdentityProviderUnavailable, IdentityVerificationError
from auth.models import Account, OtpRecord
from auth.store import AccountStore, OtpStore
from auth.tokens import PasswordHasher, TokenIssuer

logger = logging.getLogger("hireboard.auth")


@dataclass
class AuthResult:
    """Outcome of a successful flow.

    refresh_token is for the cookie only; the route layer must never put it
    in a response body.
    """

    status_code: int
    message: str
    access_token: str | None = None
    refresh_token: str | None = None
    role: str | None = None

    def body(self) -> dict:
        content: dict = {"message": self.message}
        if self.access_token is not None:
            content["accessToken"] = self.access_token
            content["role"] = self.role
        return content


class AuthService:
    def __init__(
        self,
        accounts: AccountStore,
        otps: OtpStore,
        tokens: TokenIssuer,
        hasher: PasswordHasher,
        identity: GoogleIdentityVerifier,
        identity_timeout: float = 10.0,
        otp_max_age_seconds: int = 0,
    ) -> None:
        self.accounts = accounts
        self.otps = otps
        self.tokens = tokens
        self.hasher = hasher
        self.identity = identity
        self.identity_timeout = identity_timeout
        self.otp_max_age_seconds = otp_max_age_seconds

    # ------------------------------------------------------------------
    # SignUp
    # ------------------------------------------------------------------

    async def sign_up(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        password: str,
        otp: str,
    ) -> AuthResult:
        """Create a standard user account after checking the emailed OTP."""
        _require(first_name, last_name, email, phone, password, otp)
        try:
            if self.accounts.get_by_email(email) is not None:
                raise ConflictError()

            if not self._otp_matches(self.otps.latest(email), otp):
                raise InvalidOtpError()

            password_hash = await self._hash(password)
            account = Account(
                email=email,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                password_hash=password_hash,
            )
            try:
                account.id = self.accounts.create_account(account)
            except IntegrityError as exc:
                # [M1] a concurrent signup won the race for this email
                raise ConflictError() from exc
        except SQLAlchemyError as exc:
            logger.exception("Signup failed for a storage error")
            raise InternalError("Error creating user") from exc

        logger.info("Account %s created via signup", account.id)
        return self._issue(account, 201, "User created successfully")

    def _otp_matches(self, record: OtpRecord | None, otp: str) -> bool:
        if record is None or record.code != otp:
            return False
        if self.otp_max_age_seconds and record.created_at:
            issued = datetime.fromisoformat(record.created_at)
            if datetime.now(timezone.utc) - issued > timedelta(seconds=self.otp_max_age_seconds):
                return False
        return True

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> AuthResult:
        """Password login. [C1] timing-equalised; blocked check after the password check."""
        _require(email, password)
        try:
            account = self.accounts.get_by_email(email)
        except SQLAlchemyError as exc:
            logger.exception("Login failed for a storage error")
            raise InternalError("Error logging in") from exc

        if account is None or not account.password_hash:
            await run_in_threadpool(self.hasher.burn, password)
            raise InvalidCredentialsError()
        if not await run_in_threadpool(self.hasher.verify, password, account.password_hash):
            raise InvalidCredentialsError()
        if account.is_blocked:
            logger.warning("Blocked account %s attempted password login", account.id)
            raise BlockedAccountError()

        return self._issue(account, 200, f"{account.first_name} logged in successfully")

    # ------------------------------------------------------------------
    # FederatedSignIn
    # ------------------------------------------------------------------

    async def federated_sign_in(self, identity_token: str) -> AuthResult:
        """Sign in (creating or linking the account) with a Google ID token."""
        if not identity_token:
            raise ValidationError("No token provided for Google sign-in")

        try:
            claims = await asyncio.wait_for(self.identity.verify(identity_token), timeout=self.identity_timeout)
        except IdentityVerificationError as exc:
            logger.info("Rejected Google identity token: %s", exc)
            raise InvalidIdentityTokenError() from exc
        except (IdentityProviderUnavailable, asyncio.TimeoutError) as exc:
            logger.exception("Google identity verification unavailable")
            raise InternalError("Error during Google sign in") from exc

        if not claims.email_verified:
            logger.warning("Google sign-in refused: email not verified by provider")
            raise UnverifiedEmailError()

        try:
            account = self.accounts.get_by_email(claims.email)
            if account is None:
                account = self._create_federated(claims.email, claims.subject, claims.given_name, claims.family_name)
            if account.is_blocked:
                logger.warning("Blocked account %s attempted Google sign-in", account.id)
                raise BlockedAccountError()
            if not account.google_id:
                if self.accounts.link_google_id(account.id, claims.subject):
                    account.google_id = claims.subject
                    logger.info("Linked Google identity to account %s", account.id)
        except SQLAlchemyError as exc:
            logger.exception("Google sign-in failed for a storage error")
            raise InternalError("Error during Google sign in") from exc

        return self._issue(account, 200, f"{account.first_name} logged in successfully via Google")

    def _create_federated(self, email: str, subject: str, given_name: str, family_name: str) -> Account:
        account = Account(
            email=email,
            first_name=given_name,
            last_name=family_name,
            google_id=subject,
            password_hash="",
        )
        try:
            account.id = self.accounts.create_account(account)
        except IntegrityError:
            # [M1] a concurrent sign-in created it first; continue with theirs
            existing = self.accounts.get_by_email(email)
            if existing is None:
                raise ConflictError() from None
            return existing
        logger.info("Account %s created via Google sign-in", account.id)
        return account

    # ------------------------------------------------------------------
    # PasswordReset
    # ------------------------------------------------------------------

    async def check_reset_token(self, reset_token: str | None) -> AuthResult:
        """Tell the reset page whether its cookie is still usable."""
        if not reset_token:
            raise UnauthorizedError()
        email = self.tokens.decode_reset_token(reset_token)
        if email is None:
            raise InvalidTokenError()
        try:
            account = self.accounts.get_by_email(email)
        except SQLAlchemyError as exc:
            logger.exception("Reset token check failed for a storage error")
            raise InternalError() from exc
        if account is None:
            raise InvalidTokenError("Invalid token")
        return AuthResult(status_code=200, message="Token valid")

    async def reset_password(self, new_password: str, reset_token: str | None) -> AuthResult:
        """Overwrite the password of the account the reset token targets."""
        if not new_password:
            raise ValidationError("New password is required")
        if not reset_token:
            raise UnauthorizedError()
        email = self.tokens.decode_reset_token(reset_token)
        if email is None:
            raise InvalidTokenError()

        try:
            account = self.accounts.get_by_email(email)
            if account is None:
                raise NotFoundError()
            password_hash = await self._hash(new_password)
            if not self.accounts.update_password(account.id, password_hash):
                raise NotFoundError()
        except SQLAlchemyError as exc:
            logger.exception("Password reset failed for a storage error")
            raise InternalError("Error during password reset") from exc

        logger.info("Password reset for account %s", account.id)
        return AuthResult(status_code=200, message="Password reset successfully")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _hash(self, password: str) -> str:
        try:
            return await run_in_threadpool(self.hasher.hash, password)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    def _issue(self, account: Account, status_code: int, message: str) -> AuthResult:
        return AuthResult(
            status_code=status_code,
            message=message,
            access_token=self.tokens.issue_access_token(account),
            refresh_token=self.tokens.issue_refresh_token(account),
            role=account.role.value,
        )


def _require(*values: str | None) -> None:
    if not all(v and v.strip() for v in values):
        raise ValidationError()
