"""
auth/tokens.py -- JWT signing, password hashing, and cookie utilities.

Security design decisions:
  JWT: python-jose with HS256. One TokenSigner per purpose (access, refresh,
       reset), each holding its own secret, expiry and audience claim. The
       signing logic exists once; the isolation comes from the parameters.
       A refresh token presented as a reset token fails twice over: wrong
       secret and wrong audience. Verification returns None on any failure
       -- the service turns that into the right error for the flow.

  Passwords: bcrypt directly (no passlib wrapper). Bcrypt is the right choice
       for low-entropy secrets because its cost factor makes brute-force
       expensive. The dummy hash enables timing equalization in the login
       flow so response time does not reveal whether an email exists [C1].

  Empty hashes: federation-only accounts store "" as their hash. verify()
       returns False for an empty hash before bcrypt ever sees it, so an
       empty password can never match an empty hash.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from auth.models import Account
from core.config import Settings

logger = logging.getLogger("hireboard.auth")

_ALGORITHM = "HS256"

# Audience claims bind a token to the purpose it was minted for.
ACCESS_AUDIENCE = "hireboard:access"
REFRESH_AUDIENCE = "hireboard:refresh"
RESET_AUDIENCE = "hireboard:reset"


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


class PasswordHasher:
    """One-way bcrypt hash + verify capability.

    bcrypt only looks at the first 72 bytes of its input (bcrypt 5.x raises
    instead of truncating). hash() rejects longer passwords with ValueError so
    two passwords sharing a 72-byte prefix can never collide silently.
    """

    MAX_PASSWORD_BYTES = 72

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        # Computed once so the first login attempt is not measurably slower
        # than later ones [C1].
        self._dummy_hash = self.hash("hireboard_timing_dummy")

    def hash(self, plain: str) -> str:
        encoded = plain.encode("utf-8")
        if len(encoded) > self.MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {self.MAX_PASSWORD_BYTES} bytes.")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        An empty or missing hash never matches.
        """
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    def burn(self, plain: str) -> None:
        """Run a full bcrypt comparison whose result is discarded [C1].

        Called when there is no real hash to check against (unknown email,
        federation-only account) so every failed login costs the same.
        """
        self.verify(plain, self._dummy_hash)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenSigner:
    """Sign and verify tokens for exactly one purpose.

    Args:
        audience:       Audience claim written on sign and required on verify.
        secret:         HMAC key used only for this purpose.
        expire_seconds: Lifetime of issued tokens.
    """

    audience: str
    secret: str
    expire_seconds: int

    def sign(self, claims: dict[str, Any]) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "aud": self.audience,
            "iat": now,
            "exp": now + timedelta(seconds=self.expire_seconds),
        }
        return jwt.encode(payload, self.secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> dict | None:
        """Decode and verify a token. Returns the payload dict or None on any failure.

        Checks signature, expiry and audience. Stateless: concurrent callers
        share nothing but the immutable secret.
        """
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[_ALGORITHM],
                audience=self.audience,
                options={"require_exp": True, "require_aud": True},
            )
        except JWTError as exc:
            logger.debug("Rejected %s token: %s", self.audience, exc)
            return None


class TokenIssuer:
    """Creates and validates the three token kinds.

    Access:  {"userInfo": {"id", "role"}} -- returned in the response body.
    Refresh: {"id", "role"}               -- refresh cookie only.
    Reset:   {"email"}                    -- reset cookie only.
    """

    def __init__(self, access: TokenSigner, refresh: TokenSigner, reset: TokenSigner) -> None:
        self.access = access
        self.refresh = refresh
        self.reset = reset

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenIssuer:
        return cls(
            access=TokenSigner(ACCESS_AUDIENCE, settings.access_token_secret, settings.token_expire_seconds),
            refresh=TokenSigner(REFRESH_AUDIENCE, settings.refresh_token_secret, settings.token_expire_seconds),
            reset=TokenSigner(RESET_AUDIENCE, settings.reset_token_secret, settings.reset_token_expire_seconds),
        )

    def issue_access_token(self, account: Account) -> str:
        return self.access.sign({"userInfo": {"id": account.id, "role": account.role.value}})

    def issue_refresh_token(self, account: Account) -> str:
        return self.refresh.sign({"id": account.id, "role": account.role.value})

    def issue_reset_token(self, email: str) -> str:
        """Mint a reset token for email.

        Issued by the forgot-password flow once the holder has proved control
        of the mailbox; only verified in this package.
        """
        return self.reset.sign({"email": email})

    def decode_access_token(self, token: str) -> dict | None:
        payload = self.access.verify(token)
        if payload is None:
            return None
        info = payload.get("userInfo")
        if not isinstance(info, dict) or "id" not in info or "role" not in info:
            return None
        return payload

    def decode_refresh_token(self, token: str) -> dict | None:
        payload = self.refresh.verify(token)
        if payload is None or "id" not in payload or "role" not in payload:
            return None
        return payload

    def decode_reset_token(self, token: str) -> str | None:
        """Return the email a reset token targets, or None if it is not usable."""
        payload = self.reset.verify(token)
        if payload is None:
            return None
        email = payload.get("email")
        if not isinstance(email, str) or not email:
            return None
        return email


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_refresh_cookie(response, token: str, settings: Settings) -> None:
    """Write the refresh token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite:      from COOKIE_SAMESITE, "lax" by default.
    secure:        from SECURE_COOKIES; true in production behind HTTPS.
    max_age:       matches the refresh token expiry so both expire together.
    """
    response.set_cookie(
        settings.refresh_cookie_name,
        value=token,
        httponly=True,
        samesite=settings.cookie_samesite,
        secure=settings.secure_cookies,
        max_age=settings.token_expire_seconds,
    )
