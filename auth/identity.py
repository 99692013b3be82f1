"""
auth/identity.py -- Google ID token verification via the Authlib OpenID client.

The browser obtains a Google ID token (Google Identity Services / One Tap) and
posts it to /auth/google. This module checks that token against Google's
published signing keys and returns the verified profile claims. There is no
redirect or authorization-code exchange, so no session state is involved.

The Authlib OAuth registry is built once at startup (GoogleIdentityVerifier.
from_settings) and injected into AuthService. Its only mutable state is
Authlib's own cache of the discovery document and JWKS.

Security notes:
  [H1] Email verification is the caller's decision, not ours: the claims carry
       email_verified and AuthService refuses unverified addresses. An
       unverified email could be a victim's address added by an attacker.

  [H2] Audience is pinned to GOOGLE_CLIENT_ID and the issuer to Google's two
       documented values. A token minted for another client application is
       rejected even though Google signed it.

  Key rotation: Authlib re-downloads the JWKS once when the token's kid is
  unknown, so rotated keys are picked up without a restart.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from authlib.integrations.starlette_client import OAuth
from authlib.oidc.core import CodeIDToken
from joserfc.errors import JoseError

from core.config import Settings

logger = logging.getLogger("hireboard.auth.identity")

GOOGLE_ISSUERS = ["accounts.google.com", "https://accounts.google.com"]


class IdentityVerificationError(Exception):
    """The identity token is not acceptable (signature, expiry, audience, shape)."""


class IdentityProviderUnavailable(Exception):
    """Verification could not be attempted (provider unreachable or not configured)."""


@dataclass(frozen=True)
class IdentityClaims:
    subject: str
    email: str
    email_verified: bool
    given_name: str = ""
    family_name: str = ""


class GoogleIdentityVerifier:
    """Verify Google ID tokens with an Authlib OpenID client.

    Args:
        client:    Authlib OAuth app registered for Google (needs client_id and
                   either server_metadata_url or an inline jwks).
        issuers:   Accepted "iss" values.
        leeway:    Clock skew tolerance in seconds for exp/iat checks.
    """

    def __init__(self, client, issuers: list[str] | None = None, leeway: int = 60) -> None:
        self._client = client
        self.issuers = issuers or GOOGLE_ISSUERS
        self.leeway = leeway

    @classmethod
    def from_settings(cls, settings: Settings) -> GoogleIdentityVerifier:
        oauth = OAuth()
        client = oauth.register(
            name="google",
            client_id=settings.google_client_id,
            server_metadata_url=settings.google_discovery_url,
            client_kwargs={"scope": "openid email profile", "timeout": settings.identity_verify_timeout_seconds},
        )
        if settings.google_client_id:
            logger.info("Google identity verifier registered")
        else:
            logger.warning("GOOGLE_CLIENT_ID not set -- Google sign-in will be refused")
        return cls(client)

    async def verify(self, id_token: str) -> IdentityClaims:
        """Verify id_token and return its profile claims.

        Raises:
            IdentityVerificationError:  the token itself is unacceptable.
            IdentityProviderUnavailable: keys could not be fetched or Google
                                         sign-in is not configured.
        """
        client_id = self._client.client_id
        if not client_id:
            raise IdentityProviderUnavailable("GOOGLE_CLIENT_ID is not configured")

        claims_options = {
            "iss": {"essential": True, "values": self.issuers},
            "aud": {"essential": True, "value": client_id},
            "sub": {"essential": True},
            "email": {"essential": True},
        }
        try:
            userinfo = await self._client.parse_id_token(
                {"id_token": id_token},
                nonce=None,
                claims_options=claims_options,
                claims_cls=CodeIDToken,
                leeway=self.leeway,
            )
        except (JoseError, ValueError) as exc:
            raise IdentityVerificationError(str(exc)) from exc
        except (httpx.HTTPError, RuntimeError) as exc:
            raise IdentityProviderUnavailable(str(exc)) from exc

        subject = userinfo.get("sub")
        email = userinfo.get("email")
        if not isinstance(subject, str) or not subject or not isinstance(email, str) or not email:
            raise IdentityVerificationError("missing email or sub claim")

        return IdentityClaims(
            subject=subject,
            email=email,
            email_verified=_is_true(userinfo.get("email_verified", False)),
            given_name=userinfo.get("given_name") or "",
            family_name=userinfo.get("family_name") or "",
        )


def _is_true(value) -> bool:
    # Some Google endpoints serialise booleans as strings.
    if isinstance(value, str):
        return value.lower() == "true"
    return value is True
