"""Tests for auth/identity.py -- Google ID token verification.

The verifier runs against a real Authlib client registered with an inline
JWKS, so signature, issuer, audience and expiry checks are the library's own.
No network access: the inline key set is used instead of Google's discovery
document.

Covers:
- A correctly signed token yields subject, email and profile names
- email_verified is reported, not enforced (the service decides)
- Wrong audience, wrong issuer, expired, foreign signature, garbage -> IdentityVerificationError
- Missing email claim -> IdentityVerificationError
- Unconfigured client id -> IdentityProviderUnavailable
- AuthService on top of the real verifier maps rejected tokens to InvalidIdentityTokenError
"""

from __future__ import annotations

import asyncio
import time

import pytest
from authlib.integrations.starlette_client import OAuth
from joserfc import jwt
from joserfc.jwk import RSAKey

from auth.errors import InvalidIdentityTokenError
from auth.identity import (
    GoogleIdentityVerifier,
    IdentityProviderUnavailable,
    IdentityVerificationError,
)
from core.config import Settings

CLIENT_ID = "hireboard-test.apps.googleusercontent.com"
KID = "google-test-key"


@pytest.fixture(scope="module")
def signing_key() -> RSAKey:
    return RSAKey.generate_key(2048, parameters={"kid": KID})


@pytest.fixture(scope="module")
def verifier(signing_key: RSAKey) -> GoogleIdentityVerifier:
    oauth = OAuth()
    client = oauth.register(
        name="google",
        client_id=CLIENT_ID,
        jwks={"keys": [signing_key.as_dict(private=False)]},
    )
    return GoogleIdentityVerifier(client)


def _claims(**overrides) -> dict:
    now = int(time.time())
    claims = {
        "iss": "https://accounts.google.com",
        "aud": CLIENT_ID,
        "sub": "1122334455",
        "email": "grace@example.com",
        "email_verified": True,
        "given_name": "Grace",
        "family_name": "Hopper",
        "iat": now,
        "exp": now + 3600,
    }
    claims.update(overrides)
    return {k: v for k, v in claims.items() if v is not None}


def _sign(key: RSAKey, **overrides) -> str:
    return jwt.encode({"alg": "RS256", "kid": KID}, _claims(**overrides), key)


class TestGoogleIdentityVerifier:
    def test_valid_token(self, verifier, signing_key) -> None:
        claims = asyncio.run(verifier.verify(_sign(signing_key)))
        assert claims.subject == "1122334455"
        assert claims.email == "grace@example.com"
        assert claims.email_verified is True
        assert (claims.given_name, claims.family_name) == ("Grace", "Hopper")

    def test_short_issuer_form_accepted(self, verifier, signing_key) -> None:
        claims = asyncio.run(verifier.verify(_sign(signing_key, iss="accounts.google.com")))
        assert claims.subject == "1122334455"

    def test_unverified_email_is_reported(self, verifier, signing_key) -> None:
        claims = asyncio.run(verifier.verify(_sign(signing_key, email_verified=False)))
        assert claims.email_verified is False

    def test_string_email_verified(self, verifier, signing_key) -> None:
        claims = asyncio.run(verifier.verify(_sign(signing_key, email_verified="true")))
        assert claims.email_verified is True

    def test_missing_names_default_to_empty(self, verifier, signing_key) -> None:
        token = _sign(signing_key, given_name=None, family_name=None)
        claims = asyncio.run(verifier.verify(token))
        assert (claims.given_name, claims.family_name) == ("", "")

    def test_token_for_other_client_rejected(self, verifier, signing_key) -> None:
        token = _sign(signing_key, aud="someone-else.apps.googleusercontent.com")
        with pytest.raises(IdentityVerificationError):
            asyncio.run(verifier.verify(token))

    def test_foreign_issuer_rejected(self, verifier, signing_key) -> None:
        with pytest.raises(IdentityVerificationError):
            asyncio.run(verifier.verify(_sign(signing_key, iss="https://evil.example.com")))

    def test_expired_token_rejected(self, verifier, signing_key) -> None:
        past = int(time.time()) - 7200
        with pytest.raises(IdentityVerificationError):
            asyncio.run(verifier.verify(_sign(signing_key, iat=past, exp=past + 600)))

    def test_signature_from_other_key_rejected(self, verifier) -> None:
        impostor = RSAKey.generate_key(2048, parameters={"kid": KID})
        with pytest.raises(IdentityVerificationError):
            asyncio.run(verifier.verify(_sign(impostor)))

    def test_missing_email_rejected(self, verifier, signing_key) -> None:
        with pytest.raises(IdentityVerificationError):
            asyncio.run(verifier.verify(_sign(signing_key, email=None)))

    def test_garbage_rejected(self, verifier) -> None:
        with pytest.raises(IdentityVerificationError):
            asyncio.run(verifier.verify("not-a-jwt"))

    def test_unconfigured_client_id(self) -> None:
        verifier = GoogleIdentityVerifier.from_settings(Settings(debug=True, google_client_id=""))
        with pytest.raises(IdentityProviderUnavailable):
            asyncio.run(verifier.verify("anything"))


class TestFederatedSignInWithGoogleVerifier:
    """AuthService wired to the real verifier: token failures must stay 401s."""

    @pytest.mark.parametrize("token_kind", ["garbage", "foreign_audience", "expired"])
    def test_rejected_token_is_invalid_identity(self, service, verifier, signing_key, token_kind) -> None:
        past = int(time.time()) - 7200
        tokens = {
            "garbage": lambda: "not-a-jwt",
            "foreign_audience": lambda: _sign(signing_key, aud="someone-else.apps.googleusercontent.com"),
            "expired": lambda: _sign(signing_key, iat=past, exp=past + 600),
        }
        service.identity = verifier
        with pytest.raises(InvalidIdentityTokenError):
            asyncio.run(service.federated_sign_in(tokens[token_kind]()))

    def test_valid_token_signs_in(self, service, verifier, signing_key) -> None:
        service.identity = verifier
        result = asyncio.run(service.federated_sign_in(_sign(signing_key)))
        assert result.message == "Grace logged in successfully via Google"
        assert service.accounts.get_by_email("grace@example.com").google_id == "1122334455"
