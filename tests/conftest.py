"""
tests/conftest.py -- Shared test fixtures for HireBoard auth tests.

This module provides:
  - stores:        AccountStore + OtpStore on an isolated in-memory DB
  - settings:      dev-mode Settings with fast bcrypt
  - identity:      FakeIdentityVerifier with a programmable token -> claims map
  - service:       AuthService wired to the above
  - api_client:    TestClient running the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs the app on a separate thread. Plain :memory: DBs are
per-connection and would present a blank schema to that thread. The named URI
format (file:name?mode=memory&cache=shared&uri=true) shares one in-memory
instance across all connections in the same process; a uuid in the name keeps
tests isolated from each other.

DEBUG must be set before any core/auth/api import so get_settings() can
auto-generate the token secrets instead of raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any core/auth/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("GOOGLE_CLIENT_ID", "hireboard-test.apps.googleusercontent.com")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.identity import IdentityClaims, IdentityVerificationError
from auth.service import AuthService
from auth.store import AccountStore, OtpStore, create_db_engine
from auth.tokens import PasswordHasher, TokenIssuer
from core.config import Settings

# ---------------------------------------------------------------------------
# Collaborator doubles
# ---------------------------------------------------------------------------


class FakeIdentityVerifier:
    """Stands in for GoogleIdentityVerifier.

    Tokens registered with add() verify to their claims; anything else is
    rejected the way a bad signature would be.
    """

    def __init__(self) -> None:
        self._claims: dict[str, IdentityClaims] = {}
        self.delay: float = 0.0

    def add(self, token: str, **claims) -> str:
        claims.setdefault("email_verified", True)
        self._claims[token] = IdentityClaims(**claims)
        return token

    async def verify(self, id_token: str) -> IdentityClaims:
        if self.delay:
            await asyncio.sleep(self.delay)
        claims = self._claims.get(id_token)
        if claims is None:
            raise IdentityVerificationError("signature verification failed")
        return claims


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(debug=True, bcrypt_rounds=4, google_client_id="hireboard-test.apps.googleusercontent.com")


@pytest.fixture
def stores() -> Generator[tuple[AccountStore, OtpStore], None, None]:
    engine = create_db_engine(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    yield AccountStore(engine), OtpStore(engine)
    engine.dispose()


@pytest.fixture
def identity() -> FakeIdentityVerifier:
    return FakeIdentityVerifier()


@pytest.fixture
def service(settings: Settings, stores, identity: FakeIdentityVerifier) -> AuthService:
    accounts, otps = stores
    return AuthService(
        accounts=accounts,
        otps=otps,
        tokens=TokenIssuer.from_settings(settings),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        identity=identity,
        identity_timeout=settings.identity_verify_timeout_seconds,
    )


def _patch_lifespan(settings: Settings, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test service into app.state so TestClient routes see isolated
    stores and the fake identity verifier rather than Google.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture
def api_client(settings: Settings, service: AuthService) -> Generator[TestClient, None, None]:
    """Yield a TestClient for the real FastAPI app backed by the test service.

    raise_server_exceptions=True so an unhandled error fails the test loudly
    instead of hiding behind a 500.
    """
    app.router.lifespan_context = _patch_lifespan(settings, service)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
