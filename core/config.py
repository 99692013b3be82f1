"""
core/config.py -- HireBoard settings, read once from the environment.

Every environment variable the service understands is a field on Settings.
Other modules never touch os.environ; they receive a Settings instance (the
app keeps one on app.state) or call get_settings().

How it is put together:
  get_settings() is wrapped in lru_cache, so the first call builds Settings
      and later calls hand back the same object.

  Settings is a pydantic-settings BaseSettings: each field is filled from the
      upper-cased environment variable of the same name, then from .env
      (ACCESS_TOKEN_SECRET -> access_token_secret).

  Two after-validators check the combination of fields. In dev mode missing
      token secrets are generated with a warning; in production they are
      required.

Security notes:
  [S1] Each token purpose (access, refresh, reset) has its own secret. Secrets
       shorter than 32 chars are rejected, and two purposes sharing a secret is
       a startup error: a leaked reset secret must not mint access tokens.

  [S2] Cookie flags are configuration, not constants. SECURE_COOKIES=false is
       the local-dev default; production deployments behind HTTPS set it true.
       SameSite=None is only accepted together with Secure (browsers drop it
       otherwise).

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("hireboard.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'hireboard_auth.db'}"

_TOKEN_SECRET_FIELDS = ("access_token_secret", "refresh_token_secret", "reset_token_secret")


class Settings(BaseSettings):
    """Runtime configuration for the auth API.

    Every field has a default, so tests can build Settings(debug=True, ...)
    with no .env present. Production safety is enforced by the validators
    below, not by the defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = _DEFAULT_DB_URL
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # ------------------------------------------------------------------
    # Token secrets -- empty string is the "not configured" sentinel [S1]
    # ------------------------------------------------------------------

    access_token_secret: str = ""
    refresh_token_secret: str = ""
    reset_token_secret: str = ""

    token_expire_seconds: int = Field(default=3600, gt=0)
    reset_token_expire_seconds: int = Field(default=900, gt=0)

    # ------------------------------------------------------------------
    # Cookies [S2]
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    refresh_cookie_name: str = "jwt"
    reset_cookie_name: str = "resetToken"

    # ------------------------------------------------------------------
    # Passwords and OTP
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=10, ge=4, le=31)
    # 0 disables the age check: the most recently issued OTP is accepted
    # regardless of when it was issued.
    otp_max_age_seconds: int = Field(default=0, ge=0)

    # ------------------------------------------------------------------
    # Google identity federation
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_discovery_url: str = "https://accounts.google.com/.well-known/openid-configuration"
    identity_verify_timeout_seconds: float = Field(default=10.0, gt=0)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_secrets(self) -> "Settings":
        """Enforce the token secret policy [S1].

        Dev mode (DEBUG=true): auto-generate any missing secret with a warning.
            Issued tokens will not survive a restart.

        Production mode: refuse to start if any secret is missing.

        Both modes: reject secrets shorter than 32 characters and reject any
            two purposes sharing the same secret.
        """
        for name in _TOKEN_SECRET_FIELDS:
            value = getattr(self, name)
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{name.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                setattr(self, name, secrets.token_hex(32))
                logger.warning("Using auto-generated %s. Tokens will not persist across restarts.", name.upper())
            elif len(value) < 32:
                raise ValueError(f"{name.upper()} must be at least 32 characters.")

        values = [getattr(self, name) for name in _TOKEN_SECRET_FIELDS]
        if len(set(values)) != len(values):
            raise ValueError("ACCESS_TOKEN_SECRET, REFRESH_TOKEN_SECRET and RESET_TOKEN_SECRET must all differ.")
        return self

    @model_validator(mode="after")
    def validate_cookie_policy(self) -> "Settings":
        if self.cookie_samesite == "none" and not self.secure_cookies:
            raise ValueError("COOKIE_SAMESITE=none requires SECURE_COOKIES=true.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, building it on first use.

    Tests construct Settings directly instead of going through this cache.
    """
    return Settings()
