"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for TransConnect happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead,
or better, accept a Settings instance from the caller.

Loading:
  get_settings() builds Settings on first call and caches it. Only the
      application assembly (api/main.py, api/limiter.py, api/routes/auth.py)
      calls it; the auth components receive resolved values from the
      lifespan so tests can build them with fakes.

  Values come from the process environment first, then an optional .env
      file. Env var names are the upper-cased field names (role_resolution
      -> ROLE_RESOLUTION); pydantic coerces "true", "10", "[\"a\"]" and so on.

  The signing-key policy runs once every field is resolved: a dev instance
      gets a throwaway key, a production instance without one fails to load.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. HS256 token signing
  relies on key entropy -- a short key weakens every session token.

  The legacy JWT_SECRET variable is accepted as an alias for SECRET_KEY so
  existing deployments keep their sessions valid after migration.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or community/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("transconnect.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'transconnect.db'}"


class Settings(BaseSettings):
    """Every tunable of the API process.

    Each field has a default, so only SECRET_KEY (or DEBUG=true) is needed to
    load it in a bare test environment.
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = Field(default="", validation_alias=AliasChoices("secret_key", "jwt_secret"))

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    token_expire_seconds: int = 7 * 24 * 3600
    # "profile": profile row role, then identity metadata role, then "user".
    # "fixed":   every login is issued the "user" role.
    role_resolution: Literal["profile", "fixed"] = "profile"

    # ------------------------------------------------------------------
    # Identity provider (Supabase-style auth + Postgres)
    # ------------------------------------------------------------------

    supabase_url: str = ""
    supabase_anon_key: str = ""
    # Privileged key. Falls back to the anon key when unset.
    supabase_service_role_key: str = ""
    provider_timeout_seconds: float = 10.0
    password_reset_redirect_url: str = ""

    # Provider Postgres connection (service role, bypasses row-level security).
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    frontend_url: str = "http://localhost:5173"
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    signup_rate_limit: str = "5/minute"
    reset_password_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the signing-key policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing. Token signing without a stable secret is a
            fatal configuration error, not a runtime condition.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY (or JWT_SECRET) in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def privileged_key(self) -> str:
        """Service-role key used for admin operations; anon key when not configured."""
        return self.supabase_service_role_key or self.supabase_anon_key


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first use.

    Tests that change the environment afterwards must call
    get_settings.cache_clear() or construct Settings directly.
    """
    return Settings()
