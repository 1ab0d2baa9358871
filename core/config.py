"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for PrefTrack happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The
      lifespan in api/main.py and the CLI in main.py are the only callers;
      they hand the resulting value to AuthService, SessionIssuer,
      LockoutGuard and the stores through their constructors. Request-handling
      code never reaches back into get_settings().

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode generates a signing key with a warning; production
      mode refuses to start without one.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
       relies on key entropy -- a short key weakens every issued session.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure. A missing signing secret is never a per-request
       condition.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or prefs/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("preftrack.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'preftrack.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    token_expire_seconds: int = Field(default=3600, gt=0)

    # ------------------------------------------------------------------
    # Credentials and lockout
    # ------------------------------------------------------------------

    max_login_attempts: int = Field(default=5, ge=1)
    lockout_minutes: int = Field(default=15, ge=1)
    # bcrypt cost factor. 4 is the library minimum and only sensible in tests.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    max_username_length: int = Field(default=50, ge=1, le=255)

    # ------------------------------------------------------------------
    # HTTP layer
    # ------------------------------------------------------------------

    # Applied to POST /auth/login and POST /auth/register per client IP.
    auth_rate_limit: str = "10/15 minutes"
    cors_origins: list[str] = ["http://localhost:5173"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="before")
    @classmethod
    def generate_dev_secret(cls, data):
        """Fill in a random SECRET_KEY in dev mode [M7].

        Runs before field validation because the model is frozen: the
        generated key has to be part of the input, not patched on afterwards.
        Sessions signed with a generated key do not survive a restart.
        """
        if not isinstance(data, dict):
            return data
        debug = str(data.get("debug", "")).strip().lower() in ("1", "true", "yes", "on")
        if debug and not data.get("secret_key"):
            data = {**data, "secret_key": secrets.token_hex(32)}
            logger.warning("WARNING: Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
        return data

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M6] [M7].

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            raise ValueError(
                "SECRET_KEY is required in production mode. "
                "Set SECRET_KEY in your environment or .env file. "
                "To run in development mode, set DEBUG=true."
            )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
