"""
core/config.py -- TaskGuard settings, read from the environment by pydantic-settings.

This is the only module that looks at environment variables; everything else
asks get_settings() or is handed a Settings object.

Design patterns used:
  lru_cache singleton: the first get_settings() call builds Settings and
      every later call returns that same object. The API lifespan reads it
      once and passes values to the Authenticator and AccessGuard through
      their constructors; neither reads settings itself.

  BaseSettings: each field is filled from the upper-cased env var of the same
      name (token_expire_seconds <- TOKEN_EXPIRE_SECONDS) or from .env, with
      pydantic doing the type coercion.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode (DEBUG=true) generates a signing key with a warning;
      production mode refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT HS256 signing
  relies on key entropy -- a short key weakens every token.

  In production mode a missing SECRET_KEY is a hard startup failure, never a
  silent fallback to a compiled-in default.

  SEED_DEMO_USERS creates accounts with a published password, so it is only
  accepted together with DEBUG=true.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or tasks/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("taskguard.config")

# Named shared-cache URI so every pooled connection sees the same in-memory DB.
_DEFAULT_DB_URL = "sqlite:///file:taskguard?mode=memory&cache=shared&uri=true"


class Settings(BaseSettings):
    """Runtime configuration.

    Every field has a default, so tests can build Settings(**overrides)
    without a .env file. The validators below are what make a production
    start fail loudly on an unsafe combination.
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
    # "" means unset; validate_secret_key replaces or rejects it.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = 24 * 60 * 60
    # Cost factor for new hashes AND for the authenticator's timing dummy hash.
    # The two must match or unknown-user logins become measurably faster.
    bcrypt_rounds: int = 12
    login_rate_limit: str = "10/minute"
    seed_demo_users: bool = False

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:3000"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "testserver"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_expire_seconds")
    @classmethod
    def validate_token_expire_seconds(cls, v: int) -> int:
        if v < 60 or v > 7 * 24 * 60 * 60:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be between 60 and 604800 (1 min to 7 days)")
        return v

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if v < 4 or v > 16:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 16")
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: list[str]) -> list[str]:
        if "*" in v:
            raise ValueError("CORS_ORIGINS must list explicit origins; '*' is not allowed")
        return v

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the signing key policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("SECRET_KEY not set; generated a throwaway key. Tokens die with this process.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Export SECRET_KEY (32+ characters) or set DEBUG=true for local development."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_demo_seed(self) -> "Settings":
        """Demo accounts share a well-known password; never allow them in production."""
        if self.seed_demo_users and not self.debug:
            raise ValueError("SEED_DEMO_USERS=true requires DEBUG=true.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings.

    Tests that change the environment must call get_settings.cache_clear().
    """
    return Settings()
