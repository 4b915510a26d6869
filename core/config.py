"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the registry happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. credential_file -> CREDENTIAL_FILE). Type coercion and validation
      are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Rejects settings that would weaken the
      credential policy (short passwords, toy bcrypt cost, non-positive TTL).

Note: the session signing secret is NOT configuration. It is generated at
one-time setup and lives in the credential file next to the password hash
(see auth/store.py), so rotating it is an operator action on that file.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or registry/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("registry.config")

# bcrypt accepts cost factors 4..31; below 12 is only sensible in tests.
_MIN_BCRYPT_ROUNDS = 4
_MAX_BCRYPT_ROUNDS = 31
_PASSWORD_POLICY_FLOOR = 12


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Relative to the process working directory.
    credential_file: str = ".registry_admin_config"
    session_cookie_name: str = "registry_admin_session"
    session_ttl_seconds: int = 24 * 60 * 60
    min_password_length: int = _PASSWORD_POLICY_FLOOR
    bcrypt_rounds: int = 12
    # Secure is always set on HTTPS requests; this forces it behind a TLS proxy.
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    registry_db_url: str = "sqlite:///data/registry.db"
    seed_files: list[str] = []

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_auth_policy(self) -> "Settings":
        """Refuse to start with an auth policy weaker than the documented floor."""
        if self.min_password_length < _PASSWORD_POLICY_FLOOR:
            raise ValueError(f"MIN_PASSWORD_LENGTH must be at least {_PASSWORD_POLICY_FLOOR}.")
        if not _MIN_BCRYPT_ROUNDS <= self.bcrypt_rounds <= _MAX_BCRYPT_ROUNDS:
            raise ValueError(f"BCRYPT_ROUNDS must be between {_MIN_BCRYPT_ROUNDS} and {_MAX_BCRYPT_ROUNDS}.")
        if self.session_ttl_seconds <= 0:
            raise ValueError("SESSION_TTL_SECONDS must be positive.")
        if not self.session_cookie_name.strip():
            raise ValueError("SESSION_COOKIE_NAME must not be empty.")
        if self.bcrypt_rounds < 10 and not self.debug:
            logger.warning("BCRYPT_ROUNDS=%d is below 10 outside debug mode.", self.bcrypt_rounds)
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
