"""
core/config.py -- authgate settings (pydantic-settings).

Every environment variable authgate reads is declared on Settings below.
Other modules call get_settings(); none of them touch os.environ.

Names map one-to-one onto environment variables, case-insensitively
(token_expire_seconds <- TOKEN_EXPIRE_SECONDS). A .env file in the working
directory is read too; unknown keys in it are ignored.

Signing key:
  [M6] SECRET_KEY signs every access token, so anything under 32 characters
       is refused. With DEBUG=true an empty key is replaced by a random one
       for the life of the process; without DEBUG startup fails instead.

  [M7] Changing SECRET_KEY logs out everyone: tokens signed with the old key
       stop verifying. Nothing else is stored server-side.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authgate.config")

_MIN_SECRET_LENGTH = 32
_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'authgate_users.db'}"


class Settings(BaseSettings):
    """authgate runtime configuration.

    Every field has a default, so Settings(debug=True) works with an empty
    environment. Apart from the Field bounds, only SECRET_KEY is checked.
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
    environment: str = "development"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL
    repository_timeout_seconds: float = Field(default=5.0, gt=0)

    # ------------------------------------------------------------------
    # Tokens and passwords
    # ------------------------------------------------------------------

    # 24 hours. Tokens cannot be revoked server-side, so this is the upper
    # bound on how long a leaked token stays usable.
    token_expire_seconds: int = Field(default=24 * 3600, gt=0)
    # bcrypt cost factor: 2^rounds iterations. Stored hashes embed their own
    # cost, so raising this only affects new hashes (and rehash-on-login).
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Rate limiting (register + login)
    # ------------------------------------------------------------------

    auth_rate_limit_requests: int = Field(default=5, ge=1)
    auth_rate_limit_window_seconds: int = Field(default=15 * 60, ge=1)
    rate_limit_strategy: Literal["fixed-window", "moving-window"] = "fixed-window"
    # memory:// is per-process. Point this at redis://host:6379 when running
    # more than one instance so the limit holds across all of them.
    rate_limit_storage_uri: str = "memory://"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def check_signing_key(self) -> "Settings":
        """Fill in or reject SECRET_KEY [M6]."""
        if not self.secret_key and not self.debug:
            raise ValueError(
                "SECRET_KEY is required unless DEBUG=true. "
                "Export it or add it to .env before starting authgate."
            )
        if not self.secret_key:
            self.secret_key = secrets.token_hex(32)
            logger.warning("SECRET_KEY not set; generated a throwaway key. Tokens die with this process.")
        if len(self.secret_key) < _MIN_SECRET_LENGTH:
            raise ValueError(f"SECRET_KEY must be at least {_MIN_SECRET_LENGTH} characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Build Settings on first use and return the same instance afterwards.

    Tests that change the environment must call get_settings.cache_clear().
    """
    return Settings()
