"""
core/config.py -- OrgVault settings, read once from the environment.

Every environment variable the service understands is a field on Settings.
Other modules call get_settings(); none of them read os.environ themselves.

Field names are the env var names, upper-cased: DATABASE_URL, SECRET_KEY,
BCRYPT_ROUNDS, TOKEN_EXPIRE_SECONDS and so on. A .env file in the working
directory is read too. List fields take JSON, e.g.
ALLOWED_HOSTS='["vault.example.com"]'.

Startup refuses to proceed when:
  SECRET_KEY is unset outside DEBUG mode, or shorter than 32 characters.
  BCRYPT_ROUNDS is outside 12..16.

Layer rule: core/ imports nothing from api/, auth/ or vault/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("orgvault.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields except secret_key have usable defaults so Settings() can be
    instantiated in test environments (with DEBUG=true) without a .env file.
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
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///./orgvault.db"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=12, ge=12, le=16)
    token_expire_seconds: int = 3600

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Generate a throwaway key in DEBUG mode; otherwise demand one of at least 32 characters."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "DEBUG mode: generated a throwaway SECRET_KEY. Tokens issued now stop working on restart."
                )
            else:
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
    """Cached Settings instance. Tests that change the environment construct Settings() directly."""
    return Settings()
