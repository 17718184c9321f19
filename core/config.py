"""
core/config.py -- Process configuration for the Wishlist identity backend.

Everything tunable lives on Settings: the token signing secret, the token
lifetime and clock-skew leeway, the bcrypt work factor, the database URL and
the HTTP allow-lists. Values come from environment variables or a .env file;
a field maps to the upper-cased env var of the same name (token_ttl_hours ->
TOKEN_TTL_HOURS).

Who reads it:
  create_app() is the only caller of get_settings(), and only when no Settings
  object was passed in. It hands the secret, TTL and work factor to
  TokenIssuer and PasswordHasher as constructor arguments, so nothing under
  auth/ ever imports this module.

Signing key policy (enforced at construction, see check_secret_key):
  DEBUG=true without SECRET_KEY gets a throwaway random key and a warning.
  DEBUG=false without SECRET_KEY refuses to start.
  Any key under 32 characters is rejected; HS256 is only as strong as its key.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("wishlist.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'wishlist_users.db'}"
_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Identity backend settings.

    Every field has a default, so tests build Settings(debug=True, ...)
    directly without an environment.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "WishlistSNS"
    debug: bool = False
    # "" means unset; check_secret_key replaces or rejects it.
    secret_key: str = ""

    # Sessions and credentials
    token_ttl_hours: int = Field(default=24, ge=1)
    token_leeway_seconds: int = Field(default=0, ge=0)
    # log2 cost; 12 is roughly 250ms per hash on current hardware.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # Storage and transport
    database_url: str = _DEFAULT_DB_URL
    cors_origins: list[str] = ["http://localhost:3000"]
    allowed_hosts: list[str] = ["*"]

    # Email verification placeholder (no mail is ever sent)
    verification_code_ttl_minutes: int = 10

    @model_validator(mode="after")
    def check_secret_key(self) -> "Settings":
        if not self.secret_key:
            if not self.debug:
                raise ValueError(
                    "SECRET_KEY is required when DEBUG is off. "
                    "Set it in the environment or in .env, or set DEBUG=true for local development."
                )
            self.secret_key = secrets.token_hex(_MIN_SECRET_LENGTH)
            logger.warning("SECRET_KEY not set; generated a temporary key. Tokens will not survive a restart.")
        if len(self.secret_key) < _MIN_SECRET_LENGTH:
            raise ValueError(f"SECRET_KEY must be at least {_MIN_SECRET_LENGTH} characters long.")
        return self

    @property
    def token_ttl_seconds(self) -> int:
        return self.token_ttl_hours * 3600


@lru_cache
def get_settings() -> Settings:
    """Build Settings from the environment once and reuse it.

    Tests should pass Settings(...) to create_app() instead; if one has to
    re-read the environment, call get_settings.cache_clear() first.
    """
    return Settings()
