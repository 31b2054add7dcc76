"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for UserDesk happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Resolution order (first source that has a value wins):
  1. Constructor arguments (tests only).
  2. Process environment variables (JWT_SECRET_KEY, JWT_ISSUER, ...).
  3. .env file in the working directory.
  4. JSON config file -- config.json by default, or the path named by
     USERDESK_CONFIG_FILE.
  5. Field defaults below.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. Settings
      is frozen, so nothing can mutate it after startup.

  settings_customise_sources: pydantic-settings' hook for the provider chain.
      Returning the sources in priority order is the whole precedence policy.

Security notes:
  [M6] JWT_SECRET_KEY shorter than 32 chars is rejected outright. HS256
       signing relies on key entropy -- a short key weakens every token.

  [M7] A missing JWT_SECRET_KEY is a hard startup failure. There is no
       default and no generated fallback; tokens signed with a throwaway key
       would silently stop validating after a restart.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or users/.
"""

import logging
import os
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = logging.getLogger("userdesk.config")

_DEFAULT_CONFIG_FILE = "config.json"


def _config_file_path() -> str:
    return os.environ.get("USERDESK_CONFIG_FILE", _DEFAULT_CONFIG_FILE)


class Settings(BaseSettings):
    """Application settings loaded from environment, .env and config.json.

    Environment variable name mapping: field names are matched
    case-insensitively, so `jwt_secret_key` reads from JWT_SECRET_KEY. The
    JSON config file uses the same lower-case field names as keys.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Token signing
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below raises on it, so callers never see "".
    jwt_secret_key: str = Field(default="", repr=False)
    jwt_issuer: str = "UserDeskAPI"
    jwt_audience: str = "UserDeskUsers"
    jwt_expiration_minutes: int = Field(default=60, gt=0)
    jwt_leeway_seconds: int = Field(default=0, ge=0)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    # Any SQLAlchemy URL. Drivers other than sqlite must be installed separately.
    connection_string: str = "sqlite:///userdesk.db"

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    # Slots in the hashing CapacityLimiter: bcrypt-bound calls running at once.
    hash_max_concurrency: int = Field(default=4, ge=1)

    # ------------------------------------------------------------------
    # Route protection for the user listing and creation routes.
    # Both default to public; see DESIGN.md for the rationale.
    # ------------------------------------------------------------------

    protect_list_users: bool = False
    protect_create_user: bool = False

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    debug: bool = False
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls, json_file=_config_file_path(), json_file_encoding="utf-8"),
        )

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Refuse to build a Settings without a usable signing secret [M6][M7]."""
        if not self.jwt_secret_key:
            raise ValueError(
                "JWT_SECRET_KEY is not configured. "
                "Set JWT_SECRET_KEY in the environment, .env, or the jwt_secret_key key of config.json."
            )
        if len(self.jwt_secret_key) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    Raises pydantic.ValidationError when the configuration is unusable, which
    aborts startup before any request is served.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    settings = Settings()
    logger.info(
        "Configuration resolved (issuer=%s, audience=%s, expiry=%d min)",
        settings.jwt_issuer,
        settings.jwt_audience,
        settings.jwt_expiration_minutes,
    )
    return settings
