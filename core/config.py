"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the job board happen here. No module should
call os.getenv() or os.environ.get() directly.

Design:
  Explicit object: create_app() receives a Settings instance and hands it to
      every component that needs it (stores, hasher, Authenticator, OAuth
      registry). Nothing reads configuration at import time, so tests can build
      as many independently configured apps as they like.

  get_settings(): lru_cache singleton used only by the ASGI entry point
      (asgi.py) to build the production app once.

  @model_validator(mode="after"): DEBUG-conditional SECRET_KEY policy. Dev mode
      generates a key with a warning; production mode refuses to start without
      one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected. It keys the session-id HMAC and
  signs the OAuth state cookie.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or board/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("jobboard.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'jobboard.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `secret_key` reads from SECRET_KEY, `frontend_url` from FRONTEND_URL.
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
    database_url: str = _DEFAULT_DB_URL
    allowed_hosts: list[str] = Field(default_factory=lambda: ["*"])

    # ------------------------------------------------------------------
    # Sessions and passwords
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    session_ttl_seconds: int = Field(default=24 * 60 * 60, gt=0)
    bcrypt_rounds: int = Field(default=10, ge=4, le=31)

    # ------------------------------------------------------------------
    # Google OAuth (empty string means the provider is disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""
    google_callback_url: str = ""
    # Unset: first-time Google users pick their role on the frontend.
    oauth_default_role: Optional[Literal["applicant", "company"]] = None

    # ------------------------------------------------------------------
    # Frontend (redirect target after OAuth, allowed CORS origin)
    # ------------------------------------------------------------------

    frontend_url: str = "http://localhost:5173"

    @property
    def google_enabled(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions stored before a restart stop resolving -- acceptable for
            local dev.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        self.frontend_url = self.frontend_url.rstrip("/")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings singleton for the ASGI entry point.

    Library code never calls this; it receives Settings through create_app().
    In tests: build Settings(...) directly instead.
    """
    return Settings()
