# app/core/config.py
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key, safe for clients)
      - SUPABASE_SERVICE_ROLE_KEY (privileged operations, backend only)
      - DATABASE_URL (Supabase Postgres connection string)

    Optional:
      - SUPABASE_JWT_SECRET (enables local signature check of bearer tokens)
      - SITE_URL (base for email confirmation redirect links)
    """

    PROJECT_NAME: str = "Archy XR API"
    API_PREFIX: str = "/api"

    # development | production | test
    ENVIRONMENT: str = "development"

    # Supabase / DB config
    SUPABASE_URL: str
    SUPABASE_KEY: str
    SUPABASE_SERVICE_ROLE_KEY: str
    DATABASE_URL: str

    # Optional local JWT verification (provider call is always made)
    SUPABASE_JWT_SECRET: str | None = None
    SUPABASE_JWT_ALG: str = "HS256"

    SITE_URL: str = "http://localhost:3000"

    # Storage
    STORAGE_BUCKET: str = "project-files"
    SIGNED_URL_TTL_SECONDS: int = 3600
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024

    # Registration creates unconfirmed identities and sends a confirmation mail
    REQUIRE_EMAIL_CONFIRMATION: bool = True

    # Session cookies
    ACCESS_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 7
    REFRESH_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 30

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
