"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - Empty credentials disable the matching integration instead of failing startup

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://meethalf:meethalf@db:5432/meethalf"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres provides postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Auth
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    user_token_days: int = 7
    guest_token_hours: int = 24
    temp_token_minutes: int = 5
    cookie_secure: bool = False

    # Google OAuth
    google_client_id: str = ""
    google_client_secret: str = ""
    google_callback_url: str = "http://localhost:3000/api/v1/auth/google/callback"

    # Google Maps
    google_maps_api_key: str = ""
    maps_timeout_seconds: float = 10.0
    maps_max_retries: int = 2

    # Pusher Channels + Beams
    pusher_app_id: str = ""
    pusher_key: str = ""
    pusher_secret: str = ""
    pusher_cluster: str = "ap3"
    pusher_beams_instance_id: str = ""
    pusher_beams_secret_key: str = ""

    # Cron
    cron_secret: str = ""

    # API
    frontend_url: str = "http://localhost:5173"
    cors_origins: list[str] = ["http://localhost:5173"]
    rate_limit_enabled: bool = True
    maps_rate_limit: str = "120/minute"

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
