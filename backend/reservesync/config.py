"""Application configuration using Pydantic settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "postgresql+asyncpg://localhost:5432/reservesync"

    # Medical Force scheduling API
    medical_force_base_url: str = "https://api.medical-force.com"
    medical_force_api_token: str | None = None
    clinic_id: str = ""
    request_timeout_seconds: float = 30.0

    # Reservation sync
    sync_page_size: int = 500
    sync_max_page_size: int = 500  # Upper bound enforced by the API
    sync_page_delay_ms: int = 100
    sync_budget_ms: int = 270_000  # 4.5 minutes
    sync_safety_margin_ms: int = 60_000
    sync_checkpoint_ttl_seconds: int = 3600
    sync_resume_delay_minutes: int = 10
    reservation_sheet_name: str = "reservations"

    # Scheduled windows (hours in `timezone`)
    timezone: str = "Asia/Tokyo"
    daily_sync_hour: int = 2
    weekly_sync_hour: int = 3
    monthly_sync_hour: int = 4
    monthly_grant_hour: int = 0

    # Ticket ledger
    ticket_cost_per_reservation: int = 1
    ticket_low_balance_threshold: int = 3

    # API settings
    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = ["*"]  # Restrict in production
    rate_limit_per_minute: int = 60

    # Environment
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
