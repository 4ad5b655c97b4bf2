from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "StaffDesk"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    database_url: str = "postgresql+asyncpg://staffdesk:staffdesk@db:5432/staffdesk"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]
    # Create missing tables on startup instead of running migrations (development only).
    auto_create_tables: bool = False

    # Leave entitlements, in days.
    annual_entitlement_days: int = 21
    default_sick_days: int = 10
    default_maternity_days: int = 180
    default_unpaid_days: int = 999

    purchase_reference_prefix: str = "PR"
    finance_department: str = "finance"

    worker_interval_seconds: int = 86400

    # First admin written by `python -m staffdesk.seed`; the id is the identity provider's user id.
    seed_admin_id: str = "admin"
    seed_admin_email: str = "admin@company.com"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
