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

    app_name: str = "HR Approvals"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    database_url: str = "postgresql+asyncpg://approvals:approvals@db:5432/approvals"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    # Workflow store behaviour
    store_timeout_seconds: float = 5.0
    conflict_retry_attempts: int = 3
    policy_cache_ttl_seconds: int = 300

    default_page_size: int = 10
    max_page_size: int = 100


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
