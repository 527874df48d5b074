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

    app_name: str = "Leave Grant"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "postgresql+asyncpg://leave_grant:leave_grant@db:5432/leave_grant"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    # Local runs only; deployed databases are migrated with `alembic upgrade head`.
    create_tables_on_startup: bool = False

    # Wizard
    submit_timeout_seconds: float = 10.0
    wizard_idle_timeout_seconds: int = 3600
    max_upload_rows: int = 5000


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
