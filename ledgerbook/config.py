"""
Ledgerbook - Configuration Settings

This module handles all application configuration using Pydantic Settings.
Environment variables are loaded from .env file.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from ledgerbook.schemas.chart_of_accounts import DuplicateCodePolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===========================================
    # APPLICATION CONFIGURATION
    # ===========================================
    app_name: str = "Ledgerbook"
    app_env: str = "development"
    debug: bool = False
    api_version: str = "v1"
    log_level: str = "INFO"
    cors_origins: str = "*"  # Comma-separated

    # ===========================================
    # DATABASE CONFIGURATION
    # ===========================================
    database_url_async: str = "sqlite+aiosqlite:///./ledgerbook.db"

    # ===========================================
    # LEDGER DEFAULTS
    # ===========================================
    default_currency_code: str = "USD"
    default_precision: int = 2

    # ===========================================
    # CHART OF ACCOUNTS IMPORT
    # ===========================================
    chart_of_accounts_path: Optional[str] = None  # Falls back to the bundled chart
    coa_root_fallback_code: str = "000-000000000-000000"
    coa_root_fallback_name: str = "Root"
    coa_duplicate_code_policy: DuplicateCodePolicy = DuplicateCodePolicy.FAIL

    # ===========================================
    # BALANCE AGGREGATION
    # ===========================================
    balance_max_depth: int = 10_000

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env.lower() == "development"

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite."""
        return self.database_url_async.startswith("sqlite")

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def effective_log_level(self) -> str:
        """Log level, forced to DEBUG in debug mode."""
        return "DEBUG" if self.debug else self.log_level.upper()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every call.
    """
    return Settings()


# Export settings instance
settings = get_settings()
