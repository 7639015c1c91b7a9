"""
Application configuration with environment-specific secrets management.

Supported environment files (loaded in order of precedence):
1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
2. .env (fallback)

Required secrets for production:
- DATABASE_URL
- RECORD_SOURCE_API_KEY (raw order card queries)
"""
import os
import logging
from pathlib import Path
from typing import Optional, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the project root directory (3 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

DEFAULT_DATABASE_URL = f"sqlite:///{PROJECT_ROOT / 'dailychallenge.db'}"

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment-specific configuration."""

    # Environment
    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Allow extra fields from .env
    )

    # Application
    APP_NAME: str = "Daily Challenge Scoring Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database - load from environment with local SQLite fallback for development
    DATABASE_URL: str = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Challenge clock. Halftime (16:20) and Power Hour are local to this zone.
    CHALLENGE_TIMEZONE: str = "Europe/Berlin"
    HALFTIME_WINDOW_MINUTES: int = 15
    MAX_SUBSTITUTIONS_PER_TEAM: int = 2
    SUBSTITUTIONS_COUNT_REPEATS: bool = False  # True: re-subbing a position costs budget

    # Aggregation
    AGGREGATION_CONCURRENCY: int = 20  # Per-entity resolve/score/persist fan-out
    STREAK_LOOKBACK_DAYS: int = 30

    # Raw order source (card query API)
    RECORD_SOURCE_URL: str = "http://localhost:3000"
    RECORD_SOURCE_API_KEY: str = ""
    RECORD_SOURCE_TIMEOUT: float = 60.0
    DATE_FILTERED_CARD_ID: int = 1267
    ALL_ORDERS_CARD_ID: int = 1266
    BRAND_RATINGS_CARD_ID: Optional[int] = None

    # Scheduler
    AGGREGATION_CRON_HOUR: int = 0
    AGGREGATION_CRON_MINUTE: int = 30
    INTRADAY_AGGREGATION_MINUTES: int = 60
    HALFTIME_SWEEP_SECONDS: int = 60

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    def validate_required_secrets(self) -> list[str]:
        """
        Validate that required secrets are set for the current environment.

        Returns:
            List of missing secret names (empty if all present)
        """
        missing = []

        if self.is_production():
            if not self.DATABASE_URL or self.DATABASE_URL == DEFAULT_DATABASE_URL:
                missing.append("DATABASE_URL")
            if not self.RECORD_SOURCE_API_KEY:
                missing.append("RECORD_SOURCE_API_KEY")

        return missing


def _load_env_file() -> Path:
    """
    Load the appropriate environment file based on ENVIRONMENT variable.

    Loads in order of precedence:
    1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
    2. .env (fallback)
    """
    environment = os.getenv("ENVIRONMENT", "development")

    # Try environment-specific file first
    env_file = PROJECT_ROOT / f".env.{environment}"
    if env_file.exists():
        logger.info(f"Loading environment from {env_file.name}")
        return env_file

    # Fall back to default .env
    default_env = PROJECT_ROOT / ".env"
    if default_env.exists():
        logger.info(f"Loading environment from .env (environment: {environment})")
        return default_env

    logger.debug(f"No environment file found for '{environment}' (checked .env.{environment}, .env)")
    return default_env


# Auto-detect and load environment file
_env_file = _load_env_file()


class _SettingsWithEnvFile(Settings):
    model_config = SettingsConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = _SettingsWithEnvFile()

# Validate secrets on startup
missing_secrets = settings.validate_required_secrets()
if missing_secrets:
    logger.warning(f"Missing required secrets for {settings.ENVIRONMENT}: {', '.join(missing_secrets)}")
    if settings.is_production():
        raise ValueError(
            f"Cannot start in production with missing secrets: {', '.join(missing_secrets)}. "
            f"Please set these environment variables in .env.production"
        )
