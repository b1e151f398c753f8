import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues."""
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "tempo.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.info(f"Using default database path: {db_url}")
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    spotify_client_id: str = Field(default="", validation_alias="SPOTIFY_CLIENT_ID", validate_default=True)
    spotify_client_secret: str = Field(default="", validation_alias="SPOTIFY_CLIENT_SECRET", validate_default=True)
    auth_secret_key: str = Field(default="", validation_alias="AUTH_SECRET_KEY")
    auth_algorithm: str = Field(default="HS256", validation_alias="AUTH_ALGORITHM")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="text", validation_alias="LOG_FORMAT", description="text or json")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")
    reconcile_local_hour: int = Field(
        default=5,
        ge=0,
        le=23,
        validation_alias="RECONCILE_LOCAL_HOUR",
        description="Hour of the day, in each user's timezone, when their playlists are reconciled",
    )
    reconcile_lock_ttl_seconds: int = Field(
        default=600,
        validation_alias="RECONCILE_LOCK_TTL_SECONDS",
        description="Expiry of the per-user reconciliation lock in Redis",
    )
    track_exclusion_days: int = Field(
        default=14,
        validation_alias="TRACK_EXCLUSION_DAYS",
        description="Trailing window of tracks that new playlists must not repeat",
    )
    calendar_fetch_timeout_seconds: float = Field(default=15.0, validation_alias="CALENDAR_FETCH_TIMEOUT_SECONDS")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("spotify_client_id", "spotify_client_secret")
    @classmethod
    def validate_spotify_credentials(cls, value: str) -> str:
        """Warn when Spotify credentials are missing.

        Empty values are allowed for local development and tests. Token checks
        will fail closed without them, so no playlists get generated.
        """
        if not value:
            logger.warning(
                "⚠️ SPOTIFY_CLIENT_ID and/or SPOTIFY_CLIENT_SECRET are not set. "
                "Token validation will fail and reconciliation will skip every user."
            )
        return value


settings = Settings()
