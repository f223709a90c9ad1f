# app/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables at runtime.

    These settings drive:
    - DB connection
    - Logging verbosity
    - Scheduling business rules (max duration, past scheduling)
    - The identity header set by the upstream auth gateway
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Meeting Scheduler"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./scheduler.db",
        description="SQLAlchemy-compatible async database URL",
    )

    LOG_LEVEL: str = Field(
        "INFO",
        description="Root log level (DEBUG/INFO/WARNING/ERROR).",
    )

    # --- Scheduling rules ---
    MAX_MEETING_DURATION_HOURS: float = Field(
        default=8.0,
        gt=0,
        description="Longest allowed meeting, in hours.",
    )
    ALLOW_PAST_SCHEDULING: bool = Field(
        default=False,
        description="If true, meetings may be created with a start time in the past.",
    )

    IDENTITY_HEADER: str = Field(
        default="X-User-Id",
        description=(
            "Request header carrying the authenticated user id. "
            "Populated by the upstream gateway after token verification."
        ),
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
