"""Application configuration."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    app_name: str = "AI Task Queue"
    version: str = "0.1.0"

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # Queue Settings
    MAX_CONCURRENT_TASKS: int = Field(default=10, ge=1)
    MAX_COMPLETED_HISTORY: int = Field(default=1000, ge=1)
    MAX_FAILED_HISTORY: int = Field(default=1000, ge=1)

    # Task Defaults
    DEFAULT_MAX_RETRIES: int = Field(default=3, ge=0)
    DEFAULT_PRIORITY: int = Field(default=5, ge=0, le=255)
    DEFAULT_CONFIDENCE: float = Field(
        default=0.8, ge=0.0, le=1.0
    )  # Placeholder until processors report their own confidence

    # Worker Settings
    WORKER_POLL_INTERVAL: float = Field(default=0.1, gt=0)  # seconds
    WORKER_ERROR_BACKOFF: float = Field(default=1.0, gt=0)  # seconds

    # Message Routing
    TRANSLATION_TARGET_LANGUAGE: str = "en"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",  # Allow extra fields in environment
    )

    @model_validator(mode="after")
    def normalize_log_level(self) -> "Settings":
        """Upper-case the log level so it maps onto logging constants."""
        self.LOG_LEVEL = self.LOG_LEVEL.upper()
        return self
