"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (LINE credentials, storage, limits)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, validator
from pydantic_settings import BaseSettings
from typing import Optional, Literal

from utils.constants import MAX_MESSAGE_LENGTH_LIMIT, PLATFORM_TEXT_LIMIT


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "testing", "staging", "production"] = "development"

    # LINE Messaging API
    LINE_CHANNEL_ACCESS_TOKEN: Optional[str] = Field(
        default=None,
        description="Channel access token used as Bearer token for outbound calls"
    )
    LINE_CHANNEL_SECRET: Optional[str] = Field(
        default=None,
        description="Channel secret used to verify X-Line-Signature"
    )
    LINE_API_BASE_URL: str = Field(
        default="https://api.line.me",
        description="LINE Messaging API base URL"
    )
    LINE_DATA_API_BASE_URL: str = Field(
        default="https://api-data.line.me",
        description="LINE content (binary data) API base URL"
    )
    LINE_API_TIMEOUT: float = Field(
        default=10.0,
        description="Outbound request timeout in seconds"
    )

    # Outbound message delivery
    MAX_MESSAGE_LENGTH: int = Field(
        default=4000,
        description=f"Maximum characters per text message part (platform cap is {PLATFORM_TEXT_LIMIT}, including the continuation marker)"
    )
    PUSH_INTERVAL_SECONDS: float = Field(
        default=0.5,
        description="Delay between consecutive push messages"
    )
    LOADING_SECONDS: int = Field(
        default=20,
        description="Duration of the loading animation"
    )

    # Conversation keywords
    REGISTER_KEYWORD: str = Field(
        default="register",
        description="Text that starts the registration flow"
    )
    HELP_KEYWORD: str = Field(
        default="help",
        description="Text that returns the help message"
    )

    # Storage
    STORAGE_BACKEND: Literal["memory", "mongodb"] = Field(
        default="memory",
        description="Sheet backend for users, messages and logs"
    )
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="linebot",
        description="MongoDB database name"
    )
    AUDIT_LOG_ENABLED: bool = Field(
        default=True,
        description="Mirror application logs into the Logs sheet"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api/v1",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @validator("LINE_CHANNEL_ACCESS_TOKEN")
    def validate_access_token(cls, v, values):
        """Ensure the channel access token is set in production."""
        if values.get("ENVIRONMENT") == "production" and not v:
            raise ValueError("LINE_CHANNEL_ACCESS_TOKEN is required in production environment")
        return v

    @validator("MAX_MESSAGE_LENGTH")
    def validate_max_message_length(cls, v):
        """A pushed part is the marker plus up to MAX_MESSAGE_LENGTH characters."""
        if v < 1 or v > MAX_MESSAGE_LENGTH_LIMIT:
            raise ValueError(f"MAX_MESSAGE_LENGTH must be between 1 and {MAX_MESSAGE_LENGTH_LIMIT}")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()


def validate_settings(config: Optional[Settings] = None):
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    config = config or settings
    errors = []

    if config.STORAGE_BACKEND == "mongodb" and not config.MONGODB_URL:
        errors.append("MONGODB_URL is required when STORAGE_BACKEND is mongodb")

    if not config.LINE_API_BASE_URL:
        errors.append("LINE_API_BASE_URL is required")

    if not config.REGISTER_KEYWORD or not config.HELP_KEYWORD:
        errors.append("REGISTER_KEYWORD and HELP_KEYWORD must not be empty")

    # Production-specific validations
    if config.is_production:
        if not config.LINE_CHANNEL_ACCESS_TOKEN:
            errors.append("LINE_CHANNEL_ACCESS_TOKEN is required in production")
        if not config.LINE_CHANNEL_SECRET:
            errors.append("LINE_CHANNEL_SECRET is required in production")
        if config.STORAGE_BACKEND == "memory":
            errors.append("STORAGE_BACKEND=memory is not persistent; use mongodb in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
