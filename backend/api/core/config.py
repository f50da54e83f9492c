"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch OAuth (optional: linking is refused until both are set)
    twitch_client_id: str = Field(default="", description="Twitch OAuth Client ID")
    twitch_client_secret: str = Field(default="", description="Twitch OAuth Client Secret")
    twitch_request_timeout: float = Field(
        default=10.0, description="Timeout in seconds for calls to Twitch"
    )

    # Sessions
    session_secret: str = Field(..., description="Secret key for session token signing")
    session_algorithm: str = Field(default="HS256", description="Session token signing algorithm")
    session_ttl_seconds: int = Field(default=86400, description="Session lifetime in seconds")
    session_cookie_secure: bool = Field(
        default=False, description="Send the session cookie over HTTPS only"
    )

    # Database (empty = in-memory storage)
    database_url: str = Field(default="", description="PostgreSQL database URL")

    # Server URLs
    frontend_url: str = Field(default="http://localhost:5173", description="Frontend URL for CORS")
    dashboard_path: str = Field(
        default="/dashboard", description="Where to send the browser after linking Twitch"
    )

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("session_secret")
    @classmethod
    def validate_session_secret(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("session_secret cannot be empty")
        return v

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS allowed origins"""
        return [self.frontend_url]

    @property
    def twitch_configured(self) -> bool:
        return bool(self.twitch_client_id)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]
