"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Application settings with validation.

    Values come from environment variables or a ``.env`` file. Components
    accept an explicit Settings instance so tests can inject their own.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./specvault.db",
        description="Database connection URL"
    )

    # Server
    api_host: str = Field(default="127.0.0.1", description="Bind address when run as a module")
    api_port: int = Field(default=8000, ge=1, le=65535, description="Port when run as a module")

    # Version storage
    # A new full snapshot is written once the chain since the last full
    # snapshot (inclusive) holds this many records. Lower values cost more
    # storage, higher values cost longer replays on read.
    rebaseline_interval: int = Field(
        default=10,
        ge=1,
        description="Chain length that triggers a full snapshot"
    )
    # Strings shorter than this on either side are replaced whole instead
    # of being stored as a text patch.
    text_diff_min_length: int = Field(
        default=60,
        ge=1,
        description="Minimum string length for text-patch deltas"
    )
    compression_level: int = Field(
        default=6,
        ge=1,
        le=9,
        description="gzip compression level for stored payloads"
    )

    # Persistence worker
    worker_request_timeout: float = Field(
        default=30.0,
        ge=0,
        description="Seconds to wait for a worker response (0 = wait forever)"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ('json', 'text'):
            raise ValueError("Invalid log format. Must be 'json' or 'text'")
        return v_lower

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        # Allow reading from environment variables with different case
        case_sensitive = False


# Global settings instance
settings = Settings()
