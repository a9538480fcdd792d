"""Application configuration with validation."""

import os
from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every field can be overridden through the environment (upper-cased
    field name) or a local ``.env`` file.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:3001",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./docnex.db",
        description="Database connection URL"
    )
    # Connection pool tuning (PostgreSQL only; ignored for SQLite).
    db_pool_size: int = Field(
        default=5,
        description="Number of persistent database connections"
    )
    db_max_overflow: int = Field(
        default=10,
        description="Extra connections allowed during traffic bursts"
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Seconds to wait for a connection from the pool before raising"
    )
    db_pool_recycle: int = Field(
        default=1800,
        description="Seconds before a connection is recycled"
    )

    # Rate Limiting
    rate_limit_per_minute: int = Field(
        default=60,
        description="Maximum requests per client per minute"
    )
    ai_rate_limit_per_minute: int = Field(
        default=10,
        description="Maximum AI requests per client per minute (/api/ai/*)"
    )

    # AI Configuration
    # LiteLLM model string. Gemini models use the "gemini/" prefix.
    ai_model: str = Field(
        default="gemini/gemini-2.5-flash",
        description="LiteLLM model string for completions (empty = AI disabled)"
    )
    ai_api_key: str = Field(
        default="",
        description="API key for the AI provider (falls back to GEMINI_API_KEY)"
    )
    ai_api_base: str = Field(
        default="",
        description="Base URL for the AI provider (optional)"
    )
    ai_timeout_seconds: int = Field(
        default=60,
        description="Timeout for a single completion call"
    )
    ai_max_retries: int = Field(
        default=2,
        description="Retries for retryable AI failures (timeouts, rate limits, 5xx)"
    )
    ai_retry_base_delay: float = Field(
        default=1.0,
        description="Base delay in seconds for exponential retry backoff"
    )
    ai_max_input_chars: int = Field(
        default=50000,
        description="Input text is truncated to this many characters before prompting"
    )
    ai_max_output_tokens: int = Field(
        default=8192,
        description="Maximum tokens generated per completion"
    )

    # Snapshot history
    snapshot_retention: int = Field(
        default=50,
        description="Snapshots kept per document; older ones are pruned"
    )
    auto_snapshot_interval_seconds: int = Field(
        default=300,
        description="Minimum interval between automatic snapshots"
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

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    def get_ai_api_key(self) -> str:
        """Return the configured AI key, falling back to the Gemini SDK variables."""
        return (
            self.ai_api_key
            or os.getenv("GEMINI_API_KEY", "")
            or os.getenv("GOOGLE_GENERATIVE_AI_API_KEY", "")
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

    @field_validator('snapshot_retention')
    @classmethod
    def validate_snapshot_retention(cls, v: int) -> int:
        if v < 1:
            raise ValueError("snapshot_retention must be at least 1")
        return v

    def validate_production_config(self) -> list[str]:
        """Validate configuration for production environment.

        Returns the list of problems found. In production any problem is fatal.

        Raises:
            ConfigurationError: If production config is unusable.
        """
        errors: list[str] = []

        if not self.get_ai_api_key():
            errors.append(
                "AI_API_KEY (or GEMINI_API_KEY) is not set. "
                "AI endpoints will answer AI_CONFIG_ERROR."
            )

        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is invalid:\n  - " + "\n  - ".join(errors)
            )
        return errors

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
