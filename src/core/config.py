"""Configuration management for the SkillSoft assessment server.

This module handles all configuration loading, validation, and management
using Pydantic Settings for type safety and environment variable support.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.utils.logger import setup_logging


class Settings(BaseSettings):
    """Application settings with validation and type hints."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application Settings
    APP_NAME: str = Field(default="SkillSoft Assessment", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    APP_ENV: str = Field(
        default="development",
        description="Application environment",
        pattern="^(development|test|staging|production)$",
    )
    APP_DEBUG: bool = Field(default=True, description="Debug mode")
    APP_HOST: str = Field(default="0.0.0.0", description="Application host")
    APP_PORT: int = Field(default=8000, description="Application port", ge=1, le=65535)

    # API Settings
    API_V1_PREFIX: str = Field(default="/api/v1", description="API v1 prefix")
    ALLOWED_HOSTS: List[str] = Field(
        default=["localhost", "127.0.0.1"],
        description="Allowed hosts for the application",
    )
    CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="Allowed CORS origins",
    )

    # Database Configuration
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URL",
    )
    MONGODB_DB_NAME: str = Field(
        default="skillsoft_assessment", description="MongoDB database name"
    )
    MONGODB_MAX_POOL_SIZE: int = Field(
        default=50, description="MongoDB max connection pool size", ge=1
    )
    MONGODB_MIN_POOL_SIZE: int = Field(
        default=10, description="MongoDB min connection pool size", ge=0
    )
    MONGODB_MAX_IDLE_TIME_MS: int = Field(
        default=10000, description="MongoDB max idle time in milliseconds", ge=0
    )
    MONGODB_CONNECT_TIMEOUT_MS: int = Field(
        default=10000, description="MongoDB connection timeout in milliseconds", ge=1000
    )
    MONGODB_USE_TRANSACTIONS: bool = Field(
        default=True, description="Wrap scoring in multi-document transactions (requires a replica set)"
    )

    # Redis Configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    REDIS_PASSWORD: Optional[str] = Field(default=None, description="Redis password")
    REDIS_MAX_CONNECTIONS: int = Field(
        default=100, description="Redis max connections", ge=1
    )
    REDIS_DECODE_RESPONSES: bool = Field(
        default=True, description="Redis decode responses"
    )
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(
        default=30, description="Redis health check interval in seconds", ge=0
    )

    # Feature Flags
    ENABLE_CACHE: bool = Field(default=True, description="Enable caching")
    CACHE_TTL_DEFAULT: int = Field(
        default=3600, description="Default cache TTL in seconds", ge=0
    )
    ENABLE_API_DOCS: bool = Field(default=True, description="Enable API documentation")
    ENABLE_METRICS: bool = Field(default=True, description="Enable metrics collection")
    ENABLE_BACKGROUND_JOBS: bool = Field(
        default=True, description="Enable background health checks and audit loop"
    )

    # Logging Configuration
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Log level",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )

    # Test Configuration
    TEST_MODE: bool = Field(default=False, description="Test mode enabled")
    TEST_DATABASE_URL: str = Field(
        default="mongodb://localhost:27017/skillsoft_assessment_test",
        description="Test database URL",
    )
    TEST_REDIS_URL: str = Field(
        default="redis://localhost:6379/15", description="Test Redis URL"
    )

    # Scoring Configuration
    SCORING_RETRY_ATTEMPTS: int = Field(
        default=3, description="Scoring attempts before the PENDING fallback", ge=1, le=10
    )
    SCORING_RETRY_BASE_DELAY: float = Field(
        default=0.5, description="Multiplier applied to the exponential backoff in seconds", ge=0.0
    )
    SCORING_LOCK_TTL_SECONDS: int = Field(
        default=60, description="TTL of the per-session scoring lock", ge=1
    )
    MIN_QUESTIONS_PER_COMPETENCY: int = Field(
        default=3, description="Answered questions required for sufficient evidence", ge=1
    )
    MIN_SECONDS_PER_QUESTION: float = Field(
        default=5.0, description="Average seconds per question below which a result is flagged", ge=0.0
    )

    # Assembly Configuration
    TEAM_FIT_BASE_QUESTIONS: int = Field(
        default=4, description="Base question quota per team-fit competency", ge=2
    )
    DEFAULT_QUESTIONS_PER_INDICATOR: int = Field(
        default=3, description="Default questions per indicator for overview tests", ge=1, le=10
    )

    # Simulation Configuration
    SIMULATION_CACHE_TTL: int = Field(
        default=3600, description="Simulation result cache TTL in seconds", ge=0
    )
    RECOMMENDED_QUESTIONS_PER_COMPETENCY: int = Field(
        default=5, description="Inventory size considered healthy per competency", ge=1
    )

    # Psychometrics Configuration
    PSYCHOMETRICS_ENABLED: bool = Field(
        default=True, description="Apply item validity status to assembly eligibility"
    )
    PSYCHOMETRICS_AUDIT_ENABLED: bool = Field(
        default=True, description="Run the nightly psychometric audit"
    )
    PSYCHOMETRICS_MIN_RESPONSES: int = Field(
        default=50, description="Responses required before item statistics are trusted", ge=1
    )
    PSYCHOMETRICS_AUDIT_HOUR: int = Field(
        default=2, description="UTC hour of the nightly audit", ge=0, le=23
    )
    PSYCHOMETRICS_AUDIT_LOCK_TTL: int = Field(
        default=3600, description="TTL of the nightly audit lock in seconds", ge=60
    )

    @field_validator("APP_ENV")
    def validate_app_env(cls, v: str) -> str:
        """Validate application environment."""
        valid_envs = ["development", "test", "staging", "production"]
        if v not in valid_envs:
            raise ValueError(f"APP_ENV must be one of {valid_envs}")
        return v

    @field_validator("MONGODB_URL", "TEST_DATABASE_URL")
    def validate_mongodb_url(cls, v: str) -> str:
        """Validate MongoDB URL format."""
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError("MongoDB URL must start with mongodb:// or mongodb+srv://")
        return v

    @field_validator("REDIS_URL", "TEST_REDIS_URL")
    def validate_redis_url(cls, v: str) -> str:
        """Validate Redis URL format."""
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("Redis URL must start with redis:// or rediss://")
        return v

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate settings after all fields are set."""
        if self.APP_ENV == "test":
            self.MONGODB_URL = self.TEST_DATABASE_URL
            self.REDIS_URL = self.TEST_REDIS_URL

        if self.TEST_MODE:
            self.ENABLE_METRICS = False
            self.ENABLE_BACKGROUND_JOBS = False

        if self.APP_ENV == "production":
            self.APP_DEBUG = False
            self.LOG_LEVEL = "INFO" if self.LOG_LEVEL == "DEBUG" else self.LOG_LEVEL

        return self

    def get_database_url(self) -> str:
        """Get the appropriate database URL based on environment."""
        if self.APP_ENV == "test" or self.TEST_MODE:
            return self.TEST_DATABASE_URL
        return self.MONGODB_URL

    def get_redis_url(self) -> str:
        """Get the appropriate Redis URL based on environment."""
        if self.APP_ENV == "test" or self.TEST_MODE:
            return self.TEST_REDIS_URL
        return self.REDIS_URL


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings instance
    """
    settings = Settings()

    setup_logging(environment=settings.APP_ENV, log_level=settings.LOG_LEVEL)

    return settings


settings = get_settings()
