#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

Type-safe, environment-based configuration for the DermiAssist caching and
rate-limiting layer. Every tunable (store endpoint, timeouts, TTL presets,
logging) lives here so call sites never read the environment directly.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Easy testing with override mechanisms (reload_settings)
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dermi_cache.core.config.constants import CacheTTL


class RedisSettings(BaseSettings):
    """
    Redis configuration for the shared cache / counter store.

    STAGE-0.1: Redis connection configuration

    REDIS_URL takes precedence over the discrete host/port fields. The store
    counts as "configured" only when REDIS_ENABLED is set and either a URL or
    a host is present.
    """

    REDIS_ENABLED: bool = Field(default=True, description="Use Redis at all")
    REDIS_URL: str | None = Field(default=None, description="Full Redis URL (redis:// or rediss://)")
    REDIS_HOST: str | None = Field(default=None, description="Redis server host (unset: store not configured)")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")

    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=2.0, description="Connect timeout in seconds")
    REDIS_OPERATION_TIMEOUT: float = Field(
        default=3.0, description="Upper bound for a single store round-trip in seconds"
    )
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Cache-aside configuration.

    STAGE-2: Cache TTL configuration
    """

    ENABLE_CACHING: bool = Field(default=True, description="Global cache switch")
    CACHE_DEFAULT_TTL: int = Field(default=CacheTTL.HOUR, description="Default entry TTL")
    CACHE_AI_ANALYSIS_TTL: int = Field(default=CacheTTL.AI_ANALYSIS, description="AI analysis TTL")
    CACHE_USER_PROFILE_TTL: int = Field(default=CacheTTL.USER_PROFILE, description="User and doctor profile TTL")
    CACHE_DOCTOR_LIST_TTL: int = Field(default=CacheTTL.DOCTOR_LIST, description="Doctor listing TTL")
    CACHE_TEST_TTL: int = Field(default=10, description="TTL for diagnostic test entries")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Rate limiting configuration.

    STAGE-3: Rate limiting
    """

    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Global rate limit switch")
    RATE_LIMIT_KEY_PREFIX: str = Field(default="ratelimit", description="Counter key namespace")
    RATE_LIMIT_TRUST_FORWARDED_FOR: bool = Field(
        default=True, description="Derive client IP from X-Forwarded-For"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="DermiAssist Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_BASE_PATH: str = Field(default="/api/v1", description="Prefix for all API routes")
    API_HOST: str = Field(default="0.0.0.0", description="Bind address for the development server")
    API_PORT: int = Field(default=8000, description="Port for the development server")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from dermi_cache.core.config.settings import get_settings

        settings = get_settings()
        ttl = settings.cache.CACHE_AI_ANALYSIS_TTL
        timeout = settings.redis.REDIS_OPERATION_TIMEOUT
    """

    # Redis settings
    REDIS_ENABLED: bool = Field(default=True, description="Use Redis at all")
    REDIS_URL: str | None = Field(default=None, description="Full Redis URL (redis:// or rediss://)")
    REDIS_HOST: str | None = Field(default=None, description="Redis server host (unset: store not configured)")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=2.0, description="Connect timeout in seconds")
    REDIS_OPERATION_TIMEOUT: float = Field(
        default=3.0, description="Upper bound for a single store round-trip in seconds"
    )
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    # Cache settings
    ENABLE_CACHING: bool = Field(default=True, description="Global cache switch")
    CACHE_DEFAULT_TTL: int = Field(default=CacheTTL.HOUR, description="Default entry TTL")
    CACHE_AI_ANALYSIS_TTL: int = Field(default=CacheTTL.AI_ANALYSIS, description="AI analysis TTL")
    CACHE_USER_PROFILE_TTL: int = Field(default=CacheTTL.USER_PROFILE, description="User and doctor profile TTL")
    CACHE_DOCTOR_LIST_TTL: int = Field(default=CacheTTL.DOCTOR_LIST, description="Doctor listing TTL")
    CACHE_TEST_TTL: int = Field(default=10, description="TTL for diagnostic test entries")

    # Rate limiting settings
    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Global rate limit switch")
    RATE_LIMIT_KEY_PREFIX: str = Field(default="ratelimit", description="Counter key namespace")
    RATE_LIMIT_TRUST_FORWARDED_FOR: bool = Field(
        default=True, description="Derive client IP from X-Forwarded-For"
    )

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="DermiAssist Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_BASE_PATH: str = Field(default="/api/v1", description="Prefix for all API routes")
    API_HOST: str = Field(default="0.0.0.0", description="Bind address for the development server")
    API_PORT: int = Field(default=8000, description="Port for the development server")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    # Nested configuration objects
    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return RedisSettings(
            REDIS_ENABLED=self.REDIS_ENABLED,
            REDIS_URL=self.REDIS_URL,
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_OPERATION_TIMEOUT=self.REDIS_OPERATION_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            ENABLE_CACHING=self.ENABLE_CACHING,
            CACHE_DEFAULT_TTL=self.CACHE_DEFAULT_TTL,
            CACHE_AI_ANALYSIS_TTL=self.CACHE_AI_ANALYSIS_TTL,
            CACHE_USER_PROFILE_TTL=self.CACHE_USER_PROFILE_TTL,
            CACHE_DOCTOR_LIST_TTL=self.CACHE_DOCTOR_LIST_TTL,
            CACHE_TEST_TTL=self.CACHE_TEST_TTL,
        )

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return RateLimitSettings(
            RATE_LIMIT_ENABLED=self.RATE_LIMIT_ENABLED,
            RATE_LIMIT_KEY_PREFIX=self.RATE_LIMIT_KEY_PREFIX,
            RATE_LIMIT_TRUST_FORWARDED_FOR=self.RATE_LIMIT_TRUST_FORWARDED_FOR,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> ApplicationSettings:
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_BASE_PATH=self.API_BASE_PATH,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
