#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
caching, rate limiting and resource lifecycle service. All configuration is
centralized here to ensure consistency across modules.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Nested section views (settings.redis, settings.cache, ...)
- Easy testing with override mechanisms

Author: System Architect
Date: 2025-12-05
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """
    Redis configuration for the remote cache tier and rate limit counters.

    STAGE-0.1: Redis connection configuration
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=100, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class MongoSettings(BaseSettings):
    """
    Durable record store configuration.

    STAGE-0.2: Durable store configuration

    The durable tier is only read from (find-by-id on user records).
    """

    MONGO_URI: str = Field(default="mongodb://localhost:27017", description="MongoDB connection URI")
    MONGO_DATABASE: str = Field(default="elearning", description="Database name")
    MONGO_USER_COLLECTION: str = Field(default="users", description="Collection holding user records")
    MONGO_TIMEOUT_MS: int = Field(default=2000, description="Server selection timeout (ms)")
    MONGO_FALLBACK_ENABLED: bool = Field(default=True, description="Allow cache reads to fall back to MongoDB")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Tiered cache configuration.

    STAGE-2: Cache size caps and memory tier bounds
    """

    CACHE_MEMORY_MAX_ENTRIES: int = Field(default=500, gt=0, description="Memory tier max entries")
    CACHE_MEMORY_EVICT_BATCH: int = Field(default=50, gt=0, description="Entries evicted on overflow")
    CACHE_MEMORY_MAX_VALUE_BYTES: int = Field(default=1024, gt=0, description="Largest value kept in memory")
    CACHE_MAX_VALUE_BYTES: int = Field(default=3072, gt=0, description="Hard cap on cached value size")
    CACHE_COMPRESSION_THRESHOLD_BYTES: int = Field(
        default=2048, gt=0, description="Remote writes above this size are compressed"
    )
    CACHE_DURABLE_PROMOTION_TTL: int = Field(
        default=900, gt=0, description="TTL used when promoting a durable hit into memory"
    )
    CACHE_PRUNE_INTERVAL: int = Field(default=60, gt=0, description="Memory tier prune interval (seconds)")
    CACHE_REMOTE_ENABLED: bool = Field(default=True, description="Enable the remote (Redis) tier")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Rate limiting configuration.

    STAGE-3: Rate limiting thresholds

    Architectural Decision: Redis sorted-set sliding window
    - One MULTI/EXEC pipeline per admission check
    - Fail open when Redis is unreachable
    """

    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")
    RATE_LIMIT_ADAPTIVE: bool = Field(default=False, description="Halve quotas under system load")
    RATE_LIMIT_CPU_THRESHOLD: float = Field(default=80.0, description="CPU percent considered high load")
    RATE_LIMIT_MEMORY_THRESHOLD: float = Field(default=85.0, description="Memory percent considered high load")
    RATE_LIMIT_LATENCY_THRESHOLD_MS: float = Field(
        default=100.0, description="Redis ping latency considered high load"
    )
    RATE_LIMIT_LOAD_FACTOR: float = Field(default=0.5, gt=0, le=1, description="Quota multiplier under load")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ResourceSettings(BaseSettings):
    """
    Resource lifecycle registry configuration.

    STAGE-R: Registry capacity, sweep interval and memory monitoring
    """

    RESOURCE_MAX_RESOURCES: int = Field(default=10000, gt=0, description="Live resources before forced sweep")
    RESOURCE_MAX_AGE: int = Field(default=86400, gt=0, description="Max resource age (seconds)")
    RESOURCE_INACTIVE_AFTER: int = Field(default=3600, gt=0, description="Idle time before inactive sweep")
    RESOURCE_CLEANUP_INTERVAL: int = Field(default=300, gt=0, description="Sweep interval (seconds)")
    RESOURCE_MEMORY_THRESHOLD_MB: int = Field(default=500, gt=0, description="Tracked memory threshold (MB)")
    RESOURCE_MEMORY_CHECK_INTERVAL: int = Field(default=60, gt=0, description="Memory check interval")
    RESOURCE_AUTO_CLEANUP: bool = Field(default=True, description="Run the periodic sweep")
    RESOURCE_MEMORY_MONITORING: bool = Field(default=True, description="Run the memory monitor")
    RESOURCE_WARNING_COUNT: int = Field(default=5000, gt=0, description="Health warning threshold")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration

    Architectural Decision: structlog for production-grade logging
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

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="Platform Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from src.core.config import get_settings

        settings = get_settings()
        redis_host = settings.redis.REDIS_HOST
        max_resources = settings.resources.RESOURCE_MAX_RESOURCES
    """

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=100, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    # MongoDB settings
    MONGO_URI: str = Field(default="mongodb://localhost:27017", description="MongoDB connection URI")
    MONGO_DATABASE: str = Field(default="elearning", description="Database name")
    MONGO_USER_COLLECTION: str = Field(default="users", description="Collection holding user records")
    MONGO_TIMEOUT_MS: int = Field(default=2000, description="Server selection timeout (ms)")
    MONGO_FALLBACK_ENABLED: bool = Field(default=True, description="Allow cache reads to fall back to MongoDB")

    # Cache settings
    CACHE_MEMORY_MAX_ENTRIES: int = Field(default=500, gt=0)
    CACHE_MEMORY_EVICT_BATCH: int = Field(default=50, gt=0)
    CACHE_MEMORY_MAX_VALUE_BYTES: int = Field(default=1024, gt=0)
    CACHE_MAX_VALUE_BYTES: int = Field(default=3072, gt=0)
    CACHE_COMPRESSION_THRESHOLD_BYTES: int = Field(default=2048, gt=0)
    CACHE_DURABLE_PROMOTION_TTL: int = Field(default=900, gt=0)
    CACHE_PRUNE_INTERVAL: int = Field(default=60, gt=0)
    CACHE_REMOTE_ENABLED: bool = Field(default=True)

    # Rate limiting settings
    RATE_LIMIT_ENABLED: bool = Field(default=True)
    RATE_LIMIT_ADAPTIVE: bool = Field(default=False)
    RATE_LIMIT_CPU_THRESHOLD: float = Field(default=80.0)
    RATE_LIMIT_MEMORY_THRESHOLD: float = Field(default=85.0)
    RATE_LIMIT_LATENCY_THRESHOLD_MS: float = Field(default=100.0)
    RATE_LIMIT_LOAD_FACTOR: float = Field(default=0.5, gt=0, le=1)

    # Resource registry settings
    RESOURCE_MAX_RESOURCES: int = Field(default=10000, gt=0)
    RESOURCE_MAX_AGE: int = Field(default=86400, gt=0)
    RESOURCE_INACTIVE_AFTER: int = Field(default=3600, gt=0)
    RESOURCE_CLEANUP_INTERVAL: int = Field(default=300, gt=0)
    RESOURCE_MEMORY_THRESHOLD_MB: int = Field(default=500, gt=0)
    RESOURCE_MEMORY_CHECK_INTERVAL: int = Field(default=60, gt=0)
    RESOURCE_AUTO_CLEANUP: bool = Field(default=True)
    RESOURCE_MEMORY_MONITORING: bool = Field(default=True)
    RESOURCE_WARNING_COUNT: int = Field(default=5000, gt=0)

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="Platform Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")
    API_BASE_PATH: str = Field(default="/api/v1", description="Prefix for every API router")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    # Nested configuration views
    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
        )

    @property
    def mongo(self) -> MongoSettings:
        """Get MongoDB settings."""
        return MongoSettings(
            MONGO_URI=self.MONGO_URI,
            MONGO_DATABASE=self.MONGO_DATABASE,
            MONGO_USER_COLLECTION=self.MONGO_USER_COLLECTION,
            MONGO_TIMEOUT_MS=self.MONGO_TIMEOUT_MS,
            MONGO_FALLBACK_ENABLED=self.MONGO_FALLBACK_ENABLED,
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            CACHE_MEMORY_MAX_ENTRIES=self.CACHE_MEMORY_MAX_ENTRIES,
            CACHE_MEMORY_EVICT_BATCH=self.CACHE_MEMORY_EVICT_BATCH,
            CACHE_MEMORY_MAX_VALUE_BYTES=self.CACHE_MEMORY_MAX_VALUE_BYTES,
            CACHE_MAX_VALUE_BYTES=self.CACHE_MAX_VALUE_BYTES,
            CACHE_COMPRESSION_THRESHOLD_BYTES=self.CACHE_COMPRESSION_THRESHOLD_BYTES,
            CACHE_DURABLE_PROMOTION_TTL=self.CACHE_DURABLE_PROMOTION_TTL,
            CACHE_PRUNE_INTERVAL=self.CACHE_PRUNE_INTERVAL,
            CACHE_REMOTE_ENABLED=self.CACHE_REMOTE_ENABLED,
        )

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return RateLimitSettings(
            RATE_LIMIT_ENABLED=self.RATE_LIMIT_ENABLED,
            RATE_LIMIT_ADAPTIVE=self.RATE_LIMIT_ADAPTIVE,
            RATE_LIMIT_CPU_THRESHOLD=self.RATE_LIMIT_CPU_THRESHOLD,
            RATE_LIMIT_MEMORY_THRESHOLD=self.RATE_LIMIT_MEMORY_THRESHOLD,
            RATE_LIMIT_LATENCY_THRESHOLD_MS=self.RATE_LIMIT_LATENCY_THRESHOLD_MS,
            RATE_LIMIT_LOAD_FACTOR=self.RATE_LIMIT_LOAD_FACTOR,
        )

    @property
    def resources(self) -> ResourceSettings:
        """Get resource registry settings."""
        return ResourceSettings(
            RESOURCE_MAX_RESOURCES=self.RESOURCE_MAX_RESOURCES,
            RESOURCE_MAX_AGE=self.RESOURCE_MAX_AGE,
            RESOURCE_INACTIVE_AFTER=self.RESOURCE_INACTIVE_AFTER,
            RESOURCE_CLEANUP_INTERVAL=self.RESOURCE_CLEANUP_INTERVAL,
            RESOURCE_MEMORY_THRESHOLD_MB=self.RESOURCE_MEMORY_THRESHOLD_MB,
            RESOURCE_MEMORY_CHECK_INTERVAL=self.RESOURCE_MEMORY_CHECK_INTERVAL,
            RESOURCE_AUTO_CLEANUP=self.RESOURCE_AUTO_CLEANUP,
            RESOURCE_MEMORY_MONITORING=self.RESOURCE_MEMORY_MONITORING,
            RESOURCE_WARNING_COUNT=self.RESOURCE_WARNING_COUNT,
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
            DEBUG=self.DEBUG,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
            CORS_ORIGINS=self.CORS_ORIGINS,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Settings are the only process-wide object; every service receives its
    configuration from the application container instead of reading it here.
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
