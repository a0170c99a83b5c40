#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

Type-safe, environment-based configuration for the EV support assistant.
Every tunable of the pipeline (upstream client, resilience policies, model,
sessions, streaming) is declared here once.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Grouped read-only views (settings.retry, settings.cache, ...) for callers
  that only care about one concern

Author: System Architect
Date: 2026-01-12
"""

from typing import Literal, TypeVar

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_SECTION_CONFIG = SettingsConfigDict(env_prefix="", case_sensitive=True, extra="ignore")


class UpstreamSettings(BaseSettings):
    """
    Charging-network (Ampeco) REST API configuration.

    STAGE-0.1: Upstream connection configuration
    """

    AMPECO_BASE_URL: str = Field(default="", description="Tenant base URL of the charging network API")
    AMPECO_API_KEY: str | None = Field(default=None, description="Bearer credential for the upstream API")
    UPSTREAM_SERVICE_NAME: str = Field(default="ampeco", description="Circuit breaker service name")
    UPSTREAM_TIMEOUT: float = Field(default=8.0, gt=0, description="Absolute timeout per attempt (seconds)")

    model_config = _SECTION_CONFIG


class RetrySettings(BaseSettings):
    """
    Retry/backoff policy for transient upstream failures.

    Delay for attempt n (1-indexed) = min(RETRY_MAX_DELAY, base * 2^(n-1)) plus
    optional jitter, which may never exceed the base delay.
    """

    RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1, description="Total attempts per operation")
    RETRY_BASE_DELAY: float = Field(default=0.5, ge=0, description="Backoff base delay (seconds)")
    RETRY_MAX_DELAY: float = Field(default=4.0, ge=0, description="Backoff delay cap (seconds)")
    RETRY_JITTER: float = Field(default=0.0, ge=0, description="Max random jitter added per delay")
    RETRY_AFTER_MAX: float = Field(default=10.0, ge=0, description="Cap on an honored Retry-After hint")

    model_config = _SECTION_CONFIG


class RateLimitSettings(BaseSettings):
    """
    Fixed-window rate limiting of outbound upstream calls.

    STAGE-3: Rate limiting thresholds
    """

    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=60, gt=0, description="Window length (seconds)")
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=20, ge=1, description="Admissions per principal per window")

    model_config = _SECTION_CONFIG


class CircuitBreakerSettings(BaseSettings):
    """
    Circuit breaker configuration for fault tolerance.

    STAGE-CB: Circuit breaker thresholds
    """

    CB_FAILURE_THRESHOLD: int = Field(default=5, ge=1, description="Consecutive failures before opening")
    CB_RECOVERY_TIMEOUT: float = Field(default=30.0, ge=0, description="Cool-down before a half-open probe")

    model_config = _SECTION_CONFIG


class CacheSettings(BaseSettings):
    """
    Resilience cache sizing and TTL per operation class.

    STAGE-2: Cache configuration
    """

    CACHE_MAX_ENTRIES: int = Field(default=1000, ge=1, description="Maximum cached entries (LRU)")
    CACHE_TTL_REALTIME: int = Field(default=30, ge=1, description="TTL for live session data")
    CACHE_TTL_VOLATILE: int = Field(default=60, ge=1, description="TTL for live station status")
    CACHE_TTL_DEFAULT: int = Field(default=300, ge=1, description="TTL for history-like data")
    CACHE_TTL_STATIC: int = Field(default=3600, ge=1, description="TTL for near-static data (tariffs)")

    model_config = _SECTION_CONFIG


class LLMSettings(BaseSettings):
    """
    Language model configuration.

    STAGE-0.2: LLM provider configuration
    """

    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1", description="OpenAI base URL")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="Chat model name")
    OPENAI_TIMEOUT: float = Field(default=30.0, gt=0, description="Model request timeout")
    LLM_TEMPERATURE: float = Field(default=0.7, ge=0, le=2, description="Sampling temperature")
    LLM_MAX_TOKENS: int = Field(default=1500, ge=1, description="Max completion tokens")
    MODEL_TOKEN_BUDGET: int = Field(default=3000, ge=16, description="Prompt token budget per turn")
    MAX_TOOL_ROUNDS: int = Field(default=4, ge=0, description="Tool round trips allowed per turn")

    model_config = _SECTION_CONFIG


class SessionSettings(BaseSettings):
    """Conversation storage and turn concurrency."""

    SESSION_BACKEND: Literal["memory", "redis"] = Field(default="memory", description="Session store backend")
    SESSION_IDLE_TIMEOUT: int = Field(default=86400, ge=1, description="Idle seconds before a thread ends")
    TURN_CONCURRENCY_POLICY: Literal["reject", "queue"] = Field(
        default="reject", description="Second turn for an in-flight thread: reject or wait"
    )
    TURN_LEASE_TIMEOUT: float = Field(default=300.0, gt=0, description="Lifetime of a shared turn lease (redis backend)")
    SESSION_MAX_CONVERSATIONS: int = Field(default=10000, ge=1, description="Conversations kept by the memory backend")
    DEFAULT_LANGUAGE: str = Field(default="he", description="Language when none given or detected")

    model_config = _SECTION_CONFIG


class StreamingSettings(BaseSettings):
    """Emitter pacing and backpressure."""

    STREAM_WORD_DELAY: float = Field(default=0.02, ge=0, description="Pause between emitted words")
    STREAM_BUFFER_SIZE: int = Field(default=64, ge=1, description="Bounded fragment channel size")

    model_config = _SECTION_CONFIG


class RedisSettings(BaseSettings):
    """Redis connection used by the shared session store backend."""

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")

    model_config = _SECTION_CONFIG


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    model_config = _SECTION_CONFIG


class ApplicationSettings(BaseSettings):
    """General application settings."""

    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="EV Support Assistant", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    API_BASE_PATH: str = Field(default="/api/v1", description="Prefix for all routes")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = _SECTION_CONFIG


_SectionT = TypeVar("_SectionT", bound=BaseSettings)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from evassist.core.config import get_settings

        settings = get_settings()
        window = settings.rate_limit.RATE_LIMIT_WINDOW_SECONDS
        budget = settings.llm.MODEL_TOKEN_BUDGET
    """

    # Upstream
    AMPECO_BASE_URL: str = Field(default="", description="Tenant base URL of the charging network API")
    AMPECO_API_KEY: str | None = Field(default=None, description="Bearer credential for the upstream API")
    UPSTREAM_SERVICE_NAME: str = Field(default="ampeco", description="Circuit breaker service name")
    UPSTREAM_TIMEOUT: float = Field(default=8.0, gt=0, description="Absolute timeout per attempt (seconds)")

    # Retry
    RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1, description="Total attempts per operation")
    RETRY_BASE_DELAY: float = Field(default=0.5, ge=0, description="Backoff base delay (seconds)")
    RETRY_MAX_DELAY: float = Field(default=4.0, ge=0, description="Backoff delay cap (seconds)")
    RETRY_JITTER: float = Field(default=0.0, ge=0, description="Max random jitter added per delay")
    RETRY_AFTER_MAX: float = Field(default=10.0, ge=0, description="Cap on an honored Retry-After hint")

    # Rate limiting
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=60, gt=0, description="Window length (seconds)")
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=20, ge=1, description="Admissions per principal per window")

    # Circuit breaker
    CB_FAILURE_THRESHOLD: int = Field(default=5, ge=1, description="Consecutive failures before opening")
    CB_RECOVERY_TIMEOUT: float = Field(default=30.0, ge=0, description="Cool-down before a half-open probe")

    # Cache
    CACHE_MAX_ENTRIES: int = Field(default=1000, ge=1, description="Maximum cached entries (LRU)")
    CACHE_TTL_REALTIME: int = Field(default=30, ge=1, description="TTL for live session data")
    CACHE_TTL_VOLATILE: int = Field(default=60, ge=1, description="TTL for live station status")
    CACHE_TTL_DEFAULT: int = Field(default=300, ge=1, description="TTL for history-like data")
    CACHE_TTL_STATIC: int = Field(default=3600, ge=1, description="TTL for near-static data (tariffs)")

    # LLM
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1", description="OpenAI base URL")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="Chat model name")
    OPENAI_TIMEOUT: float = Field(default=30.0, gt=0, description="Model request timeout")
    LLM_TEMPERATURE: float = Field(default=0.7, ge=0, le=2, description="Sampling temperature")
    LLM_MAX_TOKENS: int = Field(default=1500, ge=1, description="Max completion tokens")
    MODEL_TOKEN_BUDGET: int = Field(default=3000, ge=16, description="Prompt token budget per turn")
    MAX_TOOL_ROUNDS: int = Field(default=4, ge=0, description="Tool round trips allowed per turn")

    # Sessions
    SESSION_BACKEND: Literal["memory", "redis"] = Field(default="memory", description="Session store backend")
    SESSION_IDLE_TIMEOUT: int = Field(default=86400, ge=1, description="Idle seconds before a thread ends")
    TURN_CONCURRENCY_POLICY: Literal["reject", "queue"] = Field(
        default="reject", description="Second turn for an in-flight thread: reject or wait"
    )
    TURN_LEASE_TIMEOUT: float = Field(default=300.0, gt=0, description="Lifetime of a shared turn lease (redis backend)")
    SESSION_MAX_CONVERSATIONS: int = Field(default=10000, ge=1, description="Conversations kept by the memory backend")
    DEFAULT_LANGUAGE: str = Field(default="he", description="Language when none given or detected")

    # Streaming
    STREAM_WORD_DELAY: float = Field(default=0.02, ge=0, description="Pause between emitted words")
    STREAM_BUFFER_SIZE: int = Field(default=64, ge=1, description="Bounded fragment channel size")

    # Redis
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="EV Support Assistant", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    API_BASE_PATH: str = Field(default="/api/v1", description="Prefix for all routes")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_retry_policy(self):
        """Jitter above the base delay would make backoff non-monotonic."""
        if self.RETRY_JITTER > self.RETRY_BASE_DELAY:
            raise ValueError("RETRY_JITTER must not exceed RETRY_BASE_DELAY")
        if self.RETRY_MAX_DELAY < self.RETRY_BASE_DELAY:
            raise ValueError("RETRY_MAX_DELAY must be >= RETRY_BASE_DELAY")
        return self

    def _section(self, section_cls: type[_SectionT]) -> _SectionT:
        return section_cls(**{name: getattr(self, name) for name in section_cls.model_fields})

    @property
    def upstream(self) -> UpstreamSettings:
        """Get upstream API settings."""
        return self._section(UpstreamSettings)

    @property
    def retry(self) -> RetrySettings:
        """Get retry settings."""
        return self._section(RetrySettings)

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return self._section(RateLimitSettings)

    @property
    def circuit_breaker(self) -> CircuitBreakerSettings:
        """Get circuit breaker settings."""
        return self._section(CircuitBreakerSettings)

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return self._section(CacheSettings)

    @property
    def llm(self) -> LLMSettings:
        """Get language model settings."""
        return self._section(LLMSettings)

    @property
    def session(self) -> SessionSettings:
        """Get session settings."""
        return self._section(SessionSettings)

    @property
    def streaming(self) -> StreamingSettings:
        """Get streaming settings."""
        return self._section(StreamingSettings)

    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return self._section(RedisSettings)

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return self._section(LoggingSettings)

    @property
    def app(self) -> ApplicationSettings:
        """Get application settings."""
        return self._section(ApplicationSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Lazily created on first use; request handlers never call this directly,
    they receive settings through the service container.
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
