"""Resilience primitives: cache, rate limiter, circuit breaker, retry policy."""

from evassist.core.resilience.cache import CacheEntry, ResilienceCache, make_cache_key
from evassist.core.resilience.circuit_breaker import (
    CallOutcome,
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitSnapshot,
)
from evassist.core.resilience.rate_limiter import (
    FixedWindowRateLimiter,
    RateLimitDecision,
    RateLimitWindow,
)
from evassist.core.resilience.retry import RetryPolicy, build_retrying

__all__ = [
    "CacheEntry",
    "CallOutcome",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitSnapshot",
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "RateLimitWindow",
    "ResilienceCache",
    "RetryPolicy",
    "build_retrying",
    "make_cache_key",
]
