#!/usr/bin/env python3
"""
Resilient External Client

Composes cache, rate limiter, circuit breaker and retry policy around the
raw charging-network transport. Every upstream operation goes through
call(), so the policy is uniform across tools.

Algorithm (per call):
    1. Cache lookup            -> fresh hit returns at once, limiter untouched
    2. Rate limiter            -> denied: RATE_LIMITED + retry_after
    3. Circuit breaker         -> open: CIRCUIT_OPEN (or last-known data)
    4. Transport with retries  -> success: cache by TTL class, close circuit
    5. Transient exhausted     -> UPSTREAM_TRANSIENT (or last-known data)
    6. Permanent               -> UPSTREAM_PERMANENT, no retry, no breaker impact

Each attempt reports to the breaker through track_call(), so a cancelled
or crashing attempt still counts as a failure.

Author: System Architect
Date: 2026-01-12
"""

import asyncio
from typing import Any

from evassist.core.config.constants import Stage, TTLClass
from evassist.core.exceptions import (
    CircuitBreakerOpenError,
    RateLimitExceededError,
    UpstreamError,
    UpstreamPermanentError,
    UpstreamTransientError,
)
from evassist.core.logging.logger import get_logger, log_stage
from evassist.core.resilience.cache import ResilienceCache, make_cache_key
from evassist.core.resilience.circuit_breaker import CircuitBreaker
from evassist.core.resilience.rate_limiter import FixedWindowRateLimiter
from evassist.core.resilience.retry import RetryPolicy, SleepFunc, build_retrying
from evassist.infrastructure.upstream.models import Failure, UpstreamResult
from evassist.infrastructure.upstream.operations import (
    SERVICE_PRINCIPAL_PREFIX,
    RenderedRequest,
    UpstreamOperation,
)
from evassist.infrastructure.upstream.transport import AmpecoTransport

logger = get_logger(__name__)


class ResilientExternalClient:
    """
    Upstream gateway shared by every request (constructed once at startup).

    Args:
        transport: Raw HTTP transport
        cache: Response cache
        rate_limiter: Fixed-window limiter for outbound calls
        breaker: Circuit breaker of the upstream service
        retry_policy: Backoff/attempt bounds
        ttl_seconds: TTL per TTLClass
        sleep: Async sleep used between attempts (tests inject a recorder)
    """

    def __init__(
        self,
        transport: AmpecoTransport,
        cache: ResilienceCache,
        rate_limiter: FixedWindowRateLimiter,
        breaker: CircuitBreaker,
        retry_policy: RetryPolicy,
        ttl_seconds: dict[TTLClass, float],
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.transport = transport
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.breaker = breaker
        self.retry_policy = retry_policy
        self.ttl_seconds = ttl_seconds
        self._sleep = sleep

    @property
    def service(self) -> str:
        return self.breaker.service

    def principal_for(self, operation: UpstreamOperation, principal: str) -> str:
        if operation.per_principal:
            return principal
        return f"{SERVICE_PRINCIPAL_PREFIX}:{self.service}"

    async def call(
        self, operation: UpstreamOperation, args: dict[str, Any], principal: str
    ) -> UpstreamResult:
        """Run one operation through the full resilience pipeline."""
        cache_key = make_cache_key(operation.name, args) if operation.cacheable else None

        # 1. Cache
        if cache_key is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                log_stage(
                    logger, Stage.UPSTREAM_CACHE, "Cache hit", level="debug", operation=operation.name
                )
                return UpstreamResult.success(cached, from_cache=True)
            log_stage(logger, Stage.UPSTREAM_CACHE, "Cache miss", level="debug", operation=operation.name)

        # Render before the limiter and breaker claim any state
        request = operation.render(args)

        # 2. Rate limit
        limited_principal = self.principal_for(operation, principal)
        decision = self.rate_limiter.acquire(limited_principal)
        if not decision.allowed:
            error = RateLimitExceededError(
                "Too many requests to the charging network, try again shortly",
                details={"retry_after": decision.retry_after, "principal": limited_principal},
            )
            return UpstreamResult.fail(Failure.from_error(error))

        # 3. Circuit
        if not self.breaker.should_allow():
            log_stage(
                logger,
                Stage.CIRCUIT_BREAKER,
                "Circuit open, call short-circuited",
                level="warning",
                operation=operation.name,
                service=self.service,
            )
            error = CircuitBreakerOpenError(
                "The charging network is temporarily unavailable", details={"service": self.service}
            )
            return self._degrade(cache_key, Failure.from_error(error))

        # 4-6. Transport with retries
        try:
            payload = await self._call_with_retries(operation, request)
        except UpstreamPermanentError as e:
            log_stage(
                logger,
                Stage.UPSTREAM_CALL,
                "Upstream permanent failure",
                level="warning",
                operation=operation.name,
                status_code=e.status_code,
            )
            return UpstreamResult.fail(Failure.from_error(e))
        except UpstreamTransientError as e:
            log_stage(
                logger,
                Stage.UPSTREAM_CALL,
                "Upstream unavailable after retries",
                level="error",
                operation=operation.name,
                error=e.message,
                circuit_state=self.breaker.state.value,
            )
            return self._degrade(cache_key, Failure.from_error(e))

        if cache_key is not None:
            self.cache.set(cache_key, payload, self.ttl_seconds[operation.ttl_class])
        return UpstreamResult.success(payload)

    async def _call_with_retries(self, operation: UpstreamOperation, request: RenderedRequest) -> Any:
        retrying = build_retrying(self.retry_policy, self.breaker, operation.name, sleep=self._sleep)

        async for attempt in retrying:
            with attempt:
                # Attempt 1 was admitted by the caller; later attempts ask again
                if attempt.retry_state.attempt_number > 1 and not self.breaker.should_allow():
                    raise UpstreamTransientError(
                        "Circuit opened during retries", details={"operation": operation.name}
                    )
                with self.breaker.track_call() as outcome:
                    try:
                        payload = await self.transport.request(
                            request.method, request.path, request.params, request.json_body
                        )
                    except UpstreamPermanentError:
                        outcome.ignore()
                        raise
                    except UpstreamError:
                        outcome.failure()
                        raise
                    outcome.success()
                return payload

    def _degrade(self, cache_key: str | None, failure: Failure) -> UpstreamResult:
        """Serve last-known data when the upstream cannot answer."""
        if cache_key is not None:
            last_known = self.cache.last_known(cache_key)
            if last_known is not None:
                return UpstreamResult.stale_fallback(last_known, failure)
        return UpstreamResult.fail(failure)

    async def close(self) -> None:
        await self.transport.close()
