#!/usr/bin/env python3
"""
Retry Policy for Upstream Calls

tenacity-based retry loop used by the resilient external client. It is the
single place retry/backoff decisions are made for every upstream operation.

Policy:
- Only UpstreamTransientError is retried (network error, timeout, 429, 5xx)
- At most max_attempts attempts per invocation
- Delay after failed attempt n = min(max_delay, base * 2^(n-1) + U(0, jitter)),
  jitter <= base so delays never decrease
- A 429 retry-after hint is honored (capped at retry_after_max) when it
  exceeds the computed backoff
- Retrying stops early once the circuit for the service is open

Author: System Architect
Date: 2026-01-12
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt
from tenacity.stop import stop_base
from tenacity.wait import wait_base

from evassist.core.config.constants import CircuitState, Stage
from evassist.core.exceptions import UpstreamTransientError
from evassist.core.logging.logger import get_logger, log_stage
from evassist.core.resilience.circuit_breaker import CircuitBreaker

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 4.0
    jitter: float = 0.0
    retry_after_max: float = 10.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.jitter > self.base_delay:
            raise ValueError("jitter must not exceed base_delay")

    def backoff(self, attempt_number: int, rand: Callable[[float, float], float] = random.uniform) -> float:
        """Delay after the given failed attempt (1-indexed), cap included."""
        delay = self.base_delay * (2 ** (attempt_number - 1))
        if self.jitter:
            delay += rand(0.0, self.jitter)
        return min(self.max_delay, delay)


class wait_backoff_or_retry_after(wait_base):
    """Exponential backoff that defers to a server retry-after hint."""

    def __init__(self, policy: RetryPolicy):
        self.policy = policy

    def __call__(self, retry_state: RetryCallState) -> float:
        delay = self.policy.backoff(retry_state.attempt_number)
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        hint = getattr(exc, "retry_after", None)
        if hint is not None:
            delay = max(delay, min(float(hint), self.policy.retry_after_max))
        return delay


class stop_when_circuit_open(stop_base):
    """Stop retrying once the breaker has tripped."""

    def __init__(self, breaker: CircuitBreaker):
        self.breaker = breaker

    def __call__(self, retry_state: RetryCallState) -> bool:
        return self.breaker.state == CircuitState.OPEN


def _log_before_sleep(operation: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        log_stage(
            logger,
            Stage.RETRY,
            "Retrying upstream call",
            level="warning",
            operation=operation,
            attempt=retry_state.attempt_number,
            delay=round(retry_state.next_action.sleep, 3) if retry_state.next_action else None,
            reason=str(exc),
        )

    return before_sleep


def build_retrying(
    policy: RetryPolicy,
    breaker: CircuitBreaker,
    operation: str,
    sleep: SleepFunc = asyncio.sleep,
) -> AsyncRetrying:
    """
    Build the AsyncRetrying controller for one operation invocation.

    Usage:
        async for attempt in build_retrying(policy, breaker, "get_tariff"):
            with attempt:
                payload = await send(attempt.retry_state.attempt_number)
    """
    return AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts) | stop_when_circuit_open(breaker),
        wait=wait_backoff_or_retry_after(policy),
        retry=retry_if_exception_type(UpstreamTransientError),
        before_sleep=_log_before_sleep(operation),
        sleep=sleep,
        reraise=True,
    )
