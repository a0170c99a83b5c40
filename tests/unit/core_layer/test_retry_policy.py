"""
Unit Tests for RetryPolicy and the tenacity retry controller

Tests backoff bounds, retry-after handling and early stop on open circuit.
"""

import pytest

from evassist.core.config.constants import CircuitState
from evassist.core.exceptions import UpstreamPermanentError, UpstreamTransientError
from evassist.core.resilience.circuit_breaker import CircuitBreaker
from evassist.core.resilience.retry import RetryPolicy, build_retrying


async def run(retrying, outcomes):
    """Drive the retry loop; each attempt consumes the next outcome."""
    attempts = 0
    async for attempt in retrying:
        with attempt:
            outcome = outcomes[attempts]
            attempts += 1
            if isinstance(outcome, Exception):
                raise outcome
            return outcome, attempts
    return None, attempts


@pytest.mark.unit
class TestBackoff:
    def test_delays_double_until_cap(self):
        policy = RetryPolicy(max_attempts=6, base_delay=0.5, max_delay=4.0)
        assert [policy.backoff(n) for n in range(1, 6)] == [0.5, 1.0, 2.0, 4.0, 4.0]

    def test_delays_never_decrease_and_stay_capped_with_jitter(self):
        policy = RetryPolicy(max_attempts=10, base_delay=0.5, max_delay=4.0, jitter=0.5)
        # Worst case jitter: full jitter on one attempt, none on the next
        delays = [policy.backoff(n, rand=lambda a, b: b if n % 2 else a) for n in range(1, 10)]
        assert all(later >= earlier for earlier, later in zip(delays, delays[1:]))
        assert max(delays) <= 4.0

    def test_jitter_above_base_is_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=0.5, jitter=1.0)

    def test_zero_attempts_is_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


@pytest.mark.unit
class TestRetryLoop:
    async def test_transient_failures_retry_up_to_max_attempts(self, clock, sleep):
        # Arrange
        breaker = CircuitBreaker("svc", failure_threshold=10, clock=clock)
        retrying = build_retrying(RetryPolicy(max_attempts=3), breaker, "op", sleep=sleep)
        outcomes = [UpstreamTransientError("down")] * 3

        # Act / Assert
        with pytest.raises(UpstreamTransientError):
            await run(retrying, outcomes)
        assert sleep.delays == [0.5, 1.0]

    async def test_success_after_transient_failure(self, clock, sleep):
        breaker = CircuitBreaker("svc", clock=clock)
        retrying = build_retrying(RetryPolicy(max_attempts=3), breaker, "op", sleep=sleep)

        result, attempts = await run(retrying, [UpstreamTransientError("blip"), {"ok": True}])

        assert result == {"ok": True}
        assert attempts == 2
        assert sleep.delays == [0.5]

    async def test_permanent_error_is_not_retried(self, clock, sleep):
        breaker = CircuitBreaker("svc", clock=clock)
        retrying = build_retrying(RetryPolicy(max_attempts=3), breaker, "op", sleep=sleep)

        with pytest.raises(UpstreamPermanentError):
            await run(retrying, [UpstreamPermanentError("404")])
        assert sleep.delays == []

    async def test_retry_after_hint_raises_delay(self, clock, sleep):
        breaker = CircuitBreaker("svc", clock=clock)
        retrying = build_retrying(RetryPolicy(max_attempts=2), breaker, "op", sleep=sleep)
        limited = UpstreamTransientError("429", details={"status_code": 429, "retry_after": 3.0})

        with pytest.raises(UpstreamTransientError):
            await run(retrying, [limited, limited])
        assert sleep.delays == [3.0]

    async def test_retry_after_hint_is_capped(self, clock, sleep):
        breaker = CircuitBreaker("svc", clock=clock)
        policy = RetryPolicy(max_attempts=2, retry_after_max=10.0)
        retrying = build_retrying(policy, breaker, "op", sleep=sleep)
        limited = UpstreamTransientError("429", details={"status_code": 429, "retry_after": 120.0})

        with pytest.raises(UpstreamTransientError):
            await run(retrying, [limited, limited])
        assert sleep.delays == [10.0]

    async def test_smaller_hint_keeps_backoff(self, clock, sleep):
        breaker = CircuitBreaker("svc", clock=clock)
        retrying = build_retrying(RetryPolicy(max_attempts=2, base_delay=2.0), breaker, "op", sleep=sleep)
        limited = UpstreamTransientError("429", details={"status_code": 429, "retry_after": 0.1})

        with pytest.raises(UpstreamTransientError):
            await run(retrying, [limited, limited])
        assert sleep.delays == [2.0]

    async def test_open_circuit_stops_retrying(self, clock, sleep):
        # Arrange
        breaker = CircuitBreaker("svc", failure_threshold=1, clock=clock)
        retrying = build_retrying(RetryPolicy(max_attempts=5), breaker, "op", sleep=sleep)

        async def attempt_and_trip():
            async for attempt in retrying:
                with attempt:
                    breaker.record_failure()
                    raise UpstreamTransientError("down")

        # Act / Assert
        with pytest.raises(UpstreamTransientError):
            await attempt_and_trip()
        assert breaker.state == CircuitState.OPEN
        assert sleep.delays == []
