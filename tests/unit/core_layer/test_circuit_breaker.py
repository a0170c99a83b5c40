"""
Unit Tests for CircuitBreaker

Tests state transitions (closed -> open -> half-open -> closed/open), the
single half-open probe and outcome tracking.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from evassist.core.config.constants import CircuitState
from evassist.core.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry


@pytest.fixture
def breaker(clock):
    return CircuitBreaker("ampeco", failure_threshold=5, recovery_timeout=30.0, clock=clock)


def trip(breaker: CircuitBreaker) -> None:
    for _ in range(breaker.failure_threshold):
        breaker.record_failure()


@pytest.mark.unit
class TestClosedState:
    def test_initial_state_is_closed(self, breaker):
        assert breaker.state == CircuitState.CLOSED
        assert breaker.should_allow()

    def test_failures_below_threshold_keep_circuit_closed(self, breaker):
        for _ in range(4):
            breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.snapshot().consecutive_failures == 4

    def test_threshold_failures_open_circuit(self, breaker):
        trip(breaker)
        assert breaker.state == CircuitState.OPEN
        assert not breaker.should_allow()

    def test_success_resets_failure_count(self, breaker):
        for _ in range(4):
            breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.snapshot().consecutive_failures == 1


@pytest.mark.unit
class TestOpenAndHalfOpen:
    def test_open_circuit_refuses_during_cooldown(self, breaker, clock):
        trip(breaker)
        clock.advance(29.9)
        assert not breaker.should_allow()
        assert breaker.state == CircuitState.OPEN

    def test_cooldown_elapsed_admits_exactly_one_probe(self, breaker, clock):
        # Arrange
        trip(breaker)
        clock.advance(30)

        # Act
        first = breaker.should_allow()
        second = breaker.should_allow()

        # Assert
        assert first is True
        assert second is False
        assert breaker.state == CircuitState.HALF_OPEN

    def test_successful_probe_closes_circuit(self, breaker, clock):
        trip(breaker)
        clock.advance(30)
        assert breaker.should_allow()

        breaker.record_success()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.should_allow()
        assert breaker.should_allow()

    def test_failed_probe_reopens_and_restarts_cooldown(self, breaker, clock):
        # Arrange
        trip(breaker)
        clock.advance(30)
        assert breaker.should_allow()

        # Act
        breaker.record_failure()

        # Assert
        assert breaker.state == CircuitState.OPEN
        clock.advance(29)
        assert not breaker.should_allow()
        clock.advance(1)
        assert breaker.should_allow()

    def test_one_trial_call_admitted_across_threads(self, breaker, clock):
        trip(breaker)
        clock.advance(30)

        with ThreadPoolExecutor(max_workers=16) as pool:
            admitted = list(pool.map(lambda _: breaker.should_allow(), range(200)))

        assert admitted.count(True) == 1
        assert breaker.state == CircuitState.HALF_OPEN

    def test_released_probe_frees_half_open_slot(self, breaker, clock):
        trip(breaker)
        clock.advance(30)
        assert breaker.should_allow()

        breaker.release_probe()

        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.should_allow()


@pytest.mark.unit
class TestTrackCall:
    def test_marked_success_is_recorded(self, breaker):
        for _ in range(3):
            breaker.record_failure()
        with breaker.track_call() as outcome:
            outcome.success()
        assert breaker.snapshot().consecutive_failures == 0

    def test_unmarked_outcome_counts_as_failure(self, breaker):
        with pytest.raises(RuntimeError):
            with breaker.track_call():
                raise RuntimeError("boom")
        assert breaker.snapshot().consecutive_failures == 1

    def test_ignored_outcome_has_no_health_impact(self, breaker):
        breaker.record_failure()
        with breaker.track_call() as outcome:
            outcome.ignore()
        assert breaker.snapshot().consecutive_failures == 1
        assert breaker.state == CircuitState.CLOSED


@pytest.mark.unit
class TestCircuitBreakerRegistry:
    def test_get_returns_same_breaker_per_service(self, clock):
        registry = CircuitBreakerRegistry(clock=clock)
        assert registry.get("ampeco") is registry.get("ampeco")
        assert registry.get("ampeco") is not registry.get("other")

    def test_snapshot_reports_every_breaker(self, clock):
        registry = CircuitBreakerRegistry(failure_threshold=1, clock=clock)
        registry.get("ampeco").record_failure()
        registry.get("other")

        snapshot = registry.snapshot()

        assert snapshot["ampeco"].state == CircuitState.OPEN
        assert snapshot["ampeco"].to_dict()["state"] == "open"
        assert snapshot["other"].state == CircuitState.CLOSED

    def test_invalid_threshold_is_rejected(self):
        with pytest.raises(ValueError):
            CircuitBreaker("x", failure_threshold=0)
