#!/usr/bin/env python3
"""
Circuit Breaker

Tracks upstream health per service name and short-circuits calls while the
service is failing.

State machine:
    CLOSED    --(consecutive failures >= threshold)-->  OPEN
    OPEN      --(recovery timeout elapsed, next check)-> HALF_OPEN (one probe)
    HALF_OPEN --(probe succeeds)-->                      CLOSED
    HALF_OPEN --(probe fails)-->                         OPEN

Every admitted call must report its outcome. track_call() guarantees it:
an outcome that was never marked (exception, cancellation) is reported as a
failure when the block exits.

    if breaker.should_allow():
        with breaker.track_call() as outcome:
            payload = await send()
            outcome.success()

All state reads and transitions happen under a threading.Lock and never
suspend.

Author: System Architect
Date: 2026-01-12
"""

import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from evassist.core.config.constants import CircuitState, Stage
from evassist.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


@dataclass(frozen=True)
class CircuitSnapshot:
    """Point-in-time view of a breaker, for health reporting and tests."""

    service: str
    state: CircuitState
    consecutive_failures: int
    last_failure_at: float | None
    opened_at: float | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "consecutive_failures": self.consecutive_failures,
            "last_failure_at": self.last_failure_at,
            "opened_at": self.opened_at,
        }


class CallOutcome:
    """Outcome slot handed out by CircuitBreaker.track_call()."""

    SUCCESS = "success"
    FAILURE = "failure"
    IGNORE = "ignore"

    def __init__(self):
        self.result: str | None = None

    def success(self) -> None:
        self.result = self.SUCCESS

    def failure(self) -> None:
        self.result = self.FAILURE

    def ignore(self) -> None:
        """The call ended in a way that says nothing about service health."""
        self.result = self.IGNORE


class CircuitBreaker:
    """
    In-process circuit breaker for one upstream service.

    STAGE-CB: Circuit breaker

    Half-open admits exactly one probe: while it is in flight other callers
    are refused, and its reported outcome decides the next state.
    """

    def __init__(
        self,
        service: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.service = service
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure_at: float | None = None
        self._opened_at: float | None = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        log_stage(
            logger,
            Stage.CIRCUIT_BREAKER,
            "Circuit state changed",
            level="error" if new_state == CircuitState.OPEN else "info",
            service=self.service,
            old_state=old_state.value,
            new_state=new_state.value,
            consecutive_failures=self._failures,
        )

    def should_allow(self) -> bool:
        """
        Decide whether a call may proceed.

        Returns False while open and cooling down, and while a half-open
        probe is already in flight. An open circuit whose cool-down elapsed
        moves to half-open and admits the caller as the probe.
        """
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return True

            if self._state == CircuitState.OPEN:
                if self._clock() - (self._opened_at or 0.0) < self.recovery_timeout:
                    return False
                self._transition(CircuitState.HALF_OPEN)

            if self._probe_in_flight:
                return False
            self._probe_in_flight = True
            return True

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._probe_in_flight = False
            if self._state != CircuitState.CLOSED:
                self._opened_at = None
                self._transition(CircuitState.CLOSED)

    def record_failure(self) -> None:
        with self._lock:
            now = self._clock()
            self._failures += 1
            self._last_failure_at = now
            self._probe_in_flight = False

            if self._state == CircuitState.HALF_OPEN or (
                self._state == CircuitState.CLOSED and self._failures >= self.failure_threshold
            ):
                self._opened_at = now
                self._transition(CircuitState.OPEN)
            else:
                log_stage(
                    logger,
                    Stage.CIRCUIT_BREAKER,
                    "Circuit recorded failure",
                    level="warning",
                    service=self.service,
                    consecutive_failures=self._failures,
                    threshold=self.failure_threshold,
                )

    def release_probe(self) -> None:
        """Free the half-open slot without judging service health."""
        with self._lock:
            self._probe_in_flight = False

    @contextmanager
    def track_call(self) -> Iterator[CallOutcome]:
        """Report the wrapped call's outcome, defaulting to failure."""
        outcome = CallOutcome()
        try:
            yield outcome
        finally:
            if outcome.result == CallOutcome.SUCCESS:
                self.record_success()
            elif outcome.result == CallOutcome.IGNORE:
                self.release_probe()
            else:
                self.record_failure()

    def snapshot(self) -> CircuitSnapshot:
        with self._lock:
            return CircuitSnapshot(
                service=self.service,
                state=self._state,
                consecutive_failures=self._failures,
                last_failure_at=self._last_failure_at,
                opened_at=self._opened_at,
            )


class CircuitBreakerRegistry:
    """One breaker per service name, created on first use."""

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, service: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(service)
            if breaker is None:
                breaker = CircuitBreaker(
                    service, self._failure_threshold, self._recovery_timeout, self._clock
                )
                self._breakers[service] = breaker
            return breaker

    def snapshot(self) -> dict[str, CircuitSnapshot]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {b.service: b.snapshot() for b in breakers}
