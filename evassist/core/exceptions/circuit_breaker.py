"""
Circuit Breaker Exceptions

Author: System Architect
Date: 2026-01-12
"""

from evassist.core.config.constants import FailureKind
from evassist.core.exceptions.base import EVAssistError


class CircuitBreakerError(EVAssistError):
    """Base exception for circuit breaker errors."""
    pass


class CircuitBreakerOpenError(CircuitBreakerError):
    """
    Raised when the circuit is open (fail fast).

    The circuit moves to half-open once the recovery timeout elapses, at
    which point a single probe request is let through.
    """

    kind = FailureKind.CIRCUIT_OPEN
    http_status = 503
