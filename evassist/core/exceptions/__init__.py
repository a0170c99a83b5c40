"""
Exception Module

Structured exception hierarchy for the EV support assistant, organized by theme.

Module Structure:
-----------------
- **base.py**: EVAssistError base class + ConfigurationError
- **upstream.py**: charging-network API errors (transient / permanent)
- **circuit_breaker.py**: circuit breaker errors
- **rate_limit.py**: rate limiting errors
- **tools.py**: tool dispatch errors
- **session.py**: conversation storage errors
- **provider.py**: language model errors

Errors that belong to the failure taxonomy expose a ``kind`` (FailureKind).

Author: System Architect
Date: 2026-01-12
"""

from evassist.core.exceptions.base import ConfigurationError, EVAssistError
from evassist.core.exceptions.circuit_breaker import CircuitBreakerError, CircuitBreakerOpenError
from evassist.core.exceptions.provider import ModelProviderError
from evassist.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError
from evassist.core.exceptions.session import (
    SessionBusyError,
    SessionClosedError,
    SessionError,
    SessionNotFoundError,
)
from evassist.core.exceptions.tools import InvalidToolArgsError, ToolError, UnknownToolError
from evassist.core.exceptions.upstream import (
    UpstreamError,
    UpstreamPermanentError,
    UpstreamTransientError,
)

__all__ = [
    # Base
    "EVAssistError",
    "ConfigurationError",
    # Upstream
    "UpstreamError",
    "UpstreamTransientError",
    "UpstreamPermanentError",
    # Circuit breaker
    "CircuitBreakerError",
    "CircuitBreakerOpenError",
    # Rate limit
    "RateLimitError",
    "RateLimitExceededError",
    # Tools
    "ToolError",
    "UnknownToolError",
    "InvalidToolArgsError",
    # Session
    "SessionError",
    "SessionNotFoundError",
    "SessionBusyError",
    "SessionClosedError",
    # Provider
    "ModelProviderError",
]
