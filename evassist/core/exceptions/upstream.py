"""
Upstream API Exceptions

Raised by the charging-network transport. The resilient client converts them
into typed Failure results, they never cross the tool boundary as exceptions.

Author: System Architect
Date: 2026-01-12
"""

from evassist.core.config.constants import FailureKind
from evassist.core.exceptions.base import EVAssistError


class UpstreamError(EVAssistError):
    """Base exception for upstream API errors."""

    http_status = 502

    @property
    def status_code(self) -> int | None:
        return self.details.get("status_code")


class UpstreamTransientError(UpstreamError):
    """
    Failure that may succeed on retry.

    Network errors, attempt timeouts, HTTP 429 and HTTP 5xx. A 429 may carry
    a retry-after hint (seconds) in details["retry_after"].
    """

    kind = FailureKind.UPSTREAM_TRANSIENT
    http_status = 503

    @property
    def retry_after(self) -> float | None:
        return self.details.get("retry_after")


class UpstreamPermanentError(UpstreamError):
    """
    Failure that retrying cannot fix.

    HTTP 4xx other than 429 and unparseable response bodies.
    """

    kind = FailureKind.UPSTREAM_PERMANENT
