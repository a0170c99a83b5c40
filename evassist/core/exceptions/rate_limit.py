"""
Rate Limiting Exceptions

Author: System Architect
Date: 2026-01-12
"""

from evassist.core.config.constants import FailureKind
from evassist.core.exceptions.base import EVAssistError


class RateLimitError(EVAssistError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised when a principal exhausted its fixed-window allowance.

    details["retry_after"] holds the seconds until the window resets.
    """

    kind = FailureKind.RATE_LIMITED
    http_status = 429

    @property
    def retry_after(self) -> float | None:
        return self.details.get("retry_after")
