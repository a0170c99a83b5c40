"""
Base Exception Class

Only the root of the exception hierarchy lives here. Specialized exceptions
are in their themed modules.

Author: System Architect
Date: 2026-01-12
"""

from typing import Any, ClassVar

from evassist.core.config.constants import FailureKind


class EVAssistError(Exception):
    """
    Base exception for all assistant errors.

    Attributes:
        message: Error message
        thread_id: Conversation thread id for correlation (if available)
        details: Additional error details (dict)
        kind: FailureKind of the error, when it belongs to the failure taxonomy
        http_status: Status used when the error reaches the HTTP surface

    Example:
        raise UpstreamPermanentError(
            "Station not found",
            details={"status_code": 404, "operation": "get_station_status"},
        )
    """

    kind: ClassVar[FailureKind | None] = None
    http_status: ClassVar[int] = 500

    def __init__(
        self, message: str, thread_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.thread_id = thread_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "thread_id": self.thread_id,
            "details": self.details,
        }

    def with_context(self, **context) -> "EVAssistError":
        """Add additional context to the error details (chainable)."""
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        thread_id_str = f", thread_id='{self.thread_id}'" if self.thread_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{thread_id_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        thread_id: str | None = None,
        **details
    ) -> "EVAssistError":
        """
        Create an error from another exception.

        Useful for wrapping third-party exceptions (httpx, openai, redis)
        with additional context.
        """
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(message or str(exc), thread_id=thread_id, details=error_details)


class ConfigurationError(EVAssistError):
    """Raised when configuration is invalid or missing."""
    pass
