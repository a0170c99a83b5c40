"""
Upstream Result Models

Typed results returned by the resilient external client. Failures are data,
not exceptions, from this layer upward.

Author: System Architect
Date: 2026-01-12
"""

from dataclasses import dataclass
from typing import Any

from evassist.core.config.constants import FailureKind
from evassist.core.exceptions import EVAssistError


@dataclass(frozen=True)
class Failure:
    """A typed, non-exceptional failure."""

    kind: FailureKind
    message: str
    retry_after: float | None = None
    status_code: int | None = None

    @classmethod
    def from_error(cls, error: EVAssistError) -> "Failure":
        """Failure describing a taxonomy exception (one that defines `kind`)."""
        return cls(
            kind=error.kind or FailureKind.UPSTREAM_TRANSIENT,
            message=error.message,
            retry_after=getattr(error, "retry_after", None),
            status_code=getattr(error, "status_code", None),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.retry_after is not None:
            data["retry_after"] = round(self.retry_after, 3)
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data


@dataclass(frozen=True)
class UpstreamResult:
    """
    Either a payload or a Failure.

    from_cache: payload served from a fresh cache entry
    stale: payload is a last-known value served because the upstream was
        unavailable; `failure` then still describes why
    """

    payload: Any = None
    failure: Failure | None = None
    from_cache: bool = False
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.failure is None or self.stale

    @classmethod
    def success(cls, payload: Any, from_cache: bool = False) -> "UpstreamResult":
        return cls(payload=payload, from_cache=from_cache)

    @classmethod
    def fail(cls, failure: Failure) -> "UpstreamResult":
        return cls(failure=failure)

    @classmethod
    def stale_fallback(cls, payload: Any, failure: Failure) -> "UpstreamResult":
        return cls(payload=payload, failure=failure, stale=True)
