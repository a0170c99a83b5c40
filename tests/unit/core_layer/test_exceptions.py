"""
Unit Tests for the Exception Hierarchy

Tests serialization, failure kinds and HTTP status mapping.
"""

import pytest

from evassist.core.config.constants import FailureKind
from evassist.core.exceptions import (
    CircuitBreakerOpenError,
    EVAssistError,
    InvalidToolArgsError,
    ModelProviderError,
    RateLimitExceededError,
    SessionBusyError,
    SessionClosedError,
    SessionNotFoundError,
    UnknownToolError,
    UpstreamPermanentError,
    UpstreamTransientError,
)


@pytest.mark.unit
class TestEVAssistError:
    def test_to_dict_contains_context(self):
        error = EVAssistError("boom", thread_id="t-1", details={"a": 1})
        assert error.to_dict() == {
            "error_type": "EVAssistError",
            "message": "boom",
            "thread_id": "t-1",
            "details": {"a": 1},
        }

    def test_details_are_copied(self):
        details = {"a": 1}
        error = EVAssistError("boom", details=details)
        error.with_context(b=2)
        assert details == {"a": 1}
        assert error.details == {"a": 1, "b": 2}

    def test_from_exception_records_original(self):
        error = ModelProviderError.from_exception(TimeoutError("slow"), provider="openai")
        assert isinstance(error, ModelProviderError)
        assert error.message == "slow"
        assert error.details["original_error"] == "TimeoutError"
        assert error.details["provider"] == "openai"

    def test_repr_includes_thread_id(self):
        assert "thread_id='t-9'" in repr(SessionBusyError("busy", thread_id="t-9"))


@pytest.mark.unit
class TestFailureTaxonomy:
    @pytest.mark.parametrize(
        "error_cls, kind",
        [
            (InvalidToolArgsError, FailureKind.INVALID_ARGS),
            (RateLimitExceededError, FailureKind.RATE_LIMITED),
            (CircuitBreakerOpenError, FailureKind.CIRCUIT_OPEN),
            (UpstreamTransientError, FailureKind.UPSTREAM_TRANSIENT),
            (UpstreamPermanentError, FailureKind.UPSTREAM_PERMANENT),
            (UnknownToolError, FailureKind.UNKNOWN_TOOL),
        ],
    )
    def test_each_taxonomy_error_has_its_kind(self, error_cls, kind):
        assert error_cls("x").kind == kind

    def test_retry_after_and_status_code_come_from_details(self):
        error = UpstreamTransientError("429", details={"status_code": 429, "retry_after": 2.5})
        assert error.status_code == 429
        assert error.retry_after == 2.5

    def test_rate_limit_retry_after(self):
        assert RateLimitExceededError("slow down", details={"retry_after": 12.0}).retry_after == 12.0


@pytest.mark.unit
class TestHttpStatus:
    @pytest.mark.parametrize(
        "error_cls, status",
        [
            (EVAssistError, 500),
            (SessionNotFoundError, 404),
            (SessionBusyError, 409),
            (SessionClosedError, 409),
            (RateLimitExceededError, 429),
            (ModelProviderError, 502),
        ],
    )
    def test_http_status(self, error_cls, status):
        assert error_cls("x").http_status == status
