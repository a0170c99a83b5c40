"""
Tool Dispatch Exceptions

Author: System Architect
Date: 2026-01-12
"""

from evassist.core.config.constants import FailureKind
from evassist.core.exceptions.base import EVAssistError


class ToolError(EVAssistError):
    """Base exception for tool dispatch errors."""

    http_status = 400


class UnknownToolError(ToolError):
    """
    The model asked for a tool that is not registered.

    This is a programming error (tool schemas and registry out of sync) and
    is logged at error level.
    """

    kind = FailureKind.UNKNOWN_TOOL


class InvalidToolArgsError(ToolError):
    """Tool arguments are missing, mistyped, or unexpected."""

    kind = FailureKind.INVALID_ARGS
    http_status = 422
