"""
Session Store Exceptions

Author: System Architect
Date: 2026-01-12
"""

from evassist.core.exceptions.base import EVAssistError


class SessionError(EVAssistError):
    """Base exception for conversation storage errors."""
    pass


class SessionNotFoundError(SessionError):
    """No conversation exists for the requested thread id."""

    http_status = 404


class SessionBusyError(SessionError):
    """A turn for this thread id is already in flight."""

    http_status = 409


class SessionClosedError(SessionError):
    """The conversation has ended and accepts no further turns."""

    http_status = 409
