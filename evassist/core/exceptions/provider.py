"""
Model Provider Exceptions

Author: System Architect
Date: 2026-01-12
"""

from evassist.core.exceptions.base import EVAssistError


class ModelProviderError(EVAssistError):
    """
    The language model call failed.

    Raised when the provider cannot be reached, rejects the credential, or
    aborts the stream. The emitter turns it into a single terminal error event.
    """

    http_status = 502
