"""HTTP middleware."""

from evassist.application.api.middleware.error_handler import ErrorHandlingMiddleware

__all__ = ["ErrorHandlingMiddleware"]
