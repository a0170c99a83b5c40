"""
Error Handling Middleware
=========================

Last line of defense for exceptions no route or exception handler dealt
with. Domain errors (EVAssistError) are answered by the exception handler
registered in app.py with their own status code; anything else reaching
this middleware is a bug, so it is logged with its stack trace and the
client gets a generic 500.

Streaming turns never get here: a turn that fails after the stream has
started reports its failure as the stream's terminal error event.
"""

import traceback
from collections.abc import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from evassist.core.logging.logger import get_logger

logger = get_logger(__name__)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, include_traceback: bool = False):
        """
        Args:
            app: The ASGI application
            include_traceback: Whether to include stack traces in error responses
                              (development only)
        """
        super().__init__(app)
        self.include_traceback = include_traceback

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            method = request.method
            path = request.url.path
            error_type = type(e).__name__

            # exc_info=True includes the full stack trace in logs
            logger.error(
                f"Unhandled exception in request: {method} {path}",
                method=method,
                path=path,
                error_type=error_type,
                error_message=str(e),
                exc_info=True,
            )

            error_response = {
                "error": "internal_server_error",
                "message": "An unexpected error occurred while processing your request",
                "error_type": error_type,
            }
            if self.include_traceback:
                error_response["traceback"] = traceback.format_exc()
                error_response["detail"] = str(e)

            return JSONResponse(status_code=500, content=error_response)
