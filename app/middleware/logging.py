# app/middleware/logging.py
import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from core.errors import InternalServerError

logger = logging.getLogger("elsoug_app.requests")

_HIDDEN_HEADERS = {"authorization", "cookie"}


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log incoming requests and outgoing responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        """Log request and response details.

        Args:
            request (Request): The incoming HTTP request.
            call_next: The next middleware or endpoint to process the request.

        Returns:
            Response: The HTTP response after processing.

        Raises:
            InternalServerError: If an unexpected error occurs during request processing.
        """
        started = time.perf_counter()
        client_host = request.client.host if request.client else "unknown"
        try:
            headers = {k: v for k, v in request.headers.items() if k.lower() not in _HIDDEN_HEADERS}
            logger.info(
                f"Request: {request.method} {request.url.path} "
                f"from {client_host} "
                f"headers={headers}"
            )

            response = await call_next(request)

            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"Response: {request.method} {request.url.path} "
                f"status={response.status_code} duration_ms={elapsed_ms:.1f}"
            )

            return response

        except RuntimeError as re:
            logger.error(f"RuntimeError in request processing: {str(re)}", exc_info=True)
            raise InternalServerError(f"Request processing failed: {str(re)}")
        except Exception as e:
            logger.error(f"Unexpected error in request processing: {str(e)}", exc_info=True)
            raise InternalServerError(f"Internal server error: {str(e)}")
