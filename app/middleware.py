"""
Request logging middleware.

Logs every HTTP request with method, path, status code, and latency.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("livecoach.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log request method, path, status code, and response time."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            level = logging.WARNING if status_code >= 500 else logging.INFO
            logger.log(
                level,
                "%s %s → %d (%.2fms)",
                request.method,
                request.url.path,
                status_code,
                elapsed_ms,
            )
