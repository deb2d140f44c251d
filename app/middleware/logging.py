"""Request/response logging middleware."""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.logging import bind_request_id, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns a request id and logs request start and completion with timing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        logger.info("request_started", method=method, path=path, client_ip=client_ip)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=method,
                path=path,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        log_method = logger.info if response.status_code < 400 else logger.warning
        log_method(
            "request_completed",
            method=method,
            path=path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
