"""
Request Logging Middleware for FastAPI.

Times every request and reports it through :func:`log_api_request` (Logfire
when enabled, debug log otherwise). Each response carries ``X-Process-Time``
in milliseconds and an ``X-Request-Id``, reused from the request when the
caller sent one. Requests slower than ``SLOW_REQUEST_MS`` are logged as
warnings together with the calling user, since slow requests here are almost
always slow provider or Qdrant round-trips.
"""

import time
import uuid
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from forgekit.core.logging_config import get_logger
from forgekit.core.monitoring import log_api_request

logger = get_logger(__name__)

SLOW_REQUEST_MS = 1000
REQUEST_ID_HEADER = "X-Request-Id"


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Times, identifies and logs API requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        user_id = request.headers.get("X-User-Id") or "anonymous"
        context = {"request_id": request_id, "user_id": user_id, "method": request.method, "path": request.url.path}
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = _elapsed_ms(started)
            logger.error(
                f"[{request_id}] {request.method} {request.url.path} failed after {duration_ms:.2f}ms",
                exc_info=True,
                extra={**context, "duration_ms": duration_ms},
            )
            log_api_request(method=request.method, path=request.url.path, status_code=500, duration_ms=duration_ms)
            raise

        duration_ms = _elapsed_ms(started)
        log_api_request(
            method=request.method, path=request.url.path, status_code=response.status_code, duration_ms=duration_ms
        )
        response.headers["X-Process-Time"] = f"{duration_ms:.2f}"
        response.headers[REQUEST_ID_HEADER] = request_id

        if duration_ms > SLOW_REQUEST_MS:
            logger.warning(
                f"Slow API request [{request_id}]: {request.method} {request.url.path} by {user_id} "
                f"took {duration_ms:.2f}ms",
                extra={**context, "duration_ms": duration_ms, "status_code": response.status_code},
            )

        return response
