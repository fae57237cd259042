"""
Exception handler registration and the catch-all 500 handler.

Domain errors (rate limits, disabled embeddings, unknown content types and
provider failures) have dedicated handlers in :mod:`.domain_handlers`.
Anything else is logged with full request context and answered with an
opaque 500 carrying an ``error_id`` that also appears in the log line.
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from forgekit.core.logging_config import get_logger
from forgekit.errors import (
    EmbeddingServiceDisabledError,
    ProviderError,
    RateLimitExceededError,
    UnsupportedContentTypeError,
)

from .domain_handlers import (
    embedding_disabled_handler,
    provider_error_handler,
    rate_limit_exceeded_handler,
    unsupported_content_type_handler,
)

logger = get_logger(__name__)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # The request id set by the logging middleware ties the response to the request log
    error_id = getattr(request.state, "request_id", None) or uuid.uuid4().hex
    error_type = type(exc).__name__

    logger.error(
        f"Unhandled {error_type} [{error_id}] in {request.method} {request.url.path}: {exc}",
        exc_info=exc,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "user_id": request.headers.get("X-User-Id"),
            "client": request.client.host if request.client else "unknown",
            "error_type": error_type,
        },
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_id": error_id, "error_type": error_type},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the domain handlers and the catch-all handler on ``app``."""
    app.add_exception_handler(RateLimitExceededError, rate_limit_exceeded_handler)
    app.add_exception_handler(EmbeddingServiceDisabledError, embedding_disabled_handler)
    app.add_exception_handler(UnsupportedContentTypeError, unsupported_content_type_handler)
    app.add_exception_handler(ProviderError, provider_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered")
