"""
Handlers mapping ForgeKit domain errors to HTTP responses.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from forgekit.core.logging_config import get_logger
from forgekit.errors import (
    EmbeddingServiceDisabledError,
    ProviderError,
    RateLimitExceededError,
    UnsupportedContentTypeError,
)

logger = get_logger(__name__)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    """403 with the limiter's reason and the full status."""
    logger.info(f"Rate limit rejection on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={
            "detail": str(exc),
            "service": exc.service,
            "rate_limit": exc.status.model_dump(mode="json"),
        },
    )


async def embedding_disabled_handler(request: Request, exc: EmbeddingServiceDisabledError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "Embedding service unavailable", "code": "EMBED_3004", "message": str(exc)},
    )


async def unsupported_content_type_handler(request: Request, exc: UnsupportedContentTypeError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "content_type": exc.content_type},
    )


async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
    logger.warning(f"Provider failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": str(exc), "provider": exc.provider},
    )
