"""
FastAPI dependencies.

Provides the database session, the caller identity, per-request usage
accounting services and the shared AI providers and embedder.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession

from forgekit.core.database import get_session
from forgekit.core.database.repositories import AIServiceCallRepository
from forgekit.embeddings.embedder import ContentEmbedder
from forgekit.providers.base import AIProvider, ImageProvider, ModelGenerationProvider
from forgekit.usage.metering import UsageMeter
from forgekit.usage.rate_limiter import RateLimiter

from .providers import get_ai_provider, get_embedder, get_model_provider

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def get_current_user_id(x_user_id: Annotated[Optional[str], Header()] = None) -> str:
    """Caller identity from the ``X-User-Id`` header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return x_user_id.strip()


CurrentUserDep = Annotated[str, Depends(get_current_user_id)]


def get_rate_limiter(session: SessionDep) -> RateLimiter:
    return RateLimiter(AIServiceCallRepository(session))


RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]


def get_usage_meter(limiter: RateLimiterDep) -> UsageMeter:
    return UsageMeter(limiter)


UsageMeterDep = Annotated[UsageMeter, Depends(get_usage_meter)]

EmbedderDep = Annotated[ContentEmbedder, Depends(get_embedder)]


def require_ai_provider(provider: Annotated[Optional[AIProvider], Depends(get_ai_provider)]) -> AIProvider:
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="AI provider not configured - set OPENAI_API_KEY or AI_GATEWAY_API_KEY",
        )
    return provider


AIProviderDep = Annotated[AIProvider, Depends(require_ai_provider)]


def require_image_provider(provider: Annotated[Optional[AIProvider], Depends(get_ai_provider)]) -> ImageProvider:
    if not isinstance(provider, ImageProvider):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Image generation not available - set OPENAI_API_KEY or AI_GATEWAY_API_KEY",
        )
    return provider


ImageProviderDep = Annotated[ImageProvider, Depends(require_image_provider)]


def require_model_provider(
    provider: Annotated[Optional[ModelGenerationProvider], Depends(get_model_provider)],
) -> ModelGenerationProvider:
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="3D model generation not configured - set MESHY_API_KEY",
        )
    return provider


ModelProviderDep = Annotated[ModelGenerationProvider, Depends(require_model_provider)]
