"""
Process-wide AI providers and content embedder.

All of them are created lazily from settings on first use and shared by
every request.
"""

from __future__ import annotations

from typing import Optional

from forgekit.core.logging_config import get_logger
from forgekit.embeddings.embedder import ContentEmbedder
from forgekit.embeddings.qdrant_store import QdrantStore
from forgekit.providers.base import AIProvider, ModelGenerationProvider
from forgekit.providers.meshy_provider import MeshyProvider
from forgekit.providers.openai_provider import OpenAIProvider
from forgekit.server.core.config import settings

logger = get_logger(__name__)

_ai_provider: Optional[AIProvider] = None
_ai_provider_loaded = False
_embedder: Optional[ContentEmbedder] = None
_model_provider: Optional[MeshyProvider] = None
_model_provider_loaded = False


def get_ai_provider() -> Optional[AIProvider]:
    """The configured provider, or ``None`` when no API key is set."""
    global _ai_provider, _ai_provider_loaded
    if not _ai_provider_loaded:
        _ai_provider = OpenAIProvider.from_settings(settings)
        _ai_provider_loaded = True
    return _ai_provider


def get_embedder() -> ContentEmbedder:
    global _embedder
    if _embedder is None:
        _embedder = ContentEmbedder(get_ai_provider(), QdrantStore.from_config(settings.qdrant))
    return _embedder


def get_model_provider() -> Optional[ModelGenerationProvider]:
    """The Meshy provider, or ``None`` when no Meshy key is set."""
    global _model_provider, _model_provider_loaded
    if not _model_provider_loaded:
        _model_provider = MeshyProvider.from_settings(settings)
        _model_provider_loaded = True
    return _model_provider


async def shutdown_services() -> None:
    """Close the Qdrant and Meshy clients and forget the shared instances."""
    global _ai_provider, _ai_provider_loaded, _embedder, _model_provider, _model_provider_loaded
    if _embedder is not None:
        await _embedder.store.close()
        logger.debug("Qdrant client closed")
    if _model_provider is not None:
        await _model_provider.close()
        logger.debug("Meshy client closed")
    _embedder = None
    _model_provider = None
    _model_provider_loaded = False
    _ai_provider = None
    _ai_provider_loaded = False
