"""Outbound AI providers."""

from .base import (
    AIProvider,
    ChatProvider,
    ChatResult,
    EmbeddingProvider,
    EmbeddingResult,
    ImageProvider,
    ImageResult,
    ModelGenerationProvider,
    ModelTask,
)
from .meshy_provider import MeshyProvider
from .openai_provider import OpenAIProvider

__all__ = [
    "AIProvider",
    "ChatProvider",
    "ChatResult",
    "EmbeddingProvider",
    "EmbeddingResult",
    "ImageProvider",
    "ImageResult",
    "MeshyProvider",
    "ModelGenerationProvider",
    "ModelTask",
    "OpenAIProvider",
]
