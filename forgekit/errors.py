"""Error types for the ForgeKit backend.

Defines a small hierarchy of exceptions raised by the usage and embedding
services. The HTTP layer maps each of them to a JSON error response.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from forgekit.usage.models import RateLimitStatus


class ForgeKitError(Exception):
    """Base error for all ForgeKit exceptions."""


class RateLimitExceededError(ForgeKitError):
    """Raised when a user has exhausted one of the limits for a service."""

    def __init__(self, service: str, status: "RateLimitStatus") -> None:
        self.service = service
        self.status = status
        super().__init__(status.reason or "Rate limit exceeded")


class EmbeddingServiceDisabledError(ForgeKitError):
    """Raised when embeddings are requested but no provider key is configured."""

    def __init__(self) -> None:
        super().__init__("Embedding service is disabled - API key not configured")


class UnsupportedContentTypeError(ForgeKitError):
    """Raised for content types that have no collection or text extractor."""

    def __init__(self, content_type: str) -> None:
        self.content_type = content_type
        super().__init__(f"Unknown content type: {content_type}")


class ProviderError(ForgeKitError):
    """Raised when an external AI provider call fails."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider} request failed: {message}")
