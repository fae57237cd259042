"""
OpenAI-compatible provider.

Talks to the OpenAI API directly, or to an OpenAI-compatible AI gateway when
a gateway key is configured. Through the gateway model ids are provider
prefixed (``openai/text-embedding-3-small``); the ledger and cost tables
always see the bare model id.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError

from forgekit.core.logging_config import get_logger
from forgekit.errors import ProviderError
from forgekit.server.core.config import Settings

from .base import ChatResult, EmbeddingResult, ImageResult

logger = get_logger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIMENSIONS = 1536


class OpenAIProvider:
    """Embedding, chat and image provider backed by ``AsyncOpenAI``."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS,
        chat_model: str = "gpt-3.5-turbo",
        model_prefix: str = "",
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model = embedding_model
        self.dimensions = dimensions
        self.chat_model = chat_model
        self.model_prefix = model_prefix
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)

    @classmethod
    def from_settings(cls, config: Settings) -> Optional["OpenAIProvider"]:
        """Build a provider from settings, preferring the AI gateway.

        Returns:
            The provider, or ``None`` when no key is configured.
        """
        gateway = config.ai_gateway
        if gateway.enabled:
            logger.info("Using AI gateway for embeddings and chat")
            return cls(
                api_key=gateway.api_key or "",
                base_url=gateway.base_url,
                dimensions=config.qdrant.vector_size,
                chat_model=config.openai.chat_model,
                model_prefix="openai/",
            )

        openai_config = config.openai
        if openai_config.api_key:
            logger.info("Using OpenAI API for embeddings and chat")
            return cls(
                api_key=openai_config.api_key,
                base_url=openai_config.base_url,
                dimensions=config.qdrant.vector_size,
                chat_model=openai_config.chat_model,
            )

        logger.warning("No OPENAI_API_KEY or AI_GATEWAY_API_KEY configured, AI provider disabled")
        return None

    def _routed(self, model: str) -> str:
        if not self.model_prefix or "/" in model:
            return model
        return f"{self.model_prefix}{model}"

    async def embed(self, texts: Sequence[str], model: Optional[str] = None) -> EmbeddingResult:
        embedding_model = model or self.model
        try:
            response = await self.client.embeddings.create(model=self._routed(embedding_model), input=list(texts))
        except OpenAIError as e:
            logger.error(f"Embedding request failed: {e}")
            raise ProviderError(self.name, str(e)) from e

        # Results may come back out of order
        ordered = sorted(response.data, key=lambda item: item.index)
        tokens = response.usage.total_tokens if response.usage else 0
        return EmbeddingResult(
            embeddings=[list(item.embedding) for item in ordered],
            model=embedding_model,
            tokens_used=tokens,
        )

    async def chat(
        self,
        messages: Sequence[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> ChatResult:
        chat_model = model or self.chat_model
        kwargs: Dict[str, Any] = {
            "model": self._routed(chat_model),
            "messages": list(messages),
            "temperature": temperature,
        }
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            logger.error(f"Chat completion failed: {e}")
            raise ProviderError(self.name, str(e)) from e

        choice = response.choices[0]
        usage = response.usage
        return ChatResult(
            content=choice.message.content or "",
            model=chat_model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            tokens_used=usage.total_tokens if usage else 0,
            finish_reason=choice.finish_reason,
        )

    async def generate_image(
        self,
        prompt: str,
        model: str = "dall-e-3",
        size: str = "1024x1024",
        quality: str = "standard",
        style: str = "vivid",
    ) -> ImageResult:
        kwargs: Dict[str, Any] = {"model": self._routed(model), "prompt": prompt, "size": size, "n": 1}
        # Only dall-e-3 accepts quality and style
        if model == "dall-e-3":
            kwargs.update(quality=quality, style=style)

        try:
            response = await self.client.images.generate(**kwargs)
        except OpenAIError as e:
            logger.error(f"Image generation failed: {e}")
            raise ProviderError(self.name, str(e)) from e

        if not response.data:
            raise ProviderError(self.name, "Image generation returned no image")
        image = response.data[0]
        if image.url:
            url = image.url
        elif image.b64_json:
            url = f"data:image/png;base64,{image.b64_json}"
        else:
            raise ProviderError(self.name, "Image generation returned neither a URL nor image data")
        return ImageResult(url=url, model=model, revised_prompt=image.revised_prompt)
