"""
Provider interfaces for outbound AI calls.

The embedding, chat, image and 3D model providers are opaque collaborators:
the rest of the service only depends on these protocols, so tests substitute
in-process fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable


@dataclass
class EmbeddingResult:
    embeddings: List[List[float]]
    model: str
    tokens_used: int = 0


@dataclass
class ChatResult:
    content: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    tokens_used: int = 0
    finish_reason: Optional[str] = None


@dataclass
class ImageResult:
    # Remote URL or a base64 data URL
    url: str
    model: str
    revised_prompt: Optional[str] = None


@dataclass
class ModelTask:
    """A queued 3D model generation. ``status`` is pending, processing, completed or failed."""

    task_id: str
    status: str
    model: str


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns texts into fixed-size vectors."""

    name: str
    model: str
    dimensions: int

    async def embed(self, texts: Sequence[str], model: Optional[str] = None) -> EmbeddingResult: ...


@runtime_checkable
class ChatProvider(Protocol):
    """Produces a chat completion for a list of role/content messages."""

    name: str
    chat_model: str

    async def chat(
        self,
        messages: Sequence[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> ChatResult: ...


@runtime_checkable
class AIProvider(EmbeddingProvider, ChatProvider, Protocol):
    """Provider that serves both embeddings and chat completions."""


@runtime_checkable
class ImageProvider(Protocol):
    """Generates one image from a text prompt."""

    name: str

    async def generate_image(
        self,
        prompt: str,
        model: str = "dall-e-3",
        size: str = "1024x1024",
        quality: str = "standard",
        style: str = "vivid",
    ) -> ImageResult: ...


@runtime_checkable
class ModelGenerationProvider(Protocol):
    """Queues text-to-3D generations."""

    name: str
    model: str

    async def text_to_model(
        self,
        prompt: str,
        art_style: str = "realistic",
        negative_prompt: str = "",
        topology: str = "quad",
        target_polycount: int = 30000,
    ) -> ModelTask: ...
