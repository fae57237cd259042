from __future__ import annotations

import os
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Iterable, List, Optional, Sequence

import httpx
import pytest
import pytest_asyncio

# Load dotenv files early so test fixtures can read secrets via os.getenv
try:  # pragma: no cover
    from dotenv import load_dotenv

    TEST_ROOT = Path(__file__).resolve().parent
    # Load test/.env first, then fallback to test/.env.example for defaults
    load_dotenv(TEST_ROOT / ".env", override=False)
    load_dotenv(TEST_ROOT / ".env.example", override=False)
except Exception:
    pass

# Use in-memory SQLite for testing, set before any forgekit import builds the engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from qdrant_client import AsyncQdrantClient  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402
from sqlmodel.pool import StaticPool  # noqa: E402

from forgekit.core.database.utils import create_all, create_sessionmaker  # noqa: E402
from forgekit.embeddings.embedder import ContentEmbedder  # noqa: E402
from forgekit.embeddings.qdrant_store import QdrantStore  # noqa: E402
from forgekit.providers.base import ChatResult, EmbeddingResult, ImageResult  # noqa: E402
from forgekit.usage.rate_limiter import rate_limit_registry  # noqa: E402

# Keyword axes of the fake embedding space
FAKE_AXES = ("dragon", "sword", "forest", "castle", "potion", "king", "ship", "magic")
FAKE_DIMENSIONS = len(FAKE_AXES)


class FakeAIProvider:
    """In-process provider with a tiny keyword embedding space.

    Each dimension counts one keyword, on top of a small baseline so no vector
    is ever zero. Texts about the same keyword end up close to each other.
    """

    name = "fake"
    model = "text-embedding-3-small"
    dimensions = FAKE_DIMENSIONS
    chat_model = "gpt-3.5-turbo"

    def __init__(self) -> None:
        self.embed_calls: List[List[str]] = []
        self.chat_calls: List[Dict[str, Any]] = []
        self.image_calls: List[Dict[str, Any]] = []

    @staticmethod
    def vector_for(text: str) -> List[float]:
        words = text.lower().replace(",", " ").replace(".", " ").split()
        return [0.01 + words.count(axis) for axis in FAKE_AXES]

    async def embed(self, texts: Sequence[str], model: Optional[str] = None) -> EmbeddingResult:
        self.embed_calls.append(list(texts))
        return EmbeddingResult(
            embeddings=[self.vector_for(text) for text in texts],
            model=model or self.model,
            tokens_used=sum(len(text.split()) for text in texts),
        )

    async def chat(
        self,
        messages: Sequence[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> ChatResult:
        self.chat_calls.append({"messages": list(messages), "model": model, "max_tokens": max_tokens})
        return ChatResult(
            content="Greetings, traveller.",
            model=model or self.chat_model,
            prompt_tokens=10,
            completion_tokens=20,
            tokens_used=30,
            finish_reason="stop",
        )

    async def generate_image(
        self,
        prompt: str,
        model: str = "dall-e-3",
        size: str = "1024x1024",
        quality: str = "standard",
        style: str = "vivid",
    ) -> ImageResult:
        self.image_calls.append({"prompt": prompt, "model": model, "size": size, "quality": quality, "style": style})
        return ImageResult(url="https://images.example/dragon.png", model=model, revised_prompt=f"A {style} {prompt}")


@pytest.fixture(autouse=True)
def _global_offline_http_guard(monkeypatch: pytest.MonkeyPatch):
    allowed_prefixes: Iterable[str] = (
        "http://mock",
        "https://mock",
        "http://localhost",
        "http://127.0.0.1",
        "http://0.0.0.0",
        "/",  # Allow relative paths (used by ASGI transport)
    )

    orig_sync = httpx._client.Client.request
    orig_async = httpx._client.AsyncClient.request

    def _is_allowed(url_str: str) -> bool:
        return any(url_str.startswith(p) for p in allowed_prefixes)

    def offline_sync(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return orig_sync(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard: {url_str}")

    async def offline_async(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return await orig_async(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard (async): {url_str}")

    monkeypatch.setattr(httpx._client.Client, "request", offline_sync, raising=True)
    monkeypatch.setattr(httpx._client.AsyncClient, "request", offline_async, raising=True)


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    """Custom limits are process-wide; every test starts from the defaults."""
    rate_limit_registry.reset()
    yield
    rate_limit_registry.reset()


@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine with the ledger tables created."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_all(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(name="session")
async def session_fixture(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a new session for each test."""
    async with create_sessionmaker(test_engine)() as session:
        yield session


@pytest.fixture
def fake_provider() -> FakeAIProvider:
    return FakeAIProvider()


@pytest_asyncio.fixture
async def qdrant_store() -> AsyncGenerator[QdrantStore, None]:
    """Store backed by an in-process Qdrant instance."""
    store = QdrantStore(AsyncQdrantClient(location=":memory:"), vector_size=FAKE_DIMENSIONS)
    yield store
    await store.close()


@pytest_asyncio.fixture
async def embedder(fake_provider: FakeAIProvider, qdrant_store: QdrantStore) -> ContentEmbedder:
    content_embedder = ContentEmbedder(fake_provider, qdrant_store)
    await content_embedder.initialize()
    return content_embedder
