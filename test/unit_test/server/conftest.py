from typing import AsyncGenerator
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlmodel.ext.asyncio.session import AsyncSession

USER_ID = "user-123"


@pytest.fixture
def user_headers() -> dict:
    return {"X-User-Id": USER_ID}


@pytest_asyncio.fixture(name="client")
async def client_fixture(session: AsyncSession, fake_provider, embedder) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client with mocked lifespan and overridden dependencies."""
    from forgekit.core.database import get_session
    from forgekit.server.main import app
    from forgekit.server.services.providers import get_ai_provider, get_embedder

    async def get_session_override() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_ai_provider] = lambda: fake_provider
    app.dependency_overrides[get_embedder] = lambda: embedder

    # Mock the lifespan to prevent database and Qdrant initialization during tests
    async def mock_lifespan(app):
        yield

    with patch("forgekit.server.main.lifespan", mock_lifespan):
        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=False), base_url="http://localhost"
        ) as client:
            yield client

    app.dependency_overrides.clear()
