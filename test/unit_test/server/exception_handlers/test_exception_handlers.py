"""
Unit tests for server exception handlers.

Tests cover the mapping of domain errors to HTTP responses and the global
handler for unexpected exceptions.
"""

import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from forgekit.errors import (
    EmbeddingServiceDisabledError,
    ProviderError,
    RateLimitExceededError,
    UnsupportedContentTypeError,
)
from forgekit.server.exception_handlers import setup_exception_handlers
from forgekit.server.exception_handlers.domain_handlers import rate_limit_exceeded_handler
from forgekit.server.exception_handlers.global_handler import global_exception_handler
from forgekit.usage.models import RateLimits, RateLimitStatus, ResetTimes, UsageCounters

pytestmark = pytest.mark.asyncio


def rejected_status() -> RateLimitStatus:
    return RateLimitStatus(
        allowed=False,
        reason="Hourly call limit exceeded (1 calls per hour)",
        current=UsageCounters(calls_this_hour=1, calls_today=1),
        limits=RateLimits(max_calls_per_hour=1, max_calls_per_day=10, max_tokens_per_day=0, max_cost_per_day=100),
        reset_at=ResetTimes(
            hourly=datetime(2026, 10, 16, 14, tzinfo=timezone.utc),
            daily=datetime(2026, 10, 17, tzinfo=timezone.utc),
        ),
    )


@pytest.fixture
def mock_request():
    request = Mock(spec=Request)
    request.method = "GET"
    request.url.path = "/api/v1/test"
    request.query_params = {}
    request.headers = {"X-User-Id": "user-1"}
    request.state = SimpleNamespace()
    request.client = Mock()
    request.client.host = "127.0.0.1"
    return request


@pytest.fixture
def app() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/rate-limited")
    async def rate_limited():
        raise RateLimitExceededError("openai", rejected_status())

    @app.get("/disabled")
    async def disabled():
        raise EmbeddingServiceDisabledError()

    @app.get("/unsupported")
    async def unsupported():
        raise UnsupportedContentTypeError("spell")

    @app.get("/provider")
    async def provider():
        raise ProviderError("openai", "upstream timeout")

    @app.get("/crash")
    async def crash():
        raise ValueError("Test error")

    return app


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://localhost") as client:
        yield client


class TestDomainHandlers:
    async def test_rate_limit_is_forbidden(self, client):
        response = await client.get("/rate-limited")

        assert response.status_code == 403
        data = response.json()
        assert data["detail"] == "Hourly call limit exceeded (1 calls per hour)"
        assert data["service"] == "openai"
        assert data["rate_limit"]["allowed"] is False
        assert data["rate_limit"]["limits"]["max_calls_per_hour"] == 1
        assert data["rate_limit"]["reset_at"]["hourly"].startswith("2026-10-16T14:00:00")

    async def test_rate_limit_handler_directly(self, mock_request):
        response = await rate_limit_exceeded_handler(mock_request, RateLimitExceededError("meshy", rejected_status()))

        assert response.status_code == 403
        assert json.loads(response.body)["service"] == "meshy"

    async def test_embedding_disabled_is_unavailable(self, client):
        response = await client.get("/disabled")

        assert response.status_code == 503
        assert response.json()["code"] == "EMBED_3004"

    async def test_unsupported_content_type_is_bad_request(self, client):
        response = await client.get("/unsupported")

        assert response.status_code == 400
        assert response.json() == {"detail": "Unknown content type: spell", "content_type": "spell"}

    async def test_provider_error_is_bad_gateway(self, client):
        response = await client.get("/provider")

        assert response.status_code == 502
        assert response.json()["provider"] == "openai"
        assert "upstream timeout" in response.json()["detail"]


class TestGlobalExceptionHandler:
    async def test_unhandled_exception_returns_500(self, client):
        response = await client.get("/crash")

        assert response.status_code == 500
        data = response.json()
        assert data["detail"] == "Internal server error"
        assert data["error_type"] == "ValueError"
        assert isinstance(data["error_id"], str)
        assert len(data["error_id"]) == 32

    async def test_exception_handler_logs_error(self, mock_request):
        exc = ValueError("Test error")

        with patch("forgekit.server.exception_handlers.global_handler.logger") as mock_logger:
            response = await global_exception_handler(mock_request, exc)

        assert response.status_code == 500
        mock_logger.error.assert_called_once()
        call_args = mock_logger.error.call_args
        assert "Unhandled ValueError" in call_args[0][0]
        assert call_args[1]["extra"]["user_id"] == "user-1"
        assert call_args[1]["extra"]["error_type"] == "ValueError"
        assert call_args[1]["extra"]["path"] == "/api/v1/test"

    async def test_exception_handler_without_client(self, mock_request):
        mock_request.client = None

        with patch("forgekit.server.exception_handlers.global_handler.logger") as mock_logger:
            await global_exception_handler(mock_request, RuntimeError("no client"))

        assert mock_logger.error.call_args[1]["extra"]["client"] == "unknown"

    async def test_error_id_reuses_request_id(self, mock_request):
        mock_request.state.request_id = "req-42"

        with patch("forgekit.server.exception_handlers.global_handler.logger"):
            response = await global_exception_handler(mock_request, RuntimeError("boom"))

        assert json.loads(response.body)["error_id"] == "req-42"
