"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware (CORS,
request logging), registers exception handlers and includes all API routers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from forgekit.core.database import init_db
from forgekit.core.logging_config import get_logger, setup_logging
from forgekit.core.monitoring import initialize_logfire

from .api.v1 import ai_services, embeddings, health
from .core import constant
from .core.config import settings
from .exception_handlers import setup_exception_handlers
from .middleware import RequestLoggingMiddleware
from .services.providers import get_embedder, shutdown_services

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Creates the ledger tables and the Qdrant collections on startup; neither
    failure stops the server, the affected endpoints report errors instead.
    """
    logger.info("Starting up ForgeKit Backend...")
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    try:
        await get_embedder().initialize()
    except Exception as e:
        logger.error(f"Qdrant initialization failed: {e}", exc_info=True)

    yield

    logger.info("Shutting down ForgeKit Backend...")
    await shutdown_services()


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    ForgeKit Backend API

    Usage accounting and rate limiting for outbound AI provider calls, and
    semantic search over game content (lore, quests, NPCs, items, manifests).
    """,
    version=constant.API_VERSION,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

cors = settings.cors
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors.origins,
    allow_credentials=cors.allow_credentials,
    allow_methods=cors.allow_methods,
    allow_headers=cors.allow_headers,
)
app.add_middleware(RequestLoggingMiddleware)

setup_exception_handlers(app)
initialize_logfire(app)

app.include_router(health.router, tags=["health"])
app.include_router(ai_services.router, prefix=f"{constant.API_V1_STR}/ai", tags=["ai-services"])
app.include_router(embeddings.router, prefix=f"{constant.API_V1_STR}/embeddings", tags=["embeddings"])
