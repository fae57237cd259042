"""
Health Check Endpoints.

This module provides basic system status endpoints (health, version)
used for monitoring and deployment verification.
"""

from fastapi import APIRouter

from forgekit.server.core import constant
from forgekit.server.services.deps import EmbedderDep

router = APIRouter()


@router.get(
    "/health",
    summary="Health Check",
    description="Check the operational status of the API server and its vector store.",
    response_description="Status object.",
)
async def health_check(embedder: EmbedderDep):
    """
    Health check endpoint.

    The server reports ``ok`` as long as it is reachable; the Qdrant and
    embedding flags show whether semantic search is usable.
    """
    return {
        "status": "ok",
        "qdrant": await embedder.store.health_check(),
        "embeddings_enabled": embedder.enabled,
    }


@router.get(
    "/version",
    summary="Get Version",
    description="Retrieve version information for the API server.",
    response_description="Version object.",
)
async def version():
    """Current semantic version of the API and supported schema version."""
    return {"version": constant.API_VERSION, "schema_version": constant.SCHEMA_VERSION}
