"""
Embeddings Endpoints.

Semantic search over game content and management of the stored embeddings.
Operational failures are reported as ``{error, code, message}`` with a
stable ``EMBED_30xx`` code per endpoint.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from forgekit.core.logging_config import get_logger
from forgekit.errors import ForgeKitError
from forgekit.server.schemas import (
    BatchEmbedRequest,
    BatchEmbedResponse,
    BuildContextRequest,
    BuildContextResponse,
    DeleteEmbeddingResponse,
    EmbedContentRequest,
    EmbedContentResponse,
    ErrorResponse,
    SimilarSearchRequest,
    SimilarSearchResponse,
    StatsResponse,
)
from forgekit.server.services.deps import EmbedderDep

logger = get_logger(__name__)

router = APIRouter()

ERROR_RESPONSES: Dict[int | str, Dict[str, Any]] = {500: {"model": ErrorResponse}}


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _failure(error: str, code: str, exc: Exception, started: float) -> JSONResponse:
    logger.error(f"{error} ({_elapsed_ms(started)}ms): {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": error, "code": code, "message": str(exc)},
    )


def _project_filter(project_id: Optional[str]) -> Optional[Dict[str, Any]]:
    return {"metadata.projectId": project_id} if project_id else None


async def _search(
    embedder: EmbedderDep, request: SimilarSearchRequest, started: float
) -> SimilarSearchResponse | JSONResponse:
    logger.info(
        f"Searching for: {request.query!r} (type: {request.content_type or 'all'}, limit: {request.limit})"
    )
    try:
        results = await embedder.find_similar(
            request.query,
            content_type=request.content_type,
            limit=request.limit,
            threshold=request.threshold,
            filter=_project_filter(request.project_id),
        )
    except ForgeKitError:
        raise
    except Exception as e:
        return _failure("Search failed", "EMBED_3001", e, started)

    duration = _elapsed_ms(started)
    logger.info(f"Found {len(results)} results ({duration}ms)")
    return SimilarSearchResponse(
        query=request.query,
        content_type=request.content_type or "all",
        results=results,
        count=len(results),
        duration=duration,
    )


@router.get(
    "/search",
    response_model=SimilarSearchResponse,
    responses=ERROR_RESPONSES,
    summary="Semantic Search",
    description="Search for similar content using semantic search.",
)
async def search_get(
    embedder: EmbedderDep,
    q: str = Query(..., min_length=1, description="Search query."),
    type: Optional[str] = Query(None, description="Restrict to one content type."),
    limit: int = Query(10, ge=1, le=100),
    threshold: float = Query(0.7, ge=0, le=1),
    project_id: Optional[str] = Query(None, description="Restrict to one project."),
):
    started = time.perf_counter()
    request = SimilarSearchRequest(
        query=q, content_type=type, limit=limit, threshold=threshold, project_id=project_id
    )
    return await _search(embedder, request, started)


@router.post(
    "/search",
    response_model=SimilarSearchResponse,
    responses=ERROR_RESPONSES,
    summary="Semantic Search",
    description="Search for similar content using semantic search (POST version).",
)
async def search_post(body: SimilarSearchRequest, embedder: EmbedderDep):
    return await _search(embedder, body, time.perf_counter())


@router.post(
    "/build-context",
    response_model=BuildContextResponse,
    responses=ERROR_RESPONSES,
    summary="Build AI Context",
    description="Build a prompt context block from the most similar content.",
)
async def build_context(body: BuildContextRequest, embedder: EmbedderDep):
    started = time.perf_counter()
    logger.info(f"Building context for: {body.query!r}")
    try:
        result = await embedder.build_context(
            body.query,
            content_type=body.content_type,
            limit=body.limit,
            threshold=body.threshold,
            filter=_project_filter(body.project_id),
        )
    except ForgeKitError:
        raise
    except Exception as e:
        return _failure("Failed to build context", "EMBED_3002", e, started)

    duration = _elapsed_ms(started)
    logger.info(f"Built context with {len(result.sources)} sources ({duration}ms)")
    return BuildContextResponse(
        query=body.query,
        has_context=result.has_context,
        context=result.context,
        sources=result.sources,
        duration=duration,
    )


@router.get(
    "/stats",
    response_model=StatsResponse,
    responses=ERROR_RESPONSES,
    summary="Embedding Statistics",
    description="Number of embeddings and status per content type.",
)
async def get_stats(embedder: EmbedderDep):
    started = time.perf_counter()
    try:
        stats = await embedder.get_stats()
    except Exception as e:
        return _failure("Failed to fetch stats", "EMBED_3003", e, started)
    return StatsResponse(stats=stats, duration=_elapsed_ms(started))


@router.post(
    "/embed",
    response_model=EmbedContentResponse,
    responses=ERROR_RESPONSES,
    summary="Embed Content",
    description="Embed one lore entry, quest or NPC.",
)
async def embed_content(body: EmbedContentRequest, embedder: EmbedderDep):
    started = time.perf_counter()
    logger.info(f"Embedding {body.content_type}:{body.content_id}")

    extra = {"projectId": body.project_id} if body.project_id else None
    embed_by_type = {
        "lore": embedder.embed_lore,
        "quest": embedder.embed_quest,
        "npc": embedder.embed_npc,
    }
    try:
        result = await embed_by_type[body.content_type](body.content_id, body.data, extra)
    except ForgeKitError:
        raise
    except Exception as e:
        return _failure("Failed to embed content", "EMBED_3005", e, started)

    return EmbedContentResponse(
        success=True,
        content_type=body.content_type,
        content_id=body.content_id,
        embedding_id=(result or {}).get("id") or body.content_id,
        duration=_elapsed_ms(started),
    )


@router.post(
    "/batch",
    response_model=BatchEmbedResponse,
    responses=ERROR_RESPONSES,
    summary="Batch Embed Content",
    description="Embed many items of one content type.",
)
async def embed_batch(body: BatchEmbedRequest, embedder: EmbedderDep):
    started = time.perf_counter()
    logger.info(f"Batch embedding {len(body.items)} {body.content_type} items")

    items = body.items
    if body.project_id:
        items = [
            item.model_copy(update={"metadata": {**(item.metadata or {}), "projectId": body.project_id}})
            for item in items
        ]
    try:
        result = await embedder.embed_batch(body.content_type, items)
    except ForgeKitError:
        raise
    except Exception as e:
        return _failure("Failed to batch embed content", "EMBED_3006", e, started)

    return BatchEmbedResponse(
        success=result["success"],
        content_type=body.content_type,
        count=result["count"],
        duration=_elapsed_ms(started),
    )


@router.delete(
    "/{content_type}/{content_id}",
    response_model=DeleteEmbeddingResponse,
    responses={404: {"description": "Embedding not found"}, **ERROR_RESPONSES},
    summary="Delete Embedding",
    description="Delete the embedding of one piece of content.",
)
async def delete_embedding(content_type: str, content_id: str, embedder: EmbedderDep):
    started = time.perf_counter()
    logger.info(f"Deleting embedding for {content_type}:{content_id}")
    try:
        deleted = await embedder.delete_embedding(content_type, content_id)
    except ForgeKitError:
        raise
    except Exception as e:
        return _failure("Failed to delete embedding", "EMBED_3008", e, started)

    if not deleted:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "Embedding not found",
                "code": "EMBED_3007",
                "content_type": content_type,
                "content_id": content_id,
            },
        )
    return DeleteEmbeddingResponse(
        success=True, content_type=content_type, content_id=content_id, duration=_elapsed_ms(started)
    )
