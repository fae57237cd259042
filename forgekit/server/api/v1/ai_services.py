"""
AI Service Endpoints.

Usage statistics, cost breakdowns and rate-limit administration, plus the
metered provider calls (embeddings, chat, semantic search, image and 3D
model generation). Every metered call is checked against the caller's
limits first and recorded in the usage ledger whether it succeeds or fails.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query

from forgekit.core.logging_config import get_logger
from forgekit.embeddings.similarity import cosine_similarity
from forgekit.errors import EmbeddingServiceDisabledError
from forgekit.server.schemas import (
    ChatReply,
    ChatRequest,
    ChatResponse,
    ChatUsage,
    ContentSearchHit,
    ContentSearchRequest,
    ContentSearchResponse,
    EmbedRequest,
    EmbedResponse,
    ImageGenerationRequest,
    ImageGenerationResponse,
    ModelGenerationRequest,
    ModelGenerationResponse,
    RateLimitUpdateResponse,
    RecentCall,
    RecentCallsResponse,
    ServicesResponse,
    TextSearchHit,
    TextSearchRequest,
    TextSearchResponse,
    TokenUsage,
    UsageResponse,
)
from forgekit.server.services.deps import (
    AIProviderDep,
    CurrentUserDep,
    EmbedderDep,
    ImageProviderDep,
    ModelProviderDep,
    RateLimiterDep,
    UsageMeterDep,
)
from forgekit.usage.cost_calculator import (
    calculate_image_cost,
    calculate_meshy_cost,
    calculate_openai_cost,
    format_cost,
)
from forgekit.usage.models import CostBreakdown, CostTotals, RateLimitOverride, RateLimitStatus, ServiceCost

logger = get_logger(__name__)

router = APIRouter()

SEARCH_EMBEDDING_MODEL = "text-embedding-3-small"
# Approximate tokens per embedded text when the provider reports no usage
ESTIMATED_TOKENS_PER_TEXT = 100

SERVICES_CATALOGUE = {
    "services": [
        {
            "name": "openai",
            "capabilities": ["chat", "embeddings", "semantic-search", "image-generation"],
            "models": ["gpt-4-turbo", "gpt-3.5-turbo", "text-embedding-3-small", "dall-e-3", "dall-e-2"],
            "status": "available",
        },
        {
            "name": "meshy",
            "capabilities": ["text-to-3d"],
            "models": ["meshy-5"],
            "status": "available",
        },
    ]
}


@router.get(
    "/usage",
    response_model=UsageResponse,
    summary="Get Usage Statistics",
    description="Aggregated AI service usage of the caller, optionally per service and date range.",
)
async def get_usage(
    user_id: CurrentUserDep,
    limiter: RateLimiterDep,
    service: Optional[str] = Query(None, description="Restrict to one service."),
    start_date: Optional[datetime] = Query(None, description="Inclusive start of the range."),
    end_date: Optional[datetime] = Query(None, description="Inclusive end of the range."),
) -> UsageResponse:
    stats = await limiter.stats(user_id, service, start_date, end_date)
    return UsageResponse(usage=stats)


@router.get(
    "/usage/cost",
    response_model=CostBreakdown,
    summary="Get Cost Breakdown",
    description="Calls, tokens and cost per service with formatted totals.",
)
async def get_cost_breakdown(
    user_id: CurrentUserDep,
    limiter: RateLimiterDep,
    start_date: Optional[datetime] = Query(None, description="Inclusive start of the range."),
    end_date: Optional[datetime] = Query(None, description="Inclusive end of the range."),
) -> CostBreakdown:
    rows = await limiter.repository.cost_breakdown(user_id, start_date, end_date)
    costs = [
        ServiceCost(
            service=row["service"],
            total_calls=row["total_calls"],
            total_cost=row["total_cost"],
            total_cost_formatted=format_cost(row["total_cost"]),
            total_tokens=row["total_tokens"],
        )
        for row in rows
    ]
    total_cost = sum(cost.total_cost for cost in costs)
    return CostBreakdown(
        costs=costs,
        total=CostTotals(
            calls=sum(cost.total_calls for cost in costs),
            cost=total_cost,
            cost_formatted=format_cost(total_cost),
        ),
    )


@router.get(
    "/services",
    response_model=ServicesResponse,
    summary="List AI Services",
    description="Available AI services and their capabilities.",
)
async def list_services(user_id: CurrentUserDep) -> ServicesResponse:
    return ServicesResponse.model_validate(SERVICES_CATALOGUE)


@router.get(
    "/calls/recent",
    response_model=RecentCallsResponse,
    summary="Recent AI Calls",
    description="Most recent ledger entries of the caller, newest first.",
)
async def recent_calls(
    user_id: CurrentUserDep,
    limiter: RateLimiterDep,
    limit: int = Query(20, ge=1, le=100),
    service: Optional[str] = Query(None),
) -> RecentCallsResponse:
    calls = await limiter.repository.recent(user_id, limit=limit, service=service.lower() if service else None)
    return RecentCallsResponse(
        calls=[
            RecentCall(
                id=call.id,
                service=call.service,
                endpoint=call.endpoint,
                model=call.model,
                tokens_used=call.tokens_used,
                cost=call.cost,
                cost_formatted=format_cost(call.cost or 0),
                duration_ms=call.duration_ms,
                status=call.status,
                error=call.error,
                created_at=call.created_at,
            )
            for call in calls
        ]
    )


@router.get(
    "/rate-limit/{service}",
    response_model=RateLimitStatus,
    summary="Get Rate Limit Status",
    description="Current counters, limits and reset times of the caller for one service.",
)
async def get_rate_limit(service: str, user_id: CurrentUserDep, limiter: RateLimiterDep) -> RateLimitStatus:
    return await limiter.check(user_id, service)


@router.put(
    "/rate-limit/{service}",
    response_model=RateLimitUpdateResponse,
    summary="Set Custom Rate Limits",
    description="Merge custom limits over the current limits of a service.",
)
async def set_rate_limit(
    service: str,
    override: RateLimitOverride,
    user_id: CurrentUserDep,
    limiter: RateLimiterDep,
) -> RateLimitUpdateResponse:
    # TODO: restrict to admins once caller roles are available
    limits = limiter.set_custom_limits(service, **override.model_dump(exclude_none=True))
    logger.info(f"User {user_id} updated rate limits of {service}")
    return RateLimitUpdateResponse(service=service.lower(), limits=limits)


@router.post(
    "/embed",
    response_model=EmbedResponse,
    summary="Generate Embedding",
    description="Embed a text and report its token usage and cost.",
)
async def embed_text(
    body: EmbedRequest,
    user_id: CurrentUserDep,
    meter: UsageMeterDep,
    provider: AIProviderDep,
) -> EmbedResponse:
    async with meter.metered(
        user_id, "openai", "/embeddings", model=body.model, request_data=body.model_dump()
    ) as call:
        result = await provider.embed([body.text], model=body.model)
        embedding = result.embeddings[0]
        call.tokens_used = result.tokens_used
        call.cost = calculate_openai_cost(result.tokens_used, body.model, "input")
        call.response_data = {"embedding_length": len(embedding)}

    return EmbedResponse(
        embedding=embedding,
        usage=TokenUsage(total_tokens=result.tokens_used),
        cost=call.cost,
        cost_formatted=format_cost(call.cost),
    )


@router.post(
    "/chat",
    response_model=ChatResponse,
    summary="Chat Completion",
    description="Chat completion through the configured provider.",
)
async def chat_completion(
    body: ChatRequest,
    user_id: CurrentUserDep,
    meter: UsageMeterDep,
    provider: AIProviderDep,
) -> ChatResponse:
    messages = [message.model_dump() for message in body.messages]
    async with meter.metered(
        user_id, "openai", "/chat/completions", model=body.model, request_data=body.model_dump()
    ) as call:
        result = await provider.chat(
            messages, model=body.model, temperature=body.temperature, max_tokens=body.max_tokens
        )
        usage = ChatUsage(
            prompt_tokens=result.prompt_tokens,
            completion_tokens=result.completion_tokens,
            total_tokens=result.tokens_used,
        )
        call.tokens_used = result.tokens_used
        call.cost = calculate_openai_cost(result.tokens_used, body.model, "combined")
        call.response_data = {"content": result.content, "usage": usage.model_dump()}

    return ChatResponse(
        response=ChatReply(content=result.content, usage=usage, cost=call.cost, cost_formatted=format_cost(call.cost))
    )


@router.post(
    "/search",
    response_model=ContentSearchResponse,
    summary="Semantic Content Search",
    description="Semantic search across game content, optionally scoped to a project.",
)
async def search_content(
    body: ContentSearchRequest,
    user_id: CurrentUserDep,
    meter: UsageMeterDep,
    embedder: EmbedderDep,
) -> ContentSearchResponse:
    # Checked before metering so a disabled embedder records no ledger row
    if not embedder.enabled:
        raise EmbeddingServiceDisabledError()
    search_filter = {"metadata.projectId": body.project_id} if body.project_id else None
    async with meter.metered(
        user_id,
        "openai",
        "/embeddings/search",
        model=SEARCH_EMBEDDING_MODEL,
        request_data=body.model_dump(),
    ) as call:
        similar = await embedder.find_similar(
            body.query, limit=body.limit, threshold=body.threshold, filter=search_filter
        )
        call.tokens_used = ESTIMATED_TOKENS_PER_TEXT
        call.cost = calculate_openai_cost(ESTIMATED_TOKENS_PER_TEXT, SEARCH_EMBEDDING_MODEL, "input")
        call.response_data = {"result_count": len(similar)}

    return ContentSearchResponse(
        results=[
            ContentSearchHit(
                id=item.content_id,
                type=item.content_type,
                content=item.content,
                similarity=item.similarity,
                metadata=item.metadata,
            )
            for item in similar
        ]
    )


@router.post(
    "/semantic/search",
    response_model=TextSearchResponse,
    summary="Rank Texts By Similarity",
    description="Rank the given texts by cosine similarity to the query.",
)
async def semantic_text_search(
    body: TextSearchRequest,
    user_id: CurrentUserDep,
    meter: UsageMeterDep,
    provider: AIProviderDep,
) -> TextSearchResponse:
    request_data = {"query": body.query, "text_count": len(body.texts), "top_k": body.top_k}
    async with meter.metered(
        user_id, "openai", "/embeddings/semantic-search", model=body.model, request_data=request_data
    ) as call:
        result = await provider.embed([body.query, *body.texts], model=body.model)
        query_vector, *text_vectors = result.embeddings
        ranked = sorted(
            (
                TextSearchHit(text=text, similarity=cosine_similarity(query_vector, vector), index=i)
                for i, (text, vector) in enumerate(zip(body.texts, text_vectors))
            ),
            key=lambda hit: hit.similarity,
            reverse=True,
        )[: body.top_k]

        tokens = result.tokens_used or (len(body.texts) + 1) * ESTIMATED_TOKENS_PER_TEXT
        call.tokens_used = tokens
        call.cost = calculate_openai_cost(tokens, body.model, "input")
        call.response_data = {"result_count": len(ranked)}

    return TextSearchResponse(results=ranked, cost=call.cost, cost_formatted=format_cost(call.cost))


@router.post(
    "/generate-image",
    response_model=ImageGenerationResponse,
    summary="Generate Image",
    description="Generate one image from a prompt, priced per image.",
)
async def generate_image(
    body: ImageGenerationRequest,
    user_id: CurrentUserDep,
    meter: UsageMeterDep,
    provider: ImageProviderDep,
) -> ImageGenerationResponse:
    async with meter.metered(
        user_id, "openai", "/images/generations", model=body.model, request_data=body.model_dump()
    ) as call:
        image = await provider.generate_image(
            body.prompt, model=body.model, size=body.size, quality=body.quality, style=body.style
        )
        call.cost = calculate_image_cost(body.model, quality=body.quality, size=body.size)
        # Data URLs can be megabytes; the ledger keeps only their length
        call.response_data = {"image_generated": True, "image_length": len(image.url)}

    return ImageGenerationResponse(
        image_url=image.url,
        revised_prompt=image.revised_prompt,
        cost=call.cost,
        cost_formatted=format_cost(call.cost),
    )


@router.post(
    "/generate-model",
    response_model=ModelGenerationResponse,
    summary="Generate 3D Model",
    description="Queue a text-to-3D generation and return its task id.",
)
async def generate_model(
    body: ModelGenerationRequest,
    user_id: CurrentUserDep,
    meter: UsageMeterDep,
    provider: ModelProviderDep,
) -> ModelGenerationResponse:
    async with meter.metered(
        user_id, "meshy", "/text-to-3d", model=provider.model, request_data=body.model_dump()
    ) as call:
        task = await provider.text_to_model(
            body.prompt,
            art_style=body.art_style,
            negative_prompt=body.negative_prompt,
            topology=body.topology,
            target_polycount=body.target_polycount,
        )
        call.cost = calculate_meshy_cost("text-to-3d")
        call.response_data = {"task_id": task.task_id, "status": task.status}

    logger.info(f"Queued 3D model task {task.task_id} for user {user_id}")
    return ModelGenerationResponse(
        task_id=task.task_id, status=task.status, cost=call.cost, cost_formatted=format_cost(call.cost)
    )
