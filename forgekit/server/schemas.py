"""
Request and response schemas of the HTTP API.

Service-level models (usage statistics, rate-limit status, similarity results)
are reused as-is; this module only adds the request bodies and the response
envelopes the endpoints return.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from forgekit.embeddings.models import BatchItem, ContextSource, EmbeddingStat, SimilarContent
from forgekit.usage.models import RateLimits, UsageStats

EmbeddableContentType = Literal["lore", "quest", "npc"]


class ErrorResponse(BaseModel):
    error: str
    code: str
    message: str


# AI services


class UsageResponse(BaseModel):
    usage: UsageStats


class ServiceInfo(BaseModel):
    name: str
    capabilities: List[str]
    models: List[str]
    status: str


class ServicesResponse(BaseModel):
    services: List[ServiceInfo]


class RecentCall(BaseModel):
    id: str
    service: str
    endpoint: str
    model: Optional[str] = None
    tokens_used: Optional[int] = None
    cost: Optional[int] = None
    cost_formatted: str
    duration_ms: Optional[int] = None
    status: str
    error: Optional[str] = None
    created_at: datetime


class RecentCallsResponse(BaseModel):
    calls: List[RecentCall]


class RateLimitUpdateResponse(BaseModel):
    service: str
    limits: RateLimits


class EmbedRequest(BaseModel):
    text: str = Field(min_length=1)
    model: str = "text-embedding-3-small"


class TokenUsage(BaseModel):
    total_tokens: int


class EmbedResponse(BaseModel):
    embedding: List[float]
    usage: TokenUsage
    cost: int
    cost_formatted: str


class ChatMessageIn(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    messages: List[ChatMessageIn] = Field(min_length=1)
    model: str = "gpt-3.5-turbo"
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=1000, ge=1, le=4000)


class ChatUsage(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatReply(BaseModel):
    content: str
    usage: ChatUsage
    cost: int
    cost_formatted: str


class ChatResponse(BaseModel):
    response: ChatReply


class ContentSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    project_id: Optional[str] = None
    threshold: float = Field(default=0.7, ge=0, le=1)
    limit: int = Field(default=10, ge=1, le=50)


class ContentSearchHit(BaseModel):
    id: str
    type: str
    content: str
    similarity: float
    metadata: Optional[Dict[str, Any]] = None


class ContentSearchResponse(BaseModel):
    results: List[ContentSearchHit]


class TextSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    texts: List[str] = Field(min_length=1, max_length=100)
    model: str = "text-embedding-3-small"
    top_k: int = Field(default=5, ge=1, le=50)


class TextSearchHit(BaseModel):
    text: str
    similarity: float
    index: int


class TextSearchResponse(BaseModel):
    results: List[TextSearchHit]
    cost: int
    cost_formatted: str


ImageSize = Literal["256x256", "512x512", "1024x1024", "1024x1792", "1792x1024"]


class ImageGenerationRequest(BaseModel):
    prompt: str = Field(min_length=1)
    size: ImageSize = "1024x1024"
    quality: Literal["standard", "hd"] = "standard"
    style: Literal["vivid", "natural"] = "vivid"
    model: str = "dall-e-3"


class ImageGenerationResponse(BaseModel):
    image_url: str
    revised_prompt: Optional[str] = None
    cost: int
    cost_formatted: str


class ModelGenerationRequest(BaseModel):
    prompt: str = Field(min_length=1)
    art_style: str = "realistic"
    negative_prompt: str = ""
    topology: Literal["quad", "triangle"] = "quad"
    target_polycount: int = Field(default=30000, ge=1000, le=100000)


class ModelGenerationResponse(BaseModel):
    task_id: str
    status: str
    cost: int
    cost_formatted: str


# Embeddings


class SimilarSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    content_type: Optional[str] = None
    limit: int = Field(default=10, ge=1, le=100)
    threshold: float = Field(default=0.7, ge=0, le=1)
    project_id: Optional[str] = None


class SimilarSearchResponse(BaseModel):
    query: str
    content_type: str
    results: List[SimilarContent]
    count: int
    duration: int


class BuildContextRequest(BaseModel):
    query: str = Field(min_length=1)
    content_type: Optional[str] = None
    limit: int = Field(default=5, ge=1, le=20)
    threshold: float = Field(default=0.7, ge=0, le=1)
    project_id: Optional[str] = None


class BuildContextResponse(BaseModel):
    query: str
    has_context: bool
    context: str
    sources: List[ContextSource]
    duration: int


class StatsResponse(BaseModel):
    stats: List[EmbeddingStat]
    duration: int


class EmbedContentRequest(BaseModel):
    content_type: EmbeddableContentType
    content_id: str = Field(min_length=1)
    data: Dict[str, Any]
    project_id: Optional[str] = None


class EmbedContentResponse(BaseModel):
    success: bool
    content_type: str
    content_id: str
    embedding_id: str
    duration: int


class BatchEmbedRequest(BaseModel):
    content_type: EmbeddableContentType
    items: List[BatchItem]
    project_id: Optional[str] = None


class BatchEmbedResponse(BaseModel):
    success: bool
    content_type: str
    count: int
    duration: int


class DeleteEmbeddingResponse(BaseModel):
    success: bool
    content_type: str
    content_id: str
    duration: int
