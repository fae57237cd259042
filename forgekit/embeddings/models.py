"""
Schemas for the embedding and retrieval layer.

Vector payloads are stored in Qdrant with camelCase keys; everything else
uses snake_case.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from forgekit.errors import UnsupportedContentTypeError


class ContentType(str, Enum):
    ASSET = "asset"
    LORE = "lore"
    QUEST = "quest"
    NPC = "npc"
    MANIFEST = "manifest"
    ITEM = "item"
    CHARACTER = "character"

    @classmethod
    def parse(cls, value: "ContentType | str") -> "ContentType":
        """Coerce a raw value to a content type.

        Raises:
            UnsupportedContentTypeError: If the value is not a known type
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as e:
            raise UnsupportedContentTypeError(str(value)) from e


class EmbeddingModel(str, Enum):
    TEXT_EMBEDDING_3_SMALL = "text-embedding-3-small"
    TEXT_EMBEDDING_3_LARGE = "text-embedding-3-large"
    TEXT_EMBEDDING_ADA_002 = "text-embedding-ada-002"


class CamelSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VectorPayload(CamelSchema):
    """Payload stored next to every vector."""

    content_id: str
    content_type: ContentType
    embedding_model: str
    embedding_dimensions: int
    source_text: str
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class VectorPoint(BaseModel):
    """One entry of a batch upsert."""

    content_id: str
    embedding: List[float]
    source_text: str
    embedding_model: str = EmbeddingModel.TEXT_EMBEDDING_3_SMALL.value
    embedding_dimensions: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


class SearchResult(BaseModel):
    id: str
    score: float
    payload: VectorPayload


class SimilarContent(BaseModel):
    id: str
    content_type: str
    content_id: str
    content: str
    similarity: float
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class ContextSource(BaseModel):
    type: str
    id: str
    similarity: float


class ContextResult(BaseModel):
    has_context: bool
    context: str = ""
    sources: List[ContextSource] = Field(default_factory=list)


class EmbeddingStat(BaseModel):
    content_type: str
    total_embeddings: int = 0
    vector_size: int
    status: str = "unknown"


class BatchItem(BaseModel):
    id: str
    data: Dict[str, Any]
    metadata: Optional[Dict[str, Any]] = None
