"""
Qdrant vector store for game content embeddings.

One collection per content type (``content_<type>``), cosine distance.
Point ids are derived from the content id so that re-embedding the same
content overwrites its previous vector.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from qdrant_client import AsyncQdrantClient, models

from forgekit.core.database.base import utc_now
from forgekit.core.logging_config import get_logger
from forgekit.server.core.config import QdrantConfig

from .models import ContentType, EmbeddingModel, SearchResult, VectorPayload, VectorPoint

logger = get_logger(__name__)

COLLECTION_PREFIX = "content_"
DEFAULT_VECTOR_SIZE = 1536

PAYLOAD_INDEXES = (
    ("contentId", models.PayloadSchemaType.KEYWORD),
    ("contentType", models.PayloadSchemaType.KEYWORD),
    ("embeddingModel", models.PayloadSchemaType.KEYWORD),
    ("createdAt", models.PayloadSchemaType.DATETIME),
    ("updatedAt", models.PayloadSchemaType.DATETIME),
)


def point_id_for(content_id: str) -> int:
    """Deterministic non-negative 32-bit point id for a content id.

    31-multiplier rolling hash over UTF-16 code units with signed 32-bit
    wraparound, then the absolute value.
    """
    data = content_id.encode("utf-16-le")
    value = 0
    for i in range(0, len(data), 2):
        unit = int.from_bytes(data[i : i + 2], "little")
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)


def build_filter(conditions: Optional[Mapping[str, Any]]) -> Optional[models.Filter]:
    """AND of equality matches, one per key."""
    if not conditions:
        return None
    return models.Filter(
        must=[
            models.FieldCondition(key=key, match=models.MatchValue(value=value))
            for key, value in conditions.items()
        ]
    )


class QdrantStore:
    """
    Manages content vectors in Qdrant.

    Args:
        client: Async Qdrant client
        vector_size: Dimensions of every stored vector
    """

    def __init__(self, client: AsyncQdrantClient, vector_size: int = DEFAULT_VECTOR_SIZE) -> None:
        self.client = client
        self.vector_size = vector_size

    @classmethod
    def from_config(cls, config: QdrantConfig) -> "QdrantStore":
        url = config.resolved_url
        logger.info(f"Connecting to Qdrant at {url} (vector size {config.vector_size}, distance Cosine)")
        client = AsyncQdrantClient(url=url, api_key=config.api_key or None)
        return cls(client, vector_size=config.vector_size)

    @staticmethod
    def collection_name(content_type: ContentType | str) -> str:
        return f"{COLLECTION_PREFIX}{ContentType.parse(content_type).value}"

    async def initialize_collections(self) -> None:
        """Create missing collections and their payload indexes."""
        for content_type in ContentType:
            name = self.collection_name(content_type)
            try:
                if not await self.client.collection_exists(name):
                    await self.client.create_collection(
                        collection_name=name,
                        vectors_config=models.VectorParams(size=self.vector_size, distance=models.Distance.COSINE),
                        hnsw_config=models.HnswConfigDiff(m=16, ef_construct=100),
                        optimizers_config=models.OptimizersConfigDiff(default_segment_number=2),
                    )
                    logger.info(f"Created Qdrant collection: {name}")
                else:
                    logger.debug(f"Qdrant collection already exists: {name}")
            except Exception as e:
                logger.error(f"Failed to initialize collection {name}: {e}")
                raise

            await self._create_payload_indexes(name)

    async def _create_payload_indexes(self, collection: str) -> None:
        for field_name, schema in PAYLOAD_INDEXES:
            try:
                await self.client.create_payload_index(
                    collection_name=collection, field_name=field_name, field_schema=schema
                )
            except Exception as e:
                # Usually the index already exists
                logger.debug(f"Payload index {field_name} on {collection} not created: {e}")

    def _point(
        self,
        content_type: ContentType,
        point: VectorPoint,
        now: datetime,
    ) -> models.PointStruct:
        payload = VectorPayload(
            content_id=point.content_id,
            content_type=content_type,
            embedding_model=point.embedding_model,
            embedding_dimensions=point.embedding_dimensions or self.vector_size,
            source_text=point.source_text,
            metadata=point.metadata,
            created_at=now,
            updated_at=now,
        )
        return models.PointStruct(
            id=point_id_for(point.content_id),
            vector=list(point.embedding),
            payload=payload.model_dump(by_alias=True, mode="json"),
        )

    async def upsert(
        self,
        content_type: ContentType | str,
        content_id: str,
        embedding: Sequence[float],
        source_text: str,
        embedding_model: str = EmbeddingModel.TEXT_EMBEDDING_3_SMALL.value,
        embedding_dimensions: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Insert or overwrite the vector of one piece of content."""
        await self.batch_upsert(
            content_type,
            [
                VectorPoint(
                    content_id=content_id,
                    embedding=list(embedding),
                    source_text=source_text,
                    embedding_model=embedding_model,
                    embedding_dimensions=embedding_dimensions,
                    metadata=metadata,
                )
            ],
        )

    async def batch_upsert(self, content_type: ContentType | str, points: Sequence[VectorPoint]) -> None:
        """Insert or overwrite several vectors of the same content type."""
        ctype = ContentType.parse(content_type)
        name = self.collection_name(ctype)
        now = utc_now()
        structs = [self._point(ctype, point, now) for point in points]
        if not structs:
            return

        try:
            await self.client.upsert(collection_name=name, points=structs, wait=True)
        except Exception as e:
            logger.error(f"Failed to upsert {len(structs)} vectors to {name}: {e}")
            raise

        logger.info(f"Upserted {len(structs)} vectors to {name}")

    async def search(
        self,
        query_vector: Sequence[float],
        content_type: ContentType | str | None = None,
        limit: int = 10,
        threshold: float = 0.0,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> List[SearchResult]:
        """
        Search for vectors similar to ``query_vector``.

        Without a content type every collection is searched concurrently and
        the merged results are ordered by score and cut to ``limit``.
        """
        if content_type:
            name = self.collection_name(content_type)
            return await self._search_collection(name, query_vector, limit, threshold, filter)

        per_collection = await asyncio.gather(
            *(
                self._search_collection(self.collection_name(ctype), query_vector, limit, threshold, filter)
                for ctype in ContentType
            )
        )
        merged = [result for results in per_collection for result in results]
        merged.sort(key=lambda result: result.score, reverse=True)
        return merged[:limit]

    async def _search_collection(
        self,
        collection: str,
        query_vector: Sequence[float],
        limit: int,
        threshold: float,
        filter: Optional[Mapping[str, Any]],
    ) -> List[SearchResult]:
        try:
            response = await self.client.query_points(
                collection_name=collection,
                query=list(query_vector),
                limit=limit,
                score_threshold=threshold,
                query_filter=build_filter(filter),
                with_payload=True,
            )
        except Exception as e:
            # Collection may not exist yet
            logger.warning(f"Search in {collection} failed: {e}")
            return []

        return [
            SearchResult(id=str(point.id), score=point.score, payload=VectorPayload.model_validate(point.payload))
            for point in response.points
        ]

    async def delete(self, content_type: ContentType | str, content_id: str) -> bool:
        """Remove the vector of one piece of content.

        Returns:
            False when no vector was stored for ``content_id``
        """
        name = self.collection_name(content_type)
        point_id = point_id_for(content_id)
        try:
            existing = await self.client.retrieve(collection_name=name, ids=[point_id], with_payload=False)
            if not existing:
                return False
            await self.client.delete(
                collection_name=name,
                points_selector=models.PointIdsList(points=[point_id]),
                wait=True,
            )
        except Exception as e:
            logger.error(f"Failed to delete {content_id} from {name}: {e}")
            raise
        return True

    async def get_collection_stats(self, content_type: ContentType | str) -> Dict[str, Any]:
        name = self.collection_name(content_type)
        try:
            info = await self.client.get_collection(collection_name=name)
        except Exception as e:
            logger.error(f"Failed to get stats of {name}: {e}")
            raise
        return info.model_dump(mode="json")

    async def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        async def collect(ctype: ContentType) -> Dict[str, Any]:
            try:
                return await self.get_collection_stats(ctype)
            except Exception:
                return {"error": "Collection not found or inaccessible"}

        results = await asyncio.gather(*(collect(ctype) for ctype in ContentType))
        return {ctype.value: stats for ctype, stats in zip(ContentType, results)}

    async def health_check(self) -> bool:
        try:
            await self.client.get_collections()
            return True
        except Exception as e:
            logger.error(f"Qdrant health check failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.close()
