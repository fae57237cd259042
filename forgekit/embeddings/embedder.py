"""
Content embedder.

Generates embeddings for game content through an embedding provider, stores
them in Qdrant and answers similarity queries, including building a prompt
context block out of the closest matches.
"""

from __future__ import annotations

import math
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from forgekit.core.logging_config import get_logger
from forgekit.errors import EmbeddingServiceDisabledError, UnsupportedContentTypeError
from forgekit.providers.base import EmbeddingProvider

from .extractors import EXTRACTORS
from .models import (
    BatchItem,
    ContentType,
    ContextResult,
    ContextSource,
    EmbeddingModel,
    EmbeddingStat,
    SimilarContent,
    VectorPoint,
)
from .qdrant_store import QdrantStore

logger = get_logger(__name__)

EMBEDDING_MODEL = EmbeddingModel.TEXT_EMBEDDING_3_SMALL.value
EMBEDDING_DIMENSIONS = 1536
BATCH_SIZE = 100
MIN_TEXT_LENGTH = 3

DEFAULT_SEARCH_LIMIT = 10
DEFAULT_CONTEXT_LIMIT = 5
DEFAULT_THRESHOLD = 0.7


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _percent(similarity: float) -> int:
    # Half-up rounding
    return int(math.floor(similarity * 100 + 0.5))


class ContentEmbedder:
    """
    Embeds game content and searches it semantically.

    The embedder is disabled when no provider is configured: ``embed_content``
    then returns ``None`` and every operation that needs a new embedding raises
    :class:`EmbeddingServiceDisabledError`.

    Args:
        provider: Embedding provider, ``None`` when no API key is configured
        store: Qdrant vector store
        batch_size: Maximum texts per provider request
    """

    def __init__(
        self,
        provider: Optional[EmbeddingProvider],
        store: QdrantStore,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        self.provider = provider
        self.store = store
        self.batch_size = batch_size

        if provider is None:
            logger.warning("Missing OPENAI_API_KEY / AI_GATEWAY_API_KEY - embedding features disabled")
        else:
            logger.info(f"Content embedder initialized with {provider.model} ({provider.dimensions}d) + Qdrant")

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    @property
    def model(self) -> str:
        return self.provider.model if self.provider else EMBEDDING_MODEL

    @property
    def dimensions(self) -> int:
        return self.provider.dimensions if self.provider else self.store.vector_size

    def _require_provider(self) -> EmbeddingProvider:
        if self.provider is None:
            raise EmbeddingServiceDisabledError()
        return self.provider

    async def initialize(self) -> None:
        """Create the Qdrant collections. Skipped when the embedder is disabled."""
        if not self.enabled:
            logger.warning("Skipping Qdrant initialization - embedding service disabled")
            return
        await self.store.initialize_collections()
        logger.info("Qdrant collections initialized")

    # Extraction

    @staticmethod
    def extract_text(content_type: ContentType | str, data: Mapping[str, Any]) -> str:
        """Flatten a content record to embeddable text.

        Raises:
            UnsupportedContentTypeError: If the type has no extractor
        """
        ctype = ContentType.parse(content_type)
        extractor = EXTRACTORS.get(ctype)
        if extractor is None:
            raise UnsupportedContentTypeError(ctype.value)
        return extractor(data)

    # Generation

    async def generate_embedding(self, text: str) -> List[float]:
        provider = self._require_provider()
        started = time.perf_counter()
        result = await provider.embed([text])
        logger.debug(f"Generated embedding for {len(text)} chars ({_elapsed_ms(started)}ms)")
        return result.embeddings[0]

    async def generate_embeddings(self, texts: Sequence[Any]) -> List[List[float]]:
        """
        Embed many texts, ``batch_size`` per provider request.

        Non-string and blank entries are skipped, so the result can be shorter
        than the input.
        """
        provider = self._require_provider()
        if not texts:
            return []

        started = time.perf_counter()
        vectors: List[List[float]] = []
        for offset in range(0, len(texts), self.batch_size):
            batch = texts[offset : offset + self.batch_size]
            valid = [text for text in batch if isinstance(text, str) and text.strip()]
            if len(valid) != len(batch):
                logger.warning(f"Skipping {len(batch) - len(valid)} empty or non-string texts in batch at {offset}")
            if not valid:
                continue
            result = await provider.embed(valid)
            vectors.extend(result.embeddings)

        logger.info(f"Generated {len(vectors)} embeddings ({_elapsed_ms(started)}ms)")
        return vectors

    # Storage

    async def store_embedding(
        self,
        content_type: ContentType | str,
        content_id: str,
        content: str,
        embedding: Sequence[float],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        await self.store.upsert(
            content_type,
            content_id,
            embedding,
            source_text=content,
            embedding_model=self.model,
            embedding_dimensions=self.dimensions,
            metadata=metadata,
        )
        logger.debug(f"Stored embedding for {ContentType.parse(content_type).value}:{content_id}")
        return {"success": True, "id": content_id}

    async def embed_content(
        self,
        content_type: ContentType | str,
        content_id: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Embed and store one piece of content; ``None`` when disabled."""
        if not self.enabled:
            logger.warning(f"Skipping embedding for {content_type}:{content_id} - service disabled")
            return None

        started = time.perf_counter()
        embedding = await self.generate_embedding(content)
        result = await self.store_embedding(content_type, content_id, content, embedding, metadata)
        logger.info(f"Embedded {ContentType.parse(content_type).value}:{content_id} ({_elapsed_ms(started)}ms total)")
        return result

    async def embed_lore(self, lore_id: str, lore: Mapping[str, Any], extra: Optional[Dict[str, Any]] = None):
        return await self.embed_content(
            ContentType.LORE,
            lore_id,
            self.extract_text(ContentType.LORE, lore),
            {"title": lore.get("title"), "category": lore.get("category"), "tags": lore.get("tags") or [], **(extra or {})},
        )

    async def embed_quest(self, quest_id: str, quest: Mapping[str, Any], extra: Optional[Dict[str, Any]] = None):
        return await self.embed_content(
            ContentType.QUEST,
            quest_id,
            self.extract_text(ContentType.QUEST, quest),
            {
                "title": quest.get("title") or quest.get("name"),
                "difficulty": quest.get("difficulty"),
                "questGiver": quest.get("questGiver"),
                "level": quest.get("level") or quest.get("requiredLevel"),
                **(extra or {}),
            },
        )

    async def embed_item(self, item_id: str, item: Mapping[str, Any], extra: Optional[Dict[str, Any]] = None):
        return await self.embed_content(
            ContentType.ITEM,
            item_id,
            self.extract_text(ContentType.ITEM, item),
            {
                "name": item.get("name"),
                "type": item.get("type") or item.get("category"),
                "rarity": item.get("rarity"),
                "level": item.get("level"),
                **(extra or {}),
            },
        )

    async def embed_character(
        self, character_id: str, character: Mapping[str, Any], extra: Optional[Dict[str, Any]] = None
    ):
        return await self.embed_content(
            ContentType.CHARACTER,
            character_id,
            self.extract_text(ContentType.CHARACTER, character),
            {
                "name": character.get("name"),
                "race": character.get("race") or character.get("species"),
                "class": character.get("class") or character.get("role"),
                "location": character.get("location"),
                **(extra or {}),
            },
        )

    async def embed_npc(self, npc_id: str, npc: Mapping[str, Any], extra: Optional[Dict[str, Any]] = None):
        return await self.embed_content(
            ContentType.NPC,
            npc_id,
            self.extract_text(ContentType.NPC, npc),
            {
                "name": npc.get("name"),
                "type": npc.get("type") or "npc",
                "location": npc.get("location"),
                "faction": npc.get("faction"),
                **(extra or {}),
            },
        )

    async def embed_manifest(
        self, manifest_id: str, manifest: Mapping[str, Any], extra: Optional[Dict[str, Any]] = None
    ):
        items = manifest.get("items")
        return await self.embed_content(
            ContentType.MANIFEST,
            manifest_id,
            self.extract_text(ContentType.MANIFEST, manifest),
            {
                "name": manifest.get("name"),
                "category": manifest.get("category"),
                "itemCount": len(items) if isinstance(items, list) else 0,
                **(extra or {}),
            },
        )

    async def embed_batch(
        self, content_type: ContentType | str, items: Iterable[BatchItem | Mapping[str, Any]]
    ) -> Dict[str, Any]:
        """
        Embed many items of one content type in as few provider calls as possible.

        Items whose extracted text is shorter than three characters are skipped.

        Returns:
            ``{"success": True, "count": <embedded items>}``

        Raises:
            UnsupportedContentTypeError: If the type has no extractor
        """
        ctype = ContentType.parse(content_type)
        if ctype not in EXTRACTORS:
            raise UnsupportedContentTypeError(ctype.value)

        parsed = [item if isinstance(item, BatchItem) else BatchItem.model_validate(item) for item in items]

        valid = []
        for item in parsed:
            text = self.extract_text(ctype, item.data).strip()
            if len(text) < MIN_TEXT_LENGTH:
                logger.warning(f"Skipping {ctype.value} {item.id} with empty or very short text: {text!r}")
                continue
            valid.append((item, text))

        if not valid:
            logger.info(f"No valid items to embed for {ctype.value}")
            return {"success": True, "count": 0}

        logger.info(f"Embedding {len(valid)}/{len(parsed)} valid {ctype.value} items")
        embeddings = await self.generate_embeddings([text for _, text in valid])

        points = [
            VectorPoint(
                content_id=item.id,
                embedding=embedding,
                source_text=text,
                embedding_model=self.model,
                embedding_dimensions=self.dimensions,
                metadata=item.metadata or {},
            )
            for (item, text), embedding in zip(valid, embeddings)
        ]
        await self.store.batch_upsert(ctype, points)

        logger.info(f"Batch embedded {len(points)} {ctype.value} items")
        return {"success": True, "count": len(points)}

    # Search

    async def find_similar(
        self,
        query: str,
        content_type: ContentType | str | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> List[SimilarContent]:
        """Content whose embedding is at least ``threshold`` similar to ``query``."""
        self._require_provider()
        ctype = ContentType.parse(content_type) if content_type else None
        started = time.perf_counter()

        query_vector = await self.generate_embedding(query)
        results = await self.store.search(
            query_vector,
            content_type=ctype,
            limit=limit,
            threshold=threshold,
            filter=filter,
        )
        logger.info(f"Found {len(results)} similar items ({_elapsed_ms(started)}ms)")

        return [
            SimilarContent(
                id=result.id,
                content_type=result.payload.content_type.value,
                content_id=result.payload.content_id,
                content=result.payload.source_text,
                similarity=result.score,
                metadata=result.payload.metadata,
                created_at=result.payload.created_at,
            )
            for result in results
        ]

    async def build_context(
        self,
        query: str,
        content_type: ContentType | str | None = None,
        limit: int = DEFAULT_CONTEXT_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> ContextResult:
        """
        Build a prompt context block from the content most similar to ``query``.

        Each source becomes ``[TYPE n] (NN% relevant)`` followed by its text.
        """
        similar = await self.find_similar(query, content_type, limit=limit, threshold=threshold, filter=filter)
        if not similar:
            return ContextResult(has_context=False, context="", sources=[])

        blocks = [
            f"[{item.content_type.upper()} {i}] ({_percent(item.similarity)}% relevant)\n{item.content}"
            for i, item in enumerate(similar, start=1)
        ]
        return ContextResult(
            has_context=True,
            context="\n\n".join(blocks),
            sources=[ContextSource(type=item.content_type, id=item.content_id, similarity=item.similarity) for item in similar],
        )

    # Management

    async def delete_embedding(self, content_type: ContentType | str, content_id: str) -> bool:
        deleted = await self.store.delete(content_type, content_id)
        if deleted:
            logger.info(f"Deleted embedding for {ContentType.parse(content_type).value}:{content_id}")
        return deleted

    async def get_stats(self) -> List[EmbeddingStat]:
        all_stats = await self.store.get_all_stats()
        stats = []
        for content_type, info in all_stats.items():
            vectors = ((info.get("config") or {}).get("params") or {}).get("vectors") or {}
            size = vectors.get("size") if isinstance(vectors, dict) else None
            stats.append(
                EmbeddingStat(
                    content_type=content_type,
                    total_embeddings=info.get("points_count") or 0,
                    vector_size=size or EMBEDDING_DIMENSIONS,
                    status=info.get("status") or "unknown",
                )
            )
        return stats
