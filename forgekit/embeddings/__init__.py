"""
Semantic embedding and retrieval of game content.

- extractors: flatten content records to embeddable text
- qdrant_store: one Qdrant collection per content type
- embedder: embedding generation, storage, similarity search and context building
"""

from .embedder import ContentEmbedder
from .models import ContentType, ContextResult, SimilarContent
from .qdrant_store import QdrantStore, point_id_for
from .similarity import cosine_similarity

__all__ = [
    "ContentEmbedder",
    "ContentType",
    "ContextResult",
    "QdrantStore",
    "SimilarContent",
    "cosine_similarity",
    "point_id_for",
]
