"""
Vector Retriever - Cosine similarity over stored embeddings.

Stored vectors are loaded into a FAISS inner-product index per
(entity type, model). The index is rebuilt when the repository's embedding
watermark moves, so a search may briefly see stale vectors.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from scout.adapters.faiss import FAISSIndex
from scout.config import StorageError, VectorRetrievalError

from .models import EntityType

if TYPE_CHECKING:
    from .contracts import EmbeddingReader

logger = logging.getLogger(__name__)

__all__ = ["EmbeddingVectorRetriever"]


@dataclass
class _CachedIndex:
    watermark: str
    index: FAISSIndex


class EmbeddingVectorRetriever:
    """
    Vector retrieval with a cached FAISS index.

    Example:
        >>> retriever = EmbeddingVectorRetriever(repo, model_id="@cf/baai/bge-m3")
        >>> await retriever.retrieve(query_vector, "project", threshold=0.4, limit=50)
        [('x1', 0.81), ('x9', 0.44)]
    """

    def __init__(
        self,
        repository: EmbeddingReader,
        model_id: str,
        index_type: str = "Flat",
    ) -> None:
        """
        Initialize retriever.

        Args:
            repository: Embedding reader that also resolves active entities
            model_id: Only embeddings of this model are searched
            index_type: FAISS index type ("Flat" or "HNSW")
        """
        self._repo = repository
        self.model_id = model_id
        self.index_type = index_type
        self._cache: dict[str, _CachedIndex] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def warm(self, entity_type: EntityType) -> int:
        """Build (or refresh) the index for an entity type. Returns its size."""
        index = await self._get_index(entity_type)
        return index.size

    async def _get_index(self, entity_type: EntityType) -> FAISSIndex:
        lock = self._locks.setdefault(entity_type, asyncio.Lock())
        async with lock:
            watermark = await self._repo.embedding_watermark(entity_type)
            cached = self._cache.get(entity_type)
            if cached is not None and cached.watermark == watermark:
                return cached.index

            ids, matrix = await self._repo.load_embedding_matrix(entity_type, self.model_id)
            index = FAISSIndex(
                dimension=matrix.shape[1] if matrix.ndim == 2 and matrix.shape[1] else 1,
                index_type=self.index_type,
            )
            await index.initialize()
            if ids:
                await index.add_vectors(matrix, ids)

            self._cache[entity_type] = _CachedIndex(watermark=watermark, index=index)
            logger.info(
                "Vector index built: type=%s model=%s vectors=%d",
                entity_type,
                self.model_id,
                index.size,
            )
            return index

    async def retrieve(
        self,
        query_vector: np.ndarray,
        entity_type: EntityType,
        threshold: float,
        limit: int,
    ) -> list[tuple[str, float]]:
        """
        Find entities similar to a query vector.

        Args:
            query_vector: Query embedding of the same model
            entity_type: "profile" or "project"
            threshold: Minimum cosine similarity (inclusive)
            limit: Maximum hits

        Returns:
            (entity_id, similarity) pairs, similarity descending, ties broken
            by more recent update then id. Inactive entities are dropped.
        """
        if limit <= 0:
            return []
        try:
            index = await self._get_index(entity_type)
            if index.size == 0:
                return []
            query_vector = np.asarray(query_vector, dtype=np.float32).reshape(-1)
            if query_vector.shape[0] != index.dimension:
                raise VectorRetrievalError(
                    "Query vector dimension does not match stored embeddings",
                    {"expected": index.dimension, "received": int(query_vector.shape[0])},
                )

            # Exact search over the whole index; threshold filtering happens below
            matches = await index.search(query_vector, k=index.size)
            above = [(m["id"], m["score"]) for m in matches if m["score"] >= threshold]
            if not above:
                return []

            updated = await self._repo.active_updated_at(entity_type, [i for i, _ in above])
        except StorageError as e:
            raise VectorRetrievalError(
                "Embedding storage unavailable", {"entity_type": entity_type, "error": e.message}
            ) from e

        hits = [(entity_id, score) for entity_id, score in above if entity_id in updated]
        hits.sort(key=lambda h: (-h[1], -updated[h[0]].timestamp(), h[0]))

        logger.debug(
            "Vector retrieval: type=%s threshold=%.2f above=%d active=%d",
            entity_type,
            threshold,
            len(above),
            len(hits),
        )
        return hits[:limit]
