"""
FAISS Index - Vector similarity search.

Features:
- Async-compatible operations
- Cosine similarity via inner product over L2-normalized vectors
- Entity ids stored alongside vectors
- Zero-norm vectors are never indexed
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import faiss
import numpy as np

logger = logging.getLogger(__name__)

__all__ = ["FAISSIndex"]


class FAISSIndex:
    """
    FAISS vector index for semantic search.

    Example:
        >>> index = FAISSIndex(dimension=1024)
        >>> await index.add_vectors(embeddings, ["p1", "p2"])
        >>> results = await index.search(query_embedding, k=10)
        >>> results[0]
        {'id': 'p2', 'score': 0.83, 'index': 1}
    """

    def __init__(
        self,
        dimension: int = 1024,
        index_type: str = "Flat",
        hnsw_neighbors: int = 32,
    ) -> None:
        """
        Initialize FAISS index.

        Args:
            dimension: Vector dimension (1024 for bge-m3)
            index_type: Index type ("Flat" for exact search, "HNSW" for approximate)
            hnsw_neighbors: Graph degree for HNSW index
        """
        self.dimension = dimension
        self.index_type = index_type
        self.hnsw_neighbors = hnsw_neighbors

        self._index: faiss.Index | None = None
        self._ids: list[str] = []

    def _create_index(self) -> faiss.Index:
        """Create FAISS index based on type."""
        if self.index_type == "HNSW":
            return faiss.IndexHNSWFlat(
                self.dimension, self.hnsw_neighbors, faiss.METRIC_INNER_PRODUCT
            )
        return faiss.IndexFlatIP(self.dimension)

    async def initialize(self) -> None:
        """Initialize empty index."""
        self._index = self._create_index()
        self._ids = []
        logger.debug(
            "FAISS index initialized: dimension=%d, type=%s",
            self.dimension,
            self.index_type,
        )

    async def add_vectors(
        self,
        vectors: np.ndarray,
        ids: Sequence[str],
    ) -> int:
        """
        Add vectors with their entity ids.

        Args:
            vectors: numpy array of shape (n, dimension)
            ids: Entity ids (same length as vectors)

        Returns:
            Number of vectors indexed (zero-norm rows are skipped)
        """
        if len(vectors) != len(ids):
            raise ValueError("vectors and ids must have the same length")
        if self._index is None:
            await self.initialize()
        assert self._index is not None  # Guaranteed by initialize()

        if len(vectors) == 0:
            return 0

        vectors = np.ascontiguousarray(vectors.astype("float32"))
        if vectors.ndim != 2 or vectors.shape[1] != self.dimension:
            raise ValueError(
                f"Expected vectors of shape (n, {self.dimension}), got {vectors.shape}"
            )

        # Zero-norm vectors cannot be normalized and are never valid embeddings
        keep = np.linalg.norm(vectors, axis=1) > 0
        skipped = int((~keep).sum())
        if skipped:
            logger.warning("Skipping %d zero-norm vectors", skipped)
            vectors = np.ascontiguousarray(vectors[keep])
            ids = [entity_id for entity_id, k in zip(ids, keep) if k]

        # Normalize for inner product (cosine similarity)
        faiss.normalize_L2(vectors)

        await asyncio.to_thread(self._index.add, vectors)
        self._ids.extend(ids)

        logger.debug("Added %d vectors to index", len(vectors))
        return len(vectors)

    async def search(
        self,
        query_vector: np.ndarray,
        k: int = 10,
    ) -> list[dict[str, Any]]:
        """
        Search for similar vectors.

        Args:
            query_vector: Query vector of shape (dimension,) or (1, dimension)
            k: Number of results

        Returns:
            List of dicts with 'id', 'score' (cosine similarity) and 'index',
            best first
        """
        if self._index is None or self._index.ntotal == 0 or k <= 0:
            return []

        # Reshape if needed
        if query_vector.ndim == 1:
            query_vector = query_vector.reshape(1, -1)

        query_vector = np.ascontiguousarray(query_vector.astype("float32"))
        if not np.any(query_vector):
            return []
        faiss.normalize_L2(query_vector)

        scores, indices = await asyncio.to_thread(
            self._index.search, query_vector, min(k, self._index.ntotal)
        )

        results = []
        for score, idx in zip(scores[0], indices[0]):
            if idx >= 0 and idx < len(self._ids):
                results.append(
                    {
                        "id": self._ids[idx],
                        "score": float(score),
                        "index": int(idx),
                    }
                )

        return results

    @property
    def size(self) -> int:
        """Get number of vectors in index."""
        return self._index.ntotal if self._index else 0
