"""
Embedding Toolkit - Standalone embedding, similarity and rerank operations.

Used by the admin endpoints and the CLI to check provider behaviour without
touching stored data.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

from scout.config import ConfigurationError, ErrorCode, ScoutError

from .models import EmbeddingResult, RerankedDocument, RerankResult, SimilarityMatch

if TYPE_CHECKING:
    from scout.domains.search.contracts import Embedder

    from .contracts import DocumentReranker

logger = logging.getLogger(__name__)

__all__ = ["EmbeddingToolkit", "cosine_similarities"]


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of one vector against each row of a matrix.

    Zero-norm rows score 0.
    """
    query = np.asarray(query, dtype=np.float32).reshape(-1)
    matrix = np.asarray(matrix, dtype=np.float32)
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float32)

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms > 0, dots / norms, 0.0)
    return scores.astype(np.float32)


class EmbeddingToolkit:
    """
    Diagnostic embedding operations.

    Example:
        >>> toolkit = EmbeddingToolkit(EmbeddingClient.from_settings())
        >>> result = await toolkit.generate_embeddings("hello world")
        >>> result.shape
        (1, 1024)
    """

    def __init__(
        self,
        embedder: Embedder,
        reranker: DocumentReranker | None = None,
        default_model: str = "@cf/baai/bge-m3",
    ) -> None:
        """
        Initialize toolkit.

        Args:
            embedder: Embedding provider
            reranker: Optional cross-encoder provider
            default_model: Model reported when the caller does not pick one
        """
        self._embedder = embedder
        self._reranker = reranker
        self._default_model = default_model

    async def generate_embeddings(
        self,
        input: str | Sequence[str],
        model: str | None = None,
    ) -> EmbeddingResult:
        """
        Embed one text or a list of texts.

        Args:
            input: Text or texts to embed
            model: Embedding model (defaults to the configured one)

        Returns:
            Embeddings, model id and (rows, dimension) shape
        """
        texts = [input] if isinstance(input, str) else list(input)
        if not texts:
            raise ScoutError(ErrorCode.VALIDATION_ERROR, "At least one input text is required")

        model = model or self._default_model
        matrix = await self._embedder.embed(texts, model)
        return EmbeddingResult(
            embeddings=matrix.tolist(),
            model=model,
            shape=(int(matrix.shape[0]), int(matrix.shape[1])),
        )

    async def find_most_similar(
        self,
        query: str,
        documents: Sequence[str],
        top_k: int = 5,
        threshold: float = 0.0,
    ) -> list[SimilarityMatch]:
        """
        Rank documents by cosine similarity to a query.

        Query and documents are embedded in one provider call.

        Args:
            query: Query text
            documents: Candidate texts
            top_k: Maximum matches
            threshold: Minimum similarity (inclusive)

        Returns:
            Matches best first, ties by document index
        """
        documents = list(documents)
        if not documents or top_k <= 0:
            return []

        matrix = await self._embedder.embed([query, *documents], self._default_model)
        scores = cosine_similarities(matrix[0], matrix[1:])

        matches = [
            SimilarityMatch(index=i, document=doc, similarity=float(score))
            for i, (doc, score) in enumerate(zip(documents, scores))
            if score >= threshold
        ]
        matches.sort(key=lambda m: (-m.similarity, m.index))
        logger.debug(
            "Similarity: %d documents, %d above %.2f", len(documents), len(matches), threshold
        )
        return matches[:top_k]

    async def rerank_documents(
        self,
        query: str,
        documents: Sequence[str],
        top_k: int = 5,
    ) -> RerankResult:
        """
        Score documents with the cross-encoder.

        Args:
            query: Query text
            documents: Candidate texts
            top_k: Maximum results

        Returns:
            Results best first

        Raises:
            RerankError: Provider failure (not swallowed here, unlike search)
            ConfigurationError: No rerank provider configured
        """
        if self._reranker is None:
            raise ConfigurationError("No rerank provider configured")
        documents = list(documents)
        scores = await self._reranker.rerank(query, documents, top_n=top_k)
        return RerankResult(
            results=[
                RerankedDocument(index=s.index, document=documents[s.index], score=s.score)
                for s in scores[:top_k]
            ],
            model=self._reranker.model,
        )
