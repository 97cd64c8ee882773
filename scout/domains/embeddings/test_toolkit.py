"""
Tests for the diagnostic embedding toolkit.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from scout.adapters.rerank import RerankScore
from scout.config import ConfigurationError, ErrorCode, RerankError, ScoutError

from .toolkit import EmbeddingToolkit, cosine_similarities


def _embedder(matrix: list[list[float]]) -> MagicMock:
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=np.array(matrix, dtype=np.float32))
    return embedder


# --- cosine_similarities ---


def test_cosine_similarities_scores_rows() -> None:
    """Test similarity against each row, zero rows score 0."""
    scores = cosine_similarities(
        np.array([1.0, 0.0]), np.array([[2.0, 0.0], [0.0, 3.0], [0.0, 0.0]])
    )
    assert scores.tolist() == pytest.approx([1.0, 0.0, 0.0])


def test_cosine_similarities_empty_matrix() -> None:
    """Test an empty matrix gives no scores."""
    assert cosine_similarities(np.array([1.0]), np.zeros((0, 1))).size == 0


# --- generate_embeddings ---


async def test_generate_embeddings_reports_shape() -> None:
    """Test a single text is embedded and the shape echoed."""
    embedder = _embedder([[0.1, 0.2, 0.3]])
    toolkit = EmbeddingToolkit(embedder, default_model="m1")

    result = await toolkit.generate_embeddings("hello")

    assert result.shape == (1, 3)
    assert result.model == "m1"
    assert result.embeddings[0] == pytest.approx([0.1, 0.2, 0.3])
    embedder.embed.assert_awaited_once_with(["hello"], "m1")


async def test_generate_embeddings_rejects_empty_input() -> None:
    """Test an empty list is a validation error."""
    toolkit = EmbeddingToolkit(_embedder([]))
    with pytest.raises(ScoutError) as exc_info:
        await toolkit.generate_embeddings([])
    assert exc_info.value.code == ErrorCode.VALIDATION_ERROR


# --- find_most_similar ---


async def test_find_most_similar_orders_and_thresholds() -> None:
    """Test matches are best first and bounded by threshold and top_k."""
    embedder = _embedder([[1.0, 0.0], [0.0, 1.0], [1.0, 0.0], [0.6, 0.8]])
    toolkit = EmbeddingToolkit(embedder)

    matches = await toolkit.find_most_similar(
        "rust", ["go", "rust", "rusty"], top_k=5, threshold=0.5
    )

    assert [m.index for m in matches] == [1, 2]
    assert matches[0].document == "rust"
    assert matches[1].similarity == pytest.approx(0.6)
    assert embedder.embed.await_count == 1


async def test_find_most_similar_top_k() -> None:
    """Test top_k truncates the ranked list."""
    toolkit = EmbeddingToolkit(_embedder([[1.0, 0.0], [1.0, 0.0], [1.0, 0.1]]))
    matches = await toolkit.find_most_similar("q", ["a", "b"], top_k=1)
    assert [m.index for m in matches] == [0]


async def test_find_most_similar_without_documents() -> None:
    """Test no documents means no provider call."""
    embedder = _embedder([])
    assert await EmbeddingToolkit(embedder).find_most_similar("q", []) == []
    embedder.embed.assert_not_called()


# --- rerank_documents ---


async def test_rerank_documents_maps_indices() -> None:
    """Test provider scores are mapped back to documents."""
    reranker = MagicMock()
    reranker.model = "reranker-1"
    reranker.rerank = AsyncMock(return_value=[RerankScore(1, 0.9), RerankScore(0, 0.2)])
    toolkit = EmbeddingToolkit(_embedder([]), reranker)

    result = await toolkit.rerank_documents("rust", ["go dev", "rust dev"], top_k=2)

    assert [(r.index, r.document) for r in result.results] == [(1, "rust dev"), (0, "go dev")]
    assert result.model == "reranker-1"


async def test_rerank_documents_requires_provider() -> None:
    """Test a missing rerank provider is a configuration error."""
    with pytest.raises(ConfigurationError):
        await EmbeddingToolkit(_embedder([])).rerank_documents("q", ["a"])


async def test_rerank_documents_propagates_provider_errors() -> None:
    """Test provider failures are not swallowed by the toolkit."""
    reranker = MagicMock()
    reranker.rerank = AsyncMock(side_effect=RerankError("down"))
    with pytest.raises(RerankError):
        await EmbeddingToolkit(_embedder([]), reranker).rerank_documents("q", ["a"])
