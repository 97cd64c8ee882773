"""
Tests for vector retrieval over stored embeddings.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from scout.adapters.sqlite import SQLiteRepository
from scout.config import StorageError, VectorRetrievalError

from .models import EmbeddingRecord, Profile, Project
from .vector_retriever import EmbeddingVectorRetriever

MODEL = "test-model"
T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


async def _embed(repo: SQLiteRepository, entity_type: str, entity_id: str, vector) -> None:
    await repo.upsert_embedding(
        EmbeddingRecord(
            entity_type=entity_type, entity_id=entity_id, model_id=MODEL, vector=list(vector)
        )
    )


@pytest.fixture
async def repo(tmp_path: Path):
    repo = SQLiteRepository(tmp_path / "vector.db")
    await repo.initialize()
    yield repo
    await repo.close()


async def test_retrieve_filters_by_threshold(repo: SQLiteRepository) -> None:
    """Test only hits at or above the threshold are returned, best first."""
    await repo.upsert_profile(Profile(id="p1", handle="a", updated_at=T0))
    await repo.upsert_profile(Profile(id="p2", handle="b", updated_at=T0))
    await repo.upsert_profile(Profile(id="p3", handle="c", updated_at=T0))
    await _embed(repo, "profile", "p1", [1.0, 0.0])
    await _embed(repo, "profile", "p2", [0.6, 0.8])
    await _embed(repo, "profile", "p3", [0.0, 1.0])

    retriever = EmbeddingVectorRetriever(repo, MODEL)
    hits = await retriever.retrieve(np.array([1.0, 0.0]), "profile", threshold=0.5, limit=10)

    assert [entity_id for entity_id, _ in hits] == ["p1", "p2"]
    assert hits[0][1] == pytest.approx(1.0)
    assert hits[1][1] == pytest.approx(0.6)


async def test_project_threshold_excludes_low_similarity(repo: SQLiteRepository) -> None:
    """Test a 0.35 similarity misses a 0.4 project threshold."""
    await repo.upsert_profile(Profile(id="o", handle="owner"))
    await repo.upsert_project(Project(id="x1", owner_id="o", name="Close", slug="close"))
    await repo.upsert_project(Project(id="x2", owner_id="o", name="Far", slug="far"))
    await _embed(repo, "project", "x1", [0.9, np.sqrt(1 - 0.81)])
    await _embed(repo, "project", "x2", [0.35, np.sqrt(1 - 0.35**2)])

    retriever = EmbeddingVectorRetriever(repo, MODEL)
    hits = await retriever.retrieve(np.array([1.0, 0.0]), "project", threshold=0.4, limit=10)

    assert [entity_id for entity_id, _ in hits] == ["x1"]


async def test_ties_prefer_recent_updates(repo: SQLiteRepository) -> None:
    """Test equal similarity orders by updated_at descending."""
    await repo.upsert_profile(Profile(id="old", handle="a", updated_at=T0))
    await repo.upsert_profile(Profile(id="new", handle="b", updated_at=T0 + timedelta(days=1)))
    await _embed(repo, "profile", "old", [1.0, 0.0])
    await _embed(repo, "profile", "new", [2.0, 0.0])

    retriever = EmbeddingVectorRetriever(repo, MODEL)
    hits = await retriever.retrieve(np.array([1.0, 0.0]), "profile", threshold=0.0, limit=10)

    assert [entity_id for entity_id, _ in hits] == ["new", "old"]


async def test_inactive_entities_are_dropped(repo: SQLiteRepository) -> None:
    """Test embeddings of inactive or deleted entities never surface."""
    await repo.upsert_profile(Profile(id="p1", handle="a"))
    await repo.upsert_profile(Profile(id="p2", handle="b", active=False))
    await _embed(repo, "profile", "p1", [1.0, 0.0])
    await _embed(repo, "profile", "p2", [1.0, 0.0])
    await _embed(repo, "profile", "gone", [1.0, 0.0])

    retriever = EmbeddingVectorRetriever(repo, MODEL)
    hits = await retriever.retrieve(np.array([1.0, 0.0]), "profile", threshold=0.3, limit=10)

    assert [entity_id for entity_id, _ in hits] == ["p1"]


async def test_index_is_rebuilt_when_embeddings_change(repo: SQLiteRepository) -> None:
    """Test the cached index follows the embedding watermark."""
    await repo.upsert_profile(Profile(id="p1", handle="a"))
    await repo.upsert_profile(Profile(id="p2", handle="b"))
    await _embed(repo, "profile", "p1", [1.0, 0.0])

    retriever = EmbeddingVectorRetriever(repo, MODEL)
    assert await retriever.warm("profile") == 1

    await _embed(repo, "profile", "p2", [1.0, 0.1])
    hits = await retriever.retrieve(np.array([1.0, 0.0]), "profile", threshold=0.3, limit=10)
    assert {entity_id for entity_id, _ in hits} == {"p1", "p2"}


async def test_empty_store_returns_nothing(repo: SQLiteRepository) -> None:
    """Test retrieval with no stored vectors."""
    retriever = EmbeddingVectorRetriever(repo, MODEL)
    assert await retriever.retrieve(np.array([1.0, 0.0]), "profile", 0.3, 10) == []


async def test_dimension_mismatch_raises(repo: SQLiteRepository) -> None:
    """Test a query from another model is rejected."""
    await repo.upsert_profile(Profile(id="p1", handle="a"))
    await _embed(repo, "profile", "p1", [1.0, 0.0])

    retriever = EmbeddingVectorRetriever(repo, MODEL)
    with pytest.raises(VectorRetrievalError):
        await retriever.retrieve(np.array([1.0, 0.0, 0.0]), "profile", 0.3, 10)


async def test_storage_errors_are_wrapped() -> None:
    """Test repository failures surface as VectorRetrievalError."""
    repo = MagicMock()
    repo.embedding_watermark = AsyncMock(side_effect=StorageError("disk I/O error"))
    retriever = EmbeddingVectorRetriever(repo, MODEL)

    with pytest.raises(VectorRetrievalError):
        await retriever.retrieve(np.array([1.0]), "profile", 0.3, 10)
