"""
Tests for the hybrid search engine and the project variant.

These run the real parser heuristic, retrievers and fusion against a
temporary SQLite database; only the embedding and rerank providers are faked.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from scout.adapters.sqlite import SQLiteRepository
from scout.config import EmbeddingProviderError, KeywordRetrievalError, VectorRetrievalError

from .hybrid_search import HybridSearchEngine
from .keyword_retriever import FieldWeightedKeywordRetriever
from .models import (
    BrowseOptions,
    EmbeddingRecord,
    Profile,
    Project,
    ProjectSearchOptions,
    SearchConfig,
    SearchMode,
    SearchOptions,
    SortOrder,
)
from .projects import ProjectSearchEngine
from .query_parser import LLMQueryParser
from .reranker import CrossEncoderReranker
from .vector_retriever import EmbeddingVectorRetriever

MODEL = "test-model"
T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeEmbedder:
    """Deterministic query embeddings keyed by text."""

    def __init__(self, vectors: dict[str, list[float]] | None = None) -> None:
        self.vectors = vectors or {}
        self.calls = 0

    async def embed(self, texts, model_id=None) -> np.ndarray:
        return np.vstack([await self.embed1(t, model_id) for t in texts])

    async def embed1(self, text: str, model_id: str | None = None) -> np.ndarray:
        self.calls += 1
        return np.array(self.vectors.get(text, [1.0, 0.0, 0.0]), dtype=np.float32)


def _engine(
    repo: SQLiteRepository,
    embedder=None,
    reranker=None,
    vector_retriever=None,
    keyword_retriever=None,
    **config,
) -> HybridSearchEngine:
    return HybridSearchEngine(
        repository=repo,
        parser=LLMQueryParser(None),
        embedder=embedder or FakeEmbedder(),
        vector_retriever=vector_retriever or EmbeddingVectorRetriever(repo, MODEL),
        keyword_retriever=keyword_retriever or FieldWeightedKeywordRetriever(repo),
        reranker=reranker,
        config=SearchConfig(embedding_model=MODEL, **config),
    )


async def _embed(repo: SQLiteRepository, entity_type: str, entity_id: str, vector) -> None:
    await repo.upsert_embedding(
        EmbeddingRecord(
            entity_type=entity_type, entity_id=entity_id, model_id=MODEL, vector=list(vector)
        )
    )


@pytest.fixture
async def empty_repo(tmp_path: Path):
    repo = SQLiteRepository(tmp_path / "search.db")
    await repo.initialize()
    yield repo
    await repo.close()


@pytest.fixture
async def repo(empty_repo: SQLiteRepository):
    """Small directory: three active profiles, one inactive, two projects."""
    repo = empty_repo
    await repo.upsert_profile(
        Profile(
            id="p1",
            handle="ada",
            display_name="Ada",
            skills=["ai", "typescript"],
            location="Berlin, Germany",
            created_at=T0,
        )
    )
    await repo.upsert_profile(
        Profile(
            id="p2",
            handle="bob",
            display_name="Bob",
            skills=["go"],
            location="Paris",
            created_at=T0 + timedelta(days=2),
        )
    )
    await repo.upsert_profile(
        Profile(
            id="p3",
            handle="cy",
            display_name="Cy",
            bio="Painter and poet",
            created_at=T0 + timedelta(days=1),
        )
    )
    await repo.upsert_profile(
        Profile(id="p4", handle="gone", skills=["ai"], location="Berlin", active=False)
    )
    await repo.upsert_project(
        Project(id="x1", owner_id="p1", name="Rust CLI", slug="rust-cli", created_at=T0)
    )
    await repo.upsert_project(
        Project(
            id="x2",
            owner_id="p3",
            name="Poetry Engine",
            slug="poetry-engine",
            featured=True,
            created_at=T0 + timedelta(days=1),
        )
    )

    await _embed(repo, "profile", "p1", [1.0, 0.0, 0.0])
    await _embed(repo, "profile", "p2", [0.0, 1.0, 0.0])
    await _embed(repo, "profile", "p3", [0.8, 0.6, 0.0])
    await _embed(repo, "profile", "p4", [1.0, 0.0, 0.0])
    await _embed(repo, "project", "x1", [1.0, 0.0, 0.0])
    await _embed(repo, "project", "x2", [0.35, float(np.sqrt(1 - 0.35**2)), 0.0])
    return repo


# --- End-to-end scenarios ---


async def test_ai_developers_in_berlin(repo: SQLiteRepository) -> None:
    """Test the Berlin AI profile is found and the parse is echoed."""
    engine = _engine(repo)

    response = await engine.search("AI developers in Berlin")

    assert response.mode == SearchMode.HYBRID
    assert "Berlin" in response.parsed_query.locations
    assert response.results[0].entity_id == "p1"
    assert response.results[0].search_method == "hybrid"
    assert "p4" not in [r.entity_id for r in response.results]


async def test_strict_location_excludes_other_cities(repo: SQLiteRepository) -> None:
    """Test "only in Paris" hard-filters candidates before counting."""
    engine = _engine(repo)

    soft = await engine.search("developers in Paris")
    strict = await engine.search("developers only in Paris")

    assert "p1" in [r.entity_id for r in soft.results]
    assert strict.parsed_query.strict_filters.locations == ["Paris"]
    assert [r.entity_id for r in strict.results] == ["p2"]
    assert strict.total_count == 1


async def test_strict_skill_filter_on_projects(repo: SQLiteRepository) -> None:
    """Test a strict skill keeps only projects mentioning it."""
    engine = _engine(repo)

    response = await engine.search(
        "only rust", SearchOptions(entity_types=("profile", "project"), enable_reranking=False)
    )

    assert [(r.entity_type, r.entity_id) for r in response.results] == [("project", "x1")]


async def test_empty_query_is_recent_browse(repo: SQLiteRepository) -> None:
    """Test empty query lists active profiles by recency with zero timing."""
    embedder = FakeEmbedder()
    engine = _engine(repo, embedder=embedder)

    response = await engine.search("")

    assert response.mode == SearchMode.BROWSE
    assert response.sort == SortOrder.RECENT
    assert response.timing.total == 0
    assert response.total_count == await repo.count_active("profile") == 3
    assert [r.entity_id for r in response.results] == ["p2", "p3", "p1"]
    assert embedder.calls == 0


async def test_project_threshold_excludes_low_similarity_but_keyword_surfaces(
    repo: SQLiteRepository,
) -> None:
    """Test a 0.35 similarity project only appears through its keyword match."""
    projects = ProjectSearchEngine(_engine(repo))

    response = await projects.search_projects(
        "poetry tools", ProjectSearchOptions(threshold=0.4, enable_reranking=False)
    )

    methods = {r.entity_id: r.search_method for r in response.results}
    assert methods == {"x1": "vector", "x2": "keyword"}
    assert response.results[0].entity_id == "x1"


async def test_reranker_timeout_keeps_fused_order(repo: SQLiteRepository) -> None:
    """Test a timed-out reranker leaves fused results and records timing."""

    async def slow(*args, **kwargs):
        await asyncio.sleep(1)

    client = MagicMock()
    client.rerank = slow
    reranked_engine = _engine(repo, reranker=CrossEncoderReranker(client, timeout=0.01))
    plain_engine = _engine(repo)

    response = await reranked_engine.search("AI developers in Berlin")
    expected = await plain_engine.search(
        "AI developers in Berlin", SearchOptions(enable_reranking=False)
    )

    assert [r.entity_id for r in response.results] == [r.entity_id for r in expected.results]
    assert all(r.search_method != "rerank" for r in response.results)
    assert response.timing.reranking > 0


async def test_vector_only_match_is_tagged_vector(repo: SQLiteRepository) -> None:
    """Test a query with no lexical overlap returns vector hits only."""
    engine = _engine(repo, embedder=FakeEmbedder({"quantum reverie": [0.8, 0.6, 0.0]}))

    response = await engine.search("quantum reverie")

    assert response.results
    assert response.results[0].entity_id == "p3"
    assert {r.search_method for r in response.results} == {"vector"}


# --- Degradation ---


async def test_zero_embeddings_serves_browse_without_vector_calls(
    empty_repo: SQLiteRepository,
) -> None:
    """Test no embeddings means browse results and no retrieval."""
    await empty_repo.upsert_profile(Profile(id="p1", handle="ada", skills=["ai"]))
    embedder = FakeEmbedder()
    vector = MagicMock()
    vector.retrieve = AsyncMock()
    engine = _engine(empty_repo, embedder=embedder, vector_retriever=vector)

    response = await engine.search("ai")
    browse = await engine.search("")

    assert (await engine.get_embedding_stats()).total_embeddings == 0
    assert [r.entity_id for r in response.results] == [r.entity_id for r in browse.results]
    assert response.total_count == browse.total_count
    assert response.mode == SearchMode.FALLBACK
    vector.retrieve.assert_not_called()
    assert embedder.calls == 0


async def test_embedding_failure_degrades_to_keyword_only(repo: SQLiteRepository) -> None:
    """Test a failed query embedding still returns keyword matches."""
    embedder = MagicMock()
    embedder.embed1 = AsyncMock(side_effect=EmbeddingProviderError("provider down"))
    engine = _engine(repo, embedder=embedder)

    response = await engine.search("AI developers in Berlin")

    assert response.mode == SearchMode.HYBRID
    assert [r.entity_id for r in response.results] == ["p1"]
    assert response.results[0].search_method == "keyword"


async def test_embedding_failure_browse_mode(repo: SQLiteRepository) -> None:
    """Test the browse failure mode serves the listing instead."""
    embedder = MagicMock()
    embedder.embed1 = AsyncMock(side_effect=EmbeddingProviderError("provider down"))
    engine = _engine(repo, embedder=embedder, embedding_failure_mode="browse")

    response = await engine.search("AI developers in Berlin")

    assert response.mode == SearchMode.FALLBACK
    assert response.timing.total == 0


async def test_one_retriever_failing_uses_the_other(repo: SQLiteRepository) -> None:
    """Test keyword failure leaves vector results."""
    keyword = MagicMock()
    keyword.retrieve = AsyncMock(side_effect=KeywordRetrievalError("fts broken"))
    engine = _engine(repo, keyword_retriever=keyword)

    response = await engine.search("AI developers in Berlin")

    assert response.mode == SearchMode.HYBRID
    assert {r.search_method for r in response.results} == {"vector"}


async def test_both_retrievers_failing_falls_back(repo: SQLiteRepository) -> None:
    """Test total retrieval failure returns a browse listing, never an error."""
    vector = MagicMock()
    vector.retrieve = AsyncMock(side_effect=VectorRetrievalError("index broken"))
    keyword = MagicMock()
    keyword.retrieve = AsyncMock(side_effect=KeywordRetrievalError("fts broken"))
    engine = _engine(repo, vector_retriever=vector, keyword_retriever=keyword)

    response = await engine.search("AI developers in Berlin")

    assert response.mode == SearchMode.FALLBACK
    assert response.timing.total == 0
    assert response.parsed_query.confidence == 0
    assert response.parsed_query.original_query == "AI developers in Berlin"
    assert response.total_count == 3


async def test_unexpected_error_falls_back(repo: SQLiteRepository) -> None:
    """Test programming errors in a collaborator still produce a response."""
    engine = _engine(repo)
    engine._fusion = MagicMock()
    engine._fusion.compute_boosts = MagicMock(side_effect=RuntimeError("bug"))

    response = await engine.search("AI developers in Berlin")

    assert response.mode == SearchMode.FALLBACK


# --- Ordering and pagination ---


async def test_pagination_and_total_count(repo: SQLiteRepository) -> None:
    """Test pages slice the fused list and ranks are global."""
    engine = _engine(repo, embedder=FakeEmbedder({"quantum reverie": [0.8, 0.6, 0.0]}))

    full = await engine.search("quantum reverie", SearchOptions(limit=10))
    second = await engine.search("quantum reverie", SearchOptions(limit=1, page=2))

    assert second.total_count == full.total_count == len(full.results)
    assert len(second.results) == 1
    assert second.results[0].entity_id == full.results[1].entity_id
    assert second.results[0].rank == 2


async def test_repeated_queries_are_deterministic(repo: SQLiteRepository) -> None:
    """Test identical inputs give identical ordering."""
    engine = _engine(repo)
    first = await engine.search("AI developers in Berlin")
    second = await engine.search("AI developers in Berlin")
    assert [r.entity_id for r in first.results] == [r.entity_id for r in second.results]


async def test_sort_by_name(repo: SQLiteRepository) -> None:
    """Test name sort reorders the fused results."""
    engine = _engine(repo, embedder=FakeEmbedder({"quantum reverie": [0.8, 0.6, 0.0]}))

    response = await engine.search("quantum reverie", SearchOptions(sort=SortOrder.NAME))

    assert [r.entity_id for r in response.results] == ["p1", "p2", "p3"]
    assert response.sort == SortOrder.NAME


async def test_results_never_exceed_total(repo: SQLiteRepository) -> None:
    """Test results length is bounded by total_count for several queries."""
    engine = _engine(repo)
    for query in ["", "ai", "berlin poet", "nothing matches this"]:
        response = await engine.search(query, SearchOptions(limit=2))
        assert len(response.results) <= response.total_count


async def test_mixed_entity_search(repo: SQLiteRepository) -> None:
    """Test profiles and projects can be searched together."""
    engine = _engine(repo)

    response = await engine.search(
        "rust", SearchOptions(entity_types=("profile", "project"), enable_reranking=False)
    )

    types = {r.entity_type for r in response.results}
    assert types == {"profile", "project"}
    x1 = next(r for r in response.results if r.entity_id == "x1")
    assert x1.search_method == "hybrid"


async def test_cancellation_propagates(repo: SQLiteRepository) -> None:
    """Test a cancelled request is not turned into a fallback response."""

    class SlowEmbedder(FakeEmbedder):
        async def embed1(self, text, model_id=None):
            await asyncio.sleep(5)
            return await super().embed1(text, model_id)

    engine = _engine(repo, embedder=SlowEmbedder())
    task = asyncio.create_task(engine.search("AI developers in Berlin"))
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


# --- Diagnostics ---


async def test_embedding_stats_and_initialize(repo: SQLiteRepository) -> None:
    """Test stats report per-type counts and warm-up builds indexes."""
    engine = _engine(repo)

    stats = await engine.initialize_search()

    assert stats.total_embeddings == 6
    assert stats.per_entity_type == {"profile": 4, "project": 2}
    assert stats.model_id == MODEL


# --- Project variant ---


async def test_project_random_sort_bypasses_scoring(repo: SQLiteRepository) -> None:
    """Test random sort lists projects without calling the embedder."""
    embedder = FakeEmbedder()
    projects = ProjectSearchEngine(_engine(repo, embedder=embedder))

    response = await projects.search_projects("rust", ProjectSearchOptions(sort=SortOrder.RANDOM))

    assert {r.entity_id for r in response.results} == {"x1", "x2"}
    assert response.mode == SearchMode.BROWSE
    assert embedder.calls == 0


async def test_browse_projects_featured_first(repo: SQLiteRepository) -> None:
    """Test project browse supports the featured ordering."""
    projects = ProjectSearchEngine(_engine(repo))

    listing = await projects.browse_projects(BrowseOptions(sort=SortOrder.FEATURED))

    assert [r.entity_id for r in listing.results] == ["x2", "x1"]
    assert listing.total_count == 2


async def test_project_featured_sort_after_search(repo: SQLiteRepository) -> None:
    """Test featured sort keeps relevance order within each group."""
    projects = ProjectSearchEngine(_engine(repo))

    response = await projects.search_projects(
        "poetry tools",
        ProjectSearchOptions(sort=SortOrder.FEATURED, enable_reranking=False),
    )

    assert [r.entity_id for r in response.results] == ["x2", "x1"]


async def test_browse_name_order_matches_across_entity_scopes(
    empty_repo: SQLiteRepository,
) -> None:
    """Test single-type and merged browse agree on accented name order."""
    repo = empty_repo
    await repo.upsert_profile(Profile(id="p1", handle="eva", display_name="Éva"))
    await repo.upsert_profile(Profile(id="p2", handle="eric", display_name="éric"))
    await repo.upsert_project(Project(id="x1", owner_id="p1", name="Émile", slug="emile"))
    engine = _engine(repo)

    profiles, _ = await engine.browse(("profile",), SortOrder.NAME, limit=10)
    merged, total = await engine.browse(("profile", "project"), SortOrder.NAME, limit=10)

    assert [r.entity_id for r in profiles] == ["p2", "p1"]
    assert [r.entity_id for r in merged] == ["x1", "p2", "p1"]
    assert total == 3
