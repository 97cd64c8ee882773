"""
Search Routes - Hybrid search over profiles and projects.

Search never fails on provider outages: the engine degrades to keyword-only
or browse results and reports how in ``mode``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import Field

from scout.domains.search import (
    EmbeddingStats,
    HybridSearchEngine,
    SearchOptions,
    SearchResponse,
)
from scout.interfaces.api.auth import require_admin_token
from scout.interfaces.api.deps import get_search_engine

router = APIRouter()


class SearchRequest(SearchOptions):
    """Search request body: the query plus search options."""

    query: str = Field(default="", max_length=500, description="Free-text query; empty browses")


@router.post("", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    engine: HybridSearchEngine = Depends(get_search_engine),
) -> SearchResponse:
    """
    Search profiles and/or projects.

    - **query**: Free text, e.g. "AI developers in Berlin"
    - **entity_types**: "profile", "project" or both
    - **sort**: relevance, recent or name (featured/random for projects only)
    - **page** / **limit**: Pagination
    """
    options = SearchOptions(**request.model_dump(exclude={"query"}))
    return await engine.search(request.query, options)


@router.get("/stats", response_model=EmbeddingStats)
async def embedding_stats(
    engine: HybridSearchEngine = Depends(get_search_engine),
) -> EmbeddingStats:
    """Embedding coverage for the configured model."""
    return await engine.get_embedding_stats()


@router.post(
    "/initialize",
    response_model=EmbeddingStats,
    dependencies=[Depends(require_admin_token)],
)
async def initialize(
    engine: HybridSearchEngine = Depends(get_search_engine),
) -> EmbeddingStats:
    """Warm the vector indexes (admin)."""
    return await engine.initialize_search()
