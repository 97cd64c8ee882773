"""
Search Contracts - Interfaces for search domain.

The repository contracts describe the read side of the directory store
consumed by the engine. Writes happen elsewhere (entity CRUD, the indexer).
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

import numpy as np

from .models import (
    EmbeddingRecord,
    EntityType,
    FusedCandidate,
    ParsedQuery,
    Profile,
    Project,
    SearchOptions,
    SearchResponse,
    SortOrder,
)


@runtime_checkable
class SearchEngine(Protocol):
    """Contract for search implementations."""

    async def search(
        self,
        query: str,
        options: SearchOptions | None = None,
    ) -> SearchResponse:
        """Execute search and return a complete response."""
        ...


@runtime_checkable
class QueryParser(Protocol):
    """Contract for query understanding. Implementations never raise."""

    async def parse(self, query: str) -> ParsedQuery:
        """Parse free text into a ParsedQuery."""
        ...


@runtime_checkable
class Embedder(Protocol):
    """Contract for text embedding providers."""

    async def embed(self, texts: Sequence[str], model_id: str | None = None) -> np.ndarray:
        """Embed texts into an (n, dimension) float32 matrix."""
        ...

    async def embed1(self, text: str, model_id: str | None = None) -> np.ndarray:
        """Embed a single text into a (dimension,) vector."""
        ...


@runtime_checkable
class VectorRetriever(Protocol):
    """Contract for similarity retrieval over stored embeddings."""

    async def retrieve(
        self,
        query_vector: np.ndarray,
        entity_type: EntityType,
        threshold: float,
        limit: int,
    ) -> list[tuple[str, float]]:
        """Return (entity_id, similarity) pairs with similarity >= threshold."""
        ...

    async def warm(self, entity_type: EntityType) -> int:
        """Prepare any cached index for an entity type. Returns its size."""
        ...


@runtime_checkable
class KeywordRetriever(Protocol):
    """Contract for field-weighted keyword retrieval."""

    async def retrieve(
        self,
        terms: Sequence[str],
        entity_type: EntityType,
        limit: int,
    ) -> list[tuple[str, float]]:
        """Return (entity_id, match_score) pairs with match_score > 0."""
        ...


@runtime_checkable
class Reranker(Protocol):
    """Contract for result reranking implementations."""

    async def rerank(
        self,
        query: str,
        candidates: list[FusedCandidate],
        top_k: int,
        documents: Sequence[str],
    ) -> list[FusedCandidate]:
        """Reorder a subset of candidates. Never adds ids, never returns more than top_k."""
        ...


@runtime_checkable
class EntityRepository(Protocol):
    """Read-only access to directory entities. Inactive entities are never returned."""

    async def count_active(self, entity_type: EntityType) -> int:
        """Count active entities of a type."""
        ...

    async def browse(
        self,
        entity_type: EntityType,
        sort: SortOrder,
        limit: int,
        offset: int = 0,
    ) -> list[Profile | Project]:
        """List active entities in the requested order."""
        ...

    async def fetch_entities(
        self,
        entity_type: EntityType,
        ids: Sequence[str],
    ) -> dict[str, Profile | Project]:
        """Hydrate active entities by id."""
        ...

    async def active_updated_at(
        self,
        entity_type: EntityType,
        ids: Sequence[str],
    ) -> dict[str, datetime]:
        """Map active entity ids to their last update time."""
        ...

    async def keyword_candidates(
        self,
        entity_type: EntityType,
        terms: Sequence[str],
        limit: int,
    ) -> list[Profile | Project]:
        """Full-text prefilter of active entities matching any term."""
        ...


@runtime_checkable
class EmbeddingReader(Protocol):
    """Read access to stored embeddings and their audit log."""

    async def active_updated_at(
        self,
        entity_type: EntityType,
        ids: Sequence[str],
    ) -> dict[str, datetime]:
        """Map active entity ids to their last update time."""
        ...

    async def load_embedding_matrix(
        self,
        entity_type: EntityType,
        model_id: str,
    ) -> tuple[list[str], np.ndarray]:
        """Load all stored vectors for a type and model."""
        ...

    async def get_embedding(
        self,
        entity_type: EntityType,
        entity_id: str,
        model_id: str,
    ) -> EmbeddingRecord | None:
        """Fetch one stored embedding."""
        ...

    async def embedding_counts(self, model_id: str) -> dict[str, int]:
        """Count stored embeddings per entity type."""
        ...

    async def embedding_watermark(self, entity_type: EntityType) -> str:
        """Opaque token that changes whenever stored vectors or the log change."""
        ...
