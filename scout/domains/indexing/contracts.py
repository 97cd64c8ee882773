"""
Indexing Contracts - Interfaces for embedding recomputation.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Protocol, runtime_checkable

from scout.domains.search.models import (
    EmbeddingLog,
    EmbeddingRecord,
    EntityType,
    Profile,
    Project,
)

from .models import IndexedEntity, IndexingReport


@runtime_checkable
class EmbeddingStore(Protocol):
    """Entity reads plus embedding writes needed by the indexer."""

    async def get_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        include_inactive: bool = False,
    ) -> Profile | Project | None:
        ...

    async def owner_projects(self, owner_id: str, limit: int = 3) -> list[Project]:
        ...

    def iter_entities(
        self,
        entity_type: EntityType,
        batch_size: int = 100,
    ) -> AsyncIterator[list[Profile | Project]]:
        ...

    async def get_embedding(
        self,
        entity_type: EntityType,
        entity_id: str,
        model_id: str,
    ) -> EmbeddingRecord | None:
        ...

    async def upsert_embedding(self, record: EmbeddingRecord) -> None:
        ...

    async def delete_embedding(
        self,
        entity_type: EntityType,
        entity_id: str,
        model_id: str | None = None,
    ) -> int:
        ...

    async def orphaned_embeddings(self, entity_type: EntityType, model_id: str) -> list[str]:
        ...

    async def append_embedding_log(self, entry: EmbeddingLog) -> None:
        ...


@runtime_checkable
class Indexer(Protocol):
    """
    Contract for keeping stored embeddings in step with entity content.

    Example:
        >>> indexer = EmbeddingIndexer(repository, embedder, "@cf/baai/bge-m3")
        >>> result = await indexer.index_entity("profile", "user-1")
        >>> result.outcome
        <IndexOutcome.CREATED: 'created'>
    """

    async def index_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        force: bool = False,
    ) -> IndexedEntity:
        """
        Recompute one entity's embedding when its content changed.

        Args:
            entity_type: "profile" or "project"
            entity_id: Entity id
            force: Re-embed even when the content hash is unchanged

        Returns:
            Outcome for the entity
        """
        ...

    async def remove_entity(self, entity_type: EntityType, entity_id: str) -> IndexedEntity:
        """Delete an entity's embedding."""
        ...

    async def reindex_all(
        self,
        entity_types: Sequence[EntityType] = ("profile", "project"),
        force: bool = False,
    ) -> IndexingReport:
        """Walk all active entities, embed changed ones and drop orphans."""
        ...
