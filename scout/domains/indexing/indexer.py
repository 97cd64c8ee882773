"""
Embedding Indexer - Keeps stored embeddings in step with entity content.

Runs out of band (CLI or admin job), never inside a search request. Each
entity's embedding text is hashed; unchanged hashes skip the provider call.
Every write, delete and failure is appended to the embedding log, which is
what the vector retriever watches to rebuild its index.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

from scout.config import ScoutError, StorageError
from scout.domains.search.models import (
    EmbeddingAction,
    EmbeddingLog,
    EmbeddingRecord,
    EntityType,
    Profile,
    Project,
)

from .content import (
    PROFILE_PROJECT_LIMIT,
    build_profile_content,
    build_project_content,
    content_hash,
)
from .models import IndexedEntity, IndexingReport, IndexOutcome

if TYPE_CHECKING:
    from scout.domains.search.contracts import Embedder

    from .contracts import EmbeddingStore

logger = logging.getLogger(__name__)

__all__ = ["EmbeddingIndexer"]

_LOG_ACTIONS = {
    IndexOutcome.CREATED: EmbeddingAction.CREATED,
    IndexOutcome.UPDATED: EmbeddingAction.UPDATED,
    IndexOutcome.DELETED: EmbeddingAction.DELETED,
    IndexOutcome.FAILED: EmbeddingAction.FAILED,
}


class EmbeddingIndexer:
    """
    Recomputes embeddings for profiles and projects.

    Example:
        >>> indexer = EmbeddingIndexer(repository, embedder, "@cf/baai/bge-m3")
        >>> report = await indexer.reindex_all()
        >>> report.created, report.unchanged
        (12, 40)
    """

    def __init__(
        self,
        repository: EmbeddingStore,
        embedder: Embedder,
        model_id: str,
        batch_size: int = 32,
    ) -> None:
        """
        Initialize indexer.

        Args:
            repository: Entity and embedding storage
            embedder: Embedding provider
            model_id: Model the vectors are stored under
            batch_size: Entities embedded per provider call during a full reindex
        """
        self._repo = repository
        self._embedder = embedder
        self._model_id = model_id
        self._batch_size = max(1, batch_size)

    @property
    def model_id(self) -> str:
        return self._model_id

    async def build_content(self, entity: Profile | Project) -> str:
        """Embedding text for an entity, including related context."""
        if isinstance(entity, Profile):
            projects = await self._repo.owner_projects(entity.id, PROFILE_PROJECT_LIMIT)
            return build_profile_content(entity, projects)
        owner = await self._repo.get_entity("profile", entity.owner_id)
        return build_project_content(entity, owner if isinstance(owner, Profile) else None)

    async def index_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        force: bool = False,
    ) -> IndexedEntity:
        """
        Recompute one entity's embedding when its content changed.

        Missing or inactive entities have their embedding removed.
        """
        entity = await self._repo.get_entity(entity_type, entity_id)
        if entity is None:
            return await self.remove_entity(entity_type, entity_id)
        results = await self._index_batch([entity], force)
        return results[0]

    async def refresh_project(
        self,
        project_id: str,
        owner_id: str | None = None,
    ) -> list[IndexedEntity]:
        """
        Reindex a project and its owner's profile.

        A profile's text lists the owner's projects, so project changes and
        deletions make the owner's embedding stale too.

        Args:
            project_id: Changed or deleted project
            owner_id: Owner to refresh when the project row is already gone
        """
        if owner_id is None:
            project = await self._repo.get_entity("project", project_id, include_inactive=True)
            owner_id = project.owner_id if isinstance(project, Project) else None

        results = [await self.index_entity("project", project_id)]
        if owner_id:
            results.append(await self.index_entity("profile", owner_id))
        return results

    async def remove_entity(self, entity_type: EntityType, entity_id: str) -> IndexedEntity:
        """Delete an entity's embedding under the configured model."""
        removed = await self._repo.delete_embedding(entity_type, entity_id, self._model_id)
        if not removed:
            return IndexedEntity(
                entity_type=entity_type, entity_id=entity_id, outcome=IndexOutcome.UNCHANGED
            )

        result = IndexedEntity(
            entity_type=entity_type, entity_id=entity_id, outcome=IndexOutcome.DELETED
        )
        await self._log(result)
        logger.info("Deleted embedding: %s/%s", entity_type, entity_id)
        return result

    async def reindex_all(
        self,
        entity_types: Sequence[EntityType] = ("profile", "project"),
        force: bool = False,
    ) -> IndexingReport:
        """
        Walk all active entities, embed changed ones and drop orphans.

        Args:
            entity_types: Types to walk
            force: Re-embed even when content hashes are unchanged

        Returns:
            Per-outcome counts and failure messages
        """
        start = time.perf_counter()
        report = IndexingReport(model_id=self._model_id)

        for entity_type in entity_types:
            async for batch in self._repo.iter_entities(entity_type, self._batch_size):
                for item in await self._index_batch(batch, force):
                    report.record(item)

            for orphan_id in await self._repo.orphaned_embeddings(entity_type, self._model_id):
                report.record(await self.remove_entity(entity_type, orphan_id))

        report.elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Reindex complete: created=%d updated=%d unchanged=%d deleted=%d failed=%d (%.0fms)",
            report.created,
            report.updated,
            report.unchanged,
            report.deleted,
            report.failed,
            report.elapsed_ms,
        )
        return report

    async def _index_batch(
        self,
        entities: Sequence[Profile | Project],
        force: bool,
    ) -> list[IndexedEntity]:
        """Embed the changed entities of a batch in one provider call."""
        results: dict[str, IndexedEntity] = {}
        pending: list[tuple[Profile | Project, str, str, bool]] = []

        for entity in entities:
            try:
                text = await self.build_content(entity)
                existing = await self._repo.get_embedding(
                    entity.entity_type, entity.id, self._model_id
                )
            except StorageError as e:
                results[entity.id] = await self._fail(entity, None, e)
                continue

            digest = content_hash(text)
            if not force and existing is not None and existing.content_hash == digest:
                logger.debug("Embedding unchanged: %s/%s", entity.entity_type, entity.id)
                results[entity.id] = IndexedEntity(
                    entity_type=entity.entity_type,
                    entity_id=entity.id,
                    outcome=IndexOutcome.UNCHANGED,
                    content_hash=digest,
                )
                continue
            pending.append((entity, text, digest, existing is not None))

        if pending:
            try:
                texts = [text for _, text, _, _ in pending]
                matrix = await self._embedder.embed(texts, self._model_id)
            except ScoutError as e:
                for entity, _, digest, _ in pending:
                    results[entity.id] = await self._fail(entity, digest, e)
            else:
                for (entity, _, digest, existed), vector in zip(pending, matrix):
                    results[entity.id] = await self._store(entity, digest, existed, vector.tolist())

        return [results[entity.id] for entity in entities]

    async def _store(
        self,
        entity: Profile | Project,
        digest: str,
        existed: bool,
        vector: list[float],
    ) -> IndexedEntity:
        try:
            await self._repo.upsert_embedding(
                EmbeddingRecord(
                    entity_type=entity.entity_type,
                    entity_id=entity.id,
                    model_id=self._model_id,
                    vector=vector,
                    content_hash=digest,
                )
            )
        except StorageError as e:
            return await self._fail(entity, digest, e)

        result = IndexedEntity(
            entity_type=entity.entity_type,
            entity_id=entity.id,
            outcome=IndexOutcome.UPDATED if existed else IndexOutcome.CREATED,
            content_hash=digest,
        )
        await self._log(result)
        logger.info("Embedding %s: %s/%s", result.outcome.value, entity.entity_type, entity.id)
        return result

    async def _fail(
        self,
        entity: Profile | Project,
        digest: str | None,
        error: ScoutError,
    ) -> IndexedEntity:
        logger.warning("Embedding failed for %s/%s: %s", entity.entity_type, entity.id, error)
        result = IndexedEntity(
            entity_type=entity.entity_type,
            entity_id=entity.id,
            outcome=IndexOutcome.FAILED,
            content_hash=digest,
            error=error.message,
        )
        try:
            await self._log(result)
        except StorageError as e:
            logger.error("Could not record embedding failure for %s: %s", entity.id, e)
        return result

    async def _log(self, result: IndexedEntity) -> None:
        await self._repo.append_embedding_log(
            EmbeddingLog(
                entity_id=result.entity_id,
                entity_type=result.entity_type,
                action=_LOG_ACTIONS[result.outcome],
                content_hash=result.content_hash,
                error=result.error,
            )
        )
