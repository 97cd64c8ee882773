"""
Indexing Models - Data types for embedding recomputation.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from scout.domains.search.models import EntityType


class IndexOutcome(str, Enum):
    """What happened to one entity's embedding."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    FAILED = "failed"


class IndexedEntity(BaseModel):
    """Result of indexing a single entity."""

    entity_type: EntityType
    entity_id: str
    outcome: IndexOutcome
    content_hash: str | None = None
    error: str | None = None

    model_config = {"frozen": True}


class IndexingReport(BaseModel):
    """Summary of a reindex run."""

    model_id: str
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    deleted: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
    elapsed_ms: float = 0.0

    def record(self, item: IndexedEntity) -> None:
        """Count one entity outcome."""
        field = item.outcome.value
        setattr(self, field, getattr(self, field) + 1)
        if item.error:
            self.errors.append(f"{item.entity_type}/{item.entity_id}: {item.error}")

    @property
    def total(self) -> int:
        return self.created + self.updated + self.unchanged + self.deleted + self.failed
