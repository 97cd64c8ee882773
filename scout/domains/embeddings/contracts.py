"""
Embedding Toolkit Contracts - Interfaces for the diagnostic toolkit.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from scout.adapters.rerank import RerankScore


@runtime_checkable
class DocumentReranker(Protocol):
    """Contract for cross-encoder scoring of raw documents."""

    model: str

    async def rerank(
        self,
        query: str,
        documents: Sequence[str],
        top_n: int | None = None,
    ) -> list[RerankScore]:
        """Score documents against a query, best first."""
        ...
