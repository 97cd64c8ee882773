"""
Reranker - Cross-encoder reordering of the fused top window.

Reranking is best effort: any provider failure or timeout leaves the fused
order untouched.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from scout.config import RerankError

from .keyword_retriever import score_entity
from .models import EntityKey, FusedCandidate, ParsedQuery, Profile, Project

if TYPE_CHECKING:
    from scout.adapters.rerank import RerankClient

logger = logging.getLogger(__name__)

__all__ = ["CrossEncoderReranker", "entity_document", "should_skip_for_explicit_matches"]

# Explicit-match heuristic: share of the top window that must already match
_EXPLICIT_WINDOW = 5
_EXPLICIT_RATIO = 0.6
_EXPLICIT_RATIO_MULTI_FIELD = 0.4


def entity_document(entity: Profile | Project) -> str:
    """Text sent to the cross-encoder for one entity."""
    if isinstance(entity, Project):
        parts = [entity.name, entity.oneliner, entity.description]
        owner = entity.owner_display_name or entity.owner_handle
        if owner:
            parts.append(f"by {owner}")
    else:
        parts = [entity.display_name or entity.handle, entity.headline, entity.bio]
        if entity.location:
            parts.append(f"Location: {entity.location}")
        if entity.skills:
            parts.append(f"Skills: {', '.join(entity.skills)}")
    return "\n".join(p for p in parts if p)


def should_skip_for_explicit_matches(
    candidates: Sequence[FusedCandidate],
    entities: Mapping[EntityKey, Profile | Project],
    parsed: ParsedQuery,
) -> bool:
    """
    True when the top of the fused list already matches the parsed entities.

    The bar is lower when the query names several kinds of entity
    (e.g. both a skill and a location).
    """
    terms = parsed.entities
    if not terms:
        return False
    top = [entities[c.key] for c in candidates[:_EXPLICIT_WINDOW] if c.key in entities]
    if not top:
        return False

    matched = sum(1 for entity in top if score_entity(entity, terms) > 0)
    kinds = (parsed.skills, parsed.interests, parsed.locations, parsed.companies)
    fields = sum(1 for values in kinds if values)
    ratio = _EXPLICIT_RATIO_MULTI_FIELD if fields > 1 else _EXPLICIT_RATIO
    return matched / len(top) >= ratio


class CrossEncoderReranker:
    """
    Reranker backed by a cross-encoder provider.

    Example:
        >>> reranker = CrossEncoderReranker(RerankClient.from_settings())
        >>> reranked = await reranker.rerank("rust cli", window, top_k=20, documents=docs)
        >>> {c.search_method for c in reranked}
        {'rerank'}
    """

    def __init__(self, client: RerankClient, timeout: float = 5.0) -> None:
        """
        Initialize reranker.

        Args:
            client: Rerank provider client
            timeout: Seconds before the stage is abandoned
        """
        self._client = client
        self._timeout = timeout

    async def rerank(
        self,
        query: str,
        candidates: list[FusedCandidate],
        top_k: int,
        documents: Sequence[str],
    ) -> list[FusedCandidate]:
        """
        Reorder candidates by cross-encoder relevance.

        Args:
            query: Original query text
            candidates: Fused candidates, best first
            top_k: Maximum candidates to return
            documents: Text per candidate (same order as ``candidates``)

        Returns:
            At most ``top_k`` candidates drawn from the input. On success they
            are retagged "rerank" with the fused score kept in
            ``original_score``. On failure the input order is returned.
        """
        if top_k <= 0:
            return []
        if len(candidates) <= 1:
            return candidates[:top_k]
        if len(documents) != len(candidates):
            raise ValueError("documents must align with candidates")

        try:
            scores = await asyncio.wait_for(
                self._client.rerank(query, documents, top_n=min(top_k, len(candidates))),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Reranking timed out after %.1fs, keeping fused order", self._timeout)
            return candidates[:top_k]
        except RerankError as e:
            logger.warning("Reranking failed, keeping fused order: %s", e.message)
            return candidates[:top_k]

        reranked = []
        for item in scores[:top_k]:
            if not 0 <= item.index < len(candidates):
                continue
            candidate = candidates[item.index]
            reranked.append(
                candidate.model_copy(
                    update={
                        "score": item.score,
                        "search_method": "rerank",
                        "original_score": candidate.score,
                    }
                )
            )

        logger.debug("Reranked %d of %d candidates", len(reranked), len(candidates))
        return reranked
