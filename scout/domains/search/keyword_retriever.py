"""
Keyword Retriever - Field-weighted term matching.

Candidates come from the repository's full-text prefilter; scoring happens
here so structured fields (skills, interests, location) outweigh free text.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from functools import lru_cache
from typing import TYPE_CHECKING

from scout.config import KeywordRetrievalError, StorageError

from .models import EntityType, Profile, Project

if TYPE_CHECKING:
    from .contracts import EntityRepository

logger = logging.getLogger(__name__)

__all__ = [
    "FieldWeightedKeywordRetriever",
    "score_entity",
    "PROFILE_FIELD_WEIGHTS",
    "PROJECT_FIELD_WEIGHTS",
]

PROFILE_FIELD_WEIGHTS: dict[str, float] = {
    "skills": 3.0,
    "interests": 2.5,
    "location": 2.0,
    "headline": 1.5,
    "display_name": 1.0,
    "handle": 1.0,
    "bio": 1.0,
}

PROJECT_FIELD_WEIGHTS: dict[str, float] = {
    "name": 2.5,
    "oneliner": 2.0,
    "description": 1.0,
    "slug": 1.0,
}

_LIST_FIELDS = frozenset({"skills", "interests"})


@lru_cache(maxsize=1024)
def _word_pattern(term: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![\w]){re.escape(term)}(?![\w])")


def _text_hit(term: str, text: str) -> bool:
    return bool(text) and _word_pattern(term).search(text.lower()) is not None


def _list_hit(term: str, items: list[str]) -> bool:
    """Term equals an item, appears inside one, or contains one (all word-bounded)."""
    for item in items:
        lowered = item.lower()
        if lowered == term or _text_hit(term, lowered) or _text_hit(lowered, term):
            return True
    return False


def score_entity(entity: Profile | Project, terms: Sequence[str]) -> float:
    """Sum field weights over every (distinct term, field) hit."""
    weights = PROJECT_FIELD_WEIGHTS if isinstance(entity, Project) else PROFILE_FIELD_WEIGHTS
    score = 0.0
    for term in dict.fromkeys(t.lower().strip() for t in terms):
        if not term:
            continue
        for field, weight in weights.items():
            value = getattr(entity, field)
            hit = _list_hit(term, value) if field in _LIST_FIELDS else _text_hit(term, value)
            if hit:
                score += weight
    return score


class FieldWeightedKeywordRetriever:
    """
    Keyword retrieval over profiles and projects.

    Example:
        >>> retriever = FieldWeightedKeywordRetriever(repo)
        >>> await retriever.retrieve(["ai", "berlin"], "profile", limit=20)
        [('p1', 5.0), ('p7', 3.0)]
    """

    def __init__(self, repository: EntityRepository, prefilter_factor: int = 5) -> None:
        """
        Initialize retriever.

        Args:
            repository: Entity repository with a full-text prefilter
            prefilter_factor: Candidates fetched per requested result
        """
        self._repo = repository
        self._prefilter_factor = prefilter_factor

    async def retrieve(
        self,
        terms: Sequence[str],
        entity_type: EntityType,
        limit: int,
    ) -> list[tuple[str, float]]:
        """
        Score entities matching any term.

        Args:
            terms: Parsed entities plus raw query tokens
            entity_type: "profile" or "project"
            limit: Maximum hits

        Returns:
            (entity_id, match_score) pairs, score descending then id ascending.
            Entities matching no term are excluded.
        """
        terms = [t for t in dict.fromkeys(t.lower().strip() for t in terms) if t]
        if not terms or limit <= 0:
            return []

        try:
            candidates = await self._repo.keyword_candidates(
                entity_type, terms, limit=limit * self._prefilter_factor
            )
        except StorageError as e:
            raise KeywordRetrievalError(
                "Keyword prefilter failed", {"entity_type": entity_type, "error": e.message}
            ) from e

        hits = []
        for entity in candidates:
            score = score_entity(entity, terms)
            if score > 0:
                hits.append((entity.id, score))

        hits.sort(key=lambda hit: (-hit[1], hit[0]))
        logger.debug(
            "Keyword retrieval: type=%s terms=%d candidates=%d hits=%d",
            entity_type,
            len(terms),
            len(candidates),
            len(hits),
        )
        return hits[:limit]
