"""
Fusion - Weighted combination of vector and keyword scores.

Both score sets are min-max normalized per request, combined with
configurable weights and nudged by small boosts (featured projects,
requested availability flags).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from .models import EntityKey, FusedCandidate, ParsedQuery, Profile, Project

logger = logging.getLogger(__name__)

__all__ = ["WeightedFusionRanker", "normalize_scores"]


def normalize_scores(scores: Mapping[EntityKey, float]) -> dict[EntityKey, float]:
    """
    Min-max normalize scores into [0, 1].

    A single score, or a set where every score is equal, normalizes to 1.0.
    """
    if not scores:
        return {}
    low = min(scores.values())
    high = max(scores.values())
    if high == low:
        return {key: 1.0 for key in scores}
    span = high - low
    return {key: (value - low) / span for key, value in scores.items()}


class WeightedFusionRanker:
    """
    Combine vector and keyword hits into one ranked candidate list.

    Example:
        >>> ranker = WeightedFusionRanker(vector_weight=0.6, keyword_weight=0.4)
        >>> fused = ranker.fuse({("profile", "p1"): 0.8}, {("profile", "p1"): 3.0})
        >>> fused[0].search_method, fused[0].score
        ('hybrid', 1.0)
    """

    def __init__(
        self,
        vector_weight: float = 0.6,
        keyword_weight: float = 0.4,
        featured_boost: float = 0.05,
        availability_boost: float = 0.05,
    ) -> None:
        self.vector_weight = vector_weight
        self.keyword_weight = keyword_weight
        self.featured_boost = featured_boost
        self.availability_boost = availability_boost

    def compute_boosts(
        self,
        entities: Mapping[EntityKey, Profile | Project],
        parsed: ParsedQuery,
    ) -> dict[EntityKey, float]:
        """
        Additive boosts per candidate.

        Featured projects get ``featured_boost``; profiles get
        ``availability_boost`` for each availability flag the query asked for
        and the profile has set.
        """
        requested = parsed.availability.requested()
        boosts: dict[EntityKey, float] = {}
        for key, entity in entities.items():
            boost = 0.0
            if isinstance(entity, Project):
                if entity.featured:
                    boost += self.featured_boost
            else:
                for flag in requested:
                    if getattr(entity.availability, flag):
                        boost += self.availability_boost
            if boost:
                boosts[key] = boost
        return boosts

    def fuse(
        self,
        vector_hits: Mapping[EntityKey, float],
        keyword_hits: Mapping[EntityKey, float],
        boosts: Mapping[EntityKey, float] | None = None,
        allowed: Sequence[EntityKey] | None = None,
    ) -> list[FusedCandidate]:
        """
        Fuse retrieval results.

        Args:
            vector_hits: Raw cosine similarities by entity key
            keyword_hits: Raw keyword match scores by entity key
            boosts: Optional additive boosts by entity key
            allowed: If given, candidates outside this set are dropped
                (e.g. entities that no longer hydrate)

        Returns:
            Candidates sorted by fused score descending, then entity id,
            then entity type. Each key appears once.
        """
        boosts = boosts or {}
        vector_norm = normalize_scores(vector_hits)
        keyword_norm = normalize_scores(keyword_hits)
        keys = list(dict.fromkeys([*vector_hits, *keyword_hits]))
        if allowed is not None:
            permitted = set(allowed)
            keys = [key for key in keys if key in permitted]

        fused = []
        for key in keys:
            in_vector = key in vector_hits
            in_keyword = key in keyword_hits
            if in_vector and in_keyword:
                method = "hybrid"
            elif in_vector:
                method = "vector"
            else:
                method = "keyword"

            score = (
                self.vector_weight * vector_norm.get(key, 0.0)
                + self.keyword_weight * keyword_norm.get(key, 0.0)
                + boosts.get(key, 0.0)
            )
            fused.append(
                FusedCandidate(
                    entity_type=key[0],
                    entity_id=key[1],
                    score=score,
                    search_method=method,
                    vector_score=vector_hits.get(key),
                    keyword_score=keyword_hits.get(key),
                )
            )

        fused.sort(key=lambda c: (-c.score, c.entity_id, c.entity_type))
        logger.debug(
            "Fused %d candidates (vector=%d keyword=%d)",
            len(fused),
            len(vector_hits),
            len(keyword_hits),
        )
        return fused
