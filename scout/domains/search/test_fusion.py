"""
Tests for weighted score fusion.
"""

from __future__ import annotations

import pytest

from .fusion import WeightedFusionRanker, normalize_scores
from .models import Availability, AvailabilityPreference, ParsedQuery, Profile, Project


def test_normalize_scores_min_max() -> None:
    """Test scores spread into [0, 1]."""
    normalized = normalize_scores(
        {("profile", "a"): 2.0, ("profile", "b"): 4.0, ("profile", "c"): 3.0}
    )
    assert normalized == {("profile", "a"): 0.0, ("profile", "b"): 1.0, ("profile", "c"): 0.5}


def test_normalize_scores_degenerate_sets() -> None:
    """Test empty, singleton and all-equal inputs."""
    assert normalize_scores({}) == {}
    assert normalize_scores({("profile", "a"): 0.42}) == {("profile", "a"): 1.0}
    assert normalize_scores({("profile", "a"): 3.0, ("profile", "b"): 3.0}) == {
        ("profile", "a"): 1.0,
        ("profile", "b"): 1.0,
    }


def test_fuse_tags_provenance() -> None:
    """Test hybrid only when both sources produced the id."""
    ranker = WeightedFusionRanker()
    fused = ranker.fuse(
        {("profile", "both"): 0.9, ("profile", "vec"): 0.5},
        {("profile", "both"): 3.0, ("profile", "kw"): 1.0},
    )
    methods = {c.entity_id: c.search_method for c in fused}
    assert methods == {"both": "hybrid", "vec": "vector", "kw": "keyword"}
    assert fused[0].entity_id == "both"
    assert fused[0].score == pytest.approx(1.0)
    assert fused[0].vector_score == 0.9
    assert fused[0].keyword_score == 3.0


def test_fuse_uses_configured_weights() -> None:
    """Test composite score weights each source."""
    ranker = WeightedFusionRanker(vector_weight=0.6, keyword_weight=0.4)
    fused = ranker.fuse({("profile", "v"): 0.8}, {("profile", "k"): 2.0})
    scores = {c.entity_id: c.score for c in fused}
    assert scores == {"v": pytest.approx(0.6), "k": pytest.approx(0.4)}


def test_fuse_ties_break_by_id() -> None:
    """Test equal scores order deterministically by id."""
    ranker = WeightedFusionRanker()
    vector_hits = {("profile", "b"): 0.7, ("profile", "a"): 0.7, ("profile", "c"): 0.7}
    first = ranker.fuse(vector_hits, {})
    second = ranker.fuse(dict(reversed(list(vector_hits.items()))), {})
    assert [c.entity_id for c in first] == ["a", "b", "c"]
    assert [c.entity_id for c in second] == ["a", "b", "c"]


def test_fuse_allowed_drops_unhydrated() -> None:
    """Test candidates outside the allowed set are removed."""
    ranker = WeightedFusionRanker()
    fused = ranker.fuse(
        {("profile", "a"): 0.9, ("profile", "gone"): 0.8}, {}, allowed=[("profile", "a")]
    )
    assert [c.entity_id for c in fused] == ["a"]


def test_fuse_keeps_entity_types_apart() -> None:
    """Test the same id under two entity types stays two candidates."""
    ranker = WeightedFusionRanker()
    fused = ranker.fuse({("profile", "1"): 0.9}, {("project", "1"): 2.0})
    assert sorted((c.entity_type, c.search_method) for c in fused) == [
        ("profile", "vector"),
        ("project", "keyword"),
    ]


def test_compute_boosts_featured_and_availability() -> None:
    """Test boosts for featured projects and requested availability."""
    ranker = WeightedFusionRanker(featured_boost=0.05, availability_boost=0.05)
    entities = {
        ("project", "x"): Project(id="x", owner_id="o", name="X", slug="x", featured=True),
        ("project", "y"): Project(id="y", owner_id="o", name="Y", slug="y"),
        ("profile", "p"): Profile(
            id="p", handle="p", availability=Availability(hire=True, collab=True)
        ),
        ("profile", "q"): Profile(id="q", handle="q"),
    }
    parsed = ParsedQuery(availability=AvailabilityPreference(hire=True, collab=True))

    boosts = ranker.compute_boosts(entities, parsed)

    assert boosts == {("project", "x"): 0.05, ("profile", "p"): pytest.approx(0.1)}


def test_boost_changes_order() -> None:
    """Test a boost lifts an otherwise tied candidate."""
    ranker = WeightedFusionRanker()
    fused = ranker.fuse(
        {("project", "a"): 0.5, ("project", "b"): 0.5},
        {},
        boosts={("project", "b"): 0.05},
    )
    assert [c.entity_id for c in fused] == ["b", "a"]
