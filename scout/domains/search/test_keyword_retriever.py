"""
Tests for field-weighted keyword retrieval.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from scout.adapters.sqlite import SQLiteRepository
from scout.config import KeywordRetrievalError, StorageError

from .keyword_retriever import (
    PROFILE_FIELD_WEIGHTS,
    PROJECT_FIELD_WEIGHTS,
    FieldWeightedKeywordRetriever,
    score_entity,
)
from .models import Profile, Project


@pytest.fixture
async def repo(tmp_path: Path):
    repo = SQLiteRepository(tmp_path / "keyword.db")
    await repo.initialize()
    await repo.upsert_profile(
        Profile(
            id="p1",
            handle="ada",
            display_name="Ada",
            skills=["ai", "typescript"],
            location="Berlin, Germany",
        )
    )
    await repo.upsert_profile(
        Profile(id="p2", handle="bob", bio="I moved to berlin last year")
    )
    await repo.upsert_profile(Profile(id="p3", handle="cy", skills=["go"], location="Paris"))
    yield repo
    await repo.close()


# --- Scoring ---


def test_score_entity_weights_structured_fields() -> None:
    """Test skills outweigh free-text bio."""
    skilled = Profile(id="a", handle="a", skills=["Rust"])
    wordy = Profile(id="b", handle="b", bio="I like rust")
    assert score_entity(skilled, ["rust"]) == PROFILE_FIELD_WEIGHTS["skills"]
    assert score_entity(wordy, ["rust"]) == PROFILE_FIELD_WEIGHTS["bio"]


def test_score_entity_counts_each_term_field_once() -> None:
    """Test repeated terms do not inflate scores."""
    profile = Profile(id="a", handle="a", skills=["AI"], location="Berlin")
    expected = PROFILE_FIELD_WEIGHTS["skills"] + PROFILE_FIELD_WEIGHTS["location"]
    assert score_entity(profile, ["ai", "AI", "berlin"]) == expected


def test_score_entity_list_items_match_phrases() -> None:
    """Test multi-word skills match their words and full phrases."""
    profile = Profile(id="a", handle="a", skills=["Machine Learning"])
    assert score_entity(profile, ["learning"]) == PROFILE_FIELD_WEIGHTS["skills"]
    assert score_entity(profile, ["machine learning"]) == PROFILE_FIELD_WEIGHTS["skills"]
    assert score_entity(profile, ["earn"]) == 0.0


def test_score_entity_projects() -> None:
    """Test project field weights."""
    project = Project(id="x", owner_id="o", name="Rust CLI", slug="rust-cli", oneliner="Fast")
    expected = PROJECT_FIELD_WEIGHTS["name"] + PROJECT_FIELD_WEIGHTS["slug"]
    assert score_entity(project, ["rust"]) == expected


# --- Retrieval ---


async def test_retrieve_orders_by_score(repo: SQLiteRepository) -> None:
    """Test structured matches rank above bio mentions."""
    retriever = FieldWeightedKeywordRetriever(repo)

    hits = await retriever.retrieve(["ai", "berlin", "developers"], "profile", limit=10)

    assert [entity_id for entity_id, _ in hits] == ["p1", "p2"]
    assert hits[0][1] == PROFILE_FIELD_WEIGHTS["skills"] + PROFILE_FIELD_WEIGHTS["location"]


async def test_retrieve_excludes_non_matching(repo: SQLiteRepository) -> None:
    """Test entities with zero score never appear."""
    retriever = FieldWeightedKeywordRetriever(repo)
    assert await retriever.retrieve(["haskell"], "profile", limit=10) == []


async def test_retrieve_empty_terms(repo: SQLiteRepository) -> None:
    """Test empty term sets short-circuit."""
    retriever = FieldWeightedKeywordRetriever(repo)
    assert await retriever.retrieve(["", "  "], "profile", limit=10) == []


async def test_retrieve_respects_limit(repo: SQLiteRepository) -> None:
    """Test the limit caps hits."""
    retriever = FieldWeightedKeywordRetriever(repo)
    hits = await retriever.retrieve(["berlin"], "profile", limit=1)
    assert [entity_id for entity_id, _ in hits] == ["p1"]


async def test_retrieve_wraps_storage_errors() -> None:
    """Test storage failures surface as KeywordRetrievalError."""
    repo = MagicMock()
    repo.keyword_candidates = AsyncMock(side_effect=StorageError("locked"))
    retriever = FieldWeightedKeywordRetriever(repo)

    with pytest.raises(KeywordRetrievalError):
        await retriever.retrieve(["rust"], "profile", limit=5)
