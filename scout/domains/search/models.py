"""
Search Models - Data types for search domain.

Profiles and projects form a closed tagged union (``SearchableEntity``)
discriminated by ``entity_type`` so fusion and reranking stay entity-agnostic.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator

if TYPE_CHECKING:
    from scout.config import Settings

EntityType = Literal["profile", "project"]
SearchMethod = Literal["vector", "keyword", "hybrid", "rerank", "browse"]

# (entity_type, entity_id)
EntityKey = tuple[str, str]

ENTITY_TYPES: tuple[EntityType, ...] = ("profile", "project")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ordered_unique(values: list[str]) -> list[str]:
    """Strip, drop empties and de-duplicate case-insensitively, keeping first spelling."""
    seen: set[str] = set()
    result = []
    for value in values:
        cleaned = value.strip()
        key = cleaned.casefold()
        if cleaned and key not in seen:
            seen.add(key)
            result.append(cleaned)
    return result


# --- Entities ---


class Availability(BaseModel):
    """Profile availability flags."""

    hire: bool = False
    collab: bool = False
    hiring: bool = False


class Profile(BaseModel):
    """A person listed in the directory."""

    entity_type: Literal["profile"] = "profile"
    id: str
    handle: str
    display_name: str = ""
    headline: str = ""
    bio: str = ""
    skills: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    location: str = ""
    availability: Availability = Field(default_factory=Availability)
    active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("skills", "interests")
    @classmethod
    def _dedupe(cls, values: list[str]) -> list[str]:
        return _ordered_unique(values)

    @property
    def sort_name(self) -> str:
        return (self.display_name or self.handle).casefold()


class MediaItem(BaseModel):
    """Image or video attached to a project."""

    type: str = "image"
    url: str


class Project(BaseModel):
    """A project published by a profile owner."""

    entity_type: Literal["project"] = "project"
    id: str
    owner_id: str
    name: str
    slug: str
    oneliner: str = ""
    description: str = ""
    featured: bool = False
    url: str | None = None
    media: list[MediaItem] = Field(default_factory=list)
    active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    # Hydrated read-only from the owning profile
    owner_handle: str | None = None
    owner_display_name: str | None = None

    @property
    def sort_name(self) -> str:
        return self.name.casefold()


SearchableEntity = Annotated[Union[Profile, Project], Field(discriminator="entity_type")]


# --- Embeddings ---


class EmbeddingAction(str, Enum):
    """Embedding log actions."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    FAILED = "failed"


class EmbeddingRecord(BaseModel):
    """Stored embedding for one entity under one model."""

    entity_type: EntityType
    entity_id: str
    model_id: str
    vector: list[float]
    content_hash: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("vector")
    @classmethod
    def _reject_zero_vector(cls, vector: list[float]) -> list[float]:
        if not vector:
            raise ValueError("Embedding vector is empty")
        if not any(vector):
            raise ValueError("Embedding vector is all zeros")
        return vector

    @property
    def dimension(self) -> int:
        return len(self.vector)


class EmbeddingLog(BaseModel):
    """Audit entry for embedding recomputation."""

    entity_id: str
    entity_type: EntityType
    action: EmbeddingAction
    timestamp: datetime = Field(default_factory=_utcnow)
    content_hash: str | None = None
    error: str | None = None


class EmbeddingStats(BaseModel):
    """Embedding coverage for the configured model."""

    total_embeddings: int = 0
    per_entity_type: dict[str, int] = Field(default_factory=dict)
    model_id: str = ""

    def count_for(self, entity_types: tuple[str, ...] | list[str]) -> int:
        return sum(self.per_entity_type.get(t, 0) for t in entity_types)

    @property
    def is_empty(self) -> bool:
        return self.total_embeddings == 0


# --- Query parsing ---


class Intent(str, Enum):
    """High-level purpose of a query."""

    PROFILE_SEARCH = "profile_search"
    PROJECT_SEARCH = "project_search"
    MIXED = "mixed"
    BROWSE = "browse"


class AvailabilityPreference(BaseModel):
    """Availability flags expressed in a query; ``None`` means not mentioned."""

    hire: bool | None = None
    collab: bool | None = None
    hiring: bool | None = None

    def requested(self) -> list[str]:
        return [name for name in ("hire", "collab", "hiring") if getattr(self, name) is True]


def _contains_any(haystack: str, needles: list[str]) -> bool:
    haystack = haystack.casefold()
    return any(needle.casefold() in haystack for needle in needles)


class StrictFilters(BaseModel):
    """
    Hard requirements from phrases like "only in Amsterdam" or "must be hiring".

    Location and availability describe people, so projects are only held to
    the skill and company requirements, matched against their own text.
    """

    locations: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    companies: list[str] = Field(default_factory=list)
    availability: AvailabilityPreference = Field(default_factory=AvailabilityPreference)

    @field_validator("locations", "skills", "companies")
    @classmethod
    def _dedupe(cls, values: list[str]) -> list[str]:
        return _ordered_unique(values)

    @property
    def is_empty(self) -> bool:
        return not (
            self.locations or self.skills or self.companies or self.availability.requested()
        )

    def matches(self, entity: Profile | Project) -> bool:
        """Whether ``entity`` satisfies every requirement (substring, case-insensitive)."""
        if isinstance(entity, Project):
            text = " ".join([entity.name, entity.oneliner, entity.description])
            if self.skills and not _contains_any(text, self.skills):
                return False
            return not self.companies or _contains_any(text, self.companies)

        if self.locations and not _contains_any(entity.location, self.locations):
            return False
        # Either side may be the more specific name ("React" vs "React Native")
        if self.skills and not any(
            _contains_any(skill, [wanted]) or _contains_any(wanted, [skill])
            for skill in entity.skills
            for wanted in self.skills
        ):
            return False
        if self.companies and not _contains_any(
            f"{entity.headline} {entity.display_name}", self.companies
        ):
            return False
        return all(getattr(entity.availability, flag) for flag in self.availability.requested())


class ParsedQuery(BaseModel):
    """Structured interpretation of a free-text query."""

    intent: Intent = Intent.MIXED
    locations: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    companies: list[str] = Field(default_factory=list)
    availability: AvailabilityPreference = Field(default_factory=AvailabilityPreference)
    strict_filters: StrictFilters = Field(default_factory=StrictFilters)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    freeform_query: str = ""
    original_query: str = ""

    @field_validator("locations", "skills", "interests", "companies")
    @classmethod
    def _dedupe(cls, values: list[str]) -> list[str]:
        return _ordered_unique(values)

    @classmethod
    def browse(cls, original_query: str = "") -> ParsedQuery:
        """Empty parse used for browse listings and fallbacks."""
        return cls(intent=Intent.BROWSE, confidence=0.0, original_query=original_query)

    @property
    def entities(self) -> list[str]:
        return _ordered_unique(self.skills + self.interests + self.locations + self.companies)

    @property
    def has_entities(self) -> bool:
        return bool(self.skills or self.interests or self.locations or self.companies)


# --- Requests / responses ---


class SortOrder(str, Enum):
    """Result orderings. ``featured`` and ``random`` apply to projects only."""

    RELEVANCE = "relevance"
    RECENT = "recent"
    NAME = "name"
    FEATURED = "featured"
    RANDOM = "random"


PROJECT_ONLY_SORTS = frozenset({SortOrder.FEATURED, SortOrder.RANDOM})


class SearchMode(str, Enum):
    """How a response was produced."""

    HYBRID = "hybrid"
    BROWSE = "browse"
    FALLBACK = "fallback"


class SearchOptions(BaseModel):
    """Options for a hybrid search request."""

    max_results: int = Field(default=48, ge=1, le=500)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=24, ge=1, le=100)
    sort: SortOrder = SortOrder.RELEVANCE
    entity_types: tuple[EntityType, ...] = ("profile",)
    enable_reranking: bool = True
    threshold: float | None = Field(default=None, ge=0.0, le=1.0)

    model_config = {"frozen": True}

    @field_validator("entity_types")
    @classmethod
    def _entity_types(cls, values: tuple[EntityType, ...]) -> tuple[EntityType, ...]:
        unique = tuple(dict.fromkeys(values))
        if not unique:
            raise ValueError("At least one entity type is required")
        return unique

    @model_validator(mode="after")
    def _project_only_sorts(self) -> SearchOptions:
        if self.sort in PROJECT_ONLY_SORTS and self.entity_types != ("project",):
            raise ValueError(f"Sort '{self.sort.value}' is only available for project search")
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class ProjectSearchOptions(BaseModel):
    """Options for project-scoped search."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=24, ge=1, le=100)
    sort: SortOrder = SortOrder.RELEVANCE
    threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    enable_reranking: bool = True
    max_results: int = Field(default=100, ge=1, le=500)

    model_config = {"frozen": True}


class BrowseOptions(BaseModel):
    """Options for a browse listing."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=24, ge=1, le=100)
    sort: SortOrder = SortOrder.RECENT

    model_config = {"frozen": True}

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class SearchTiming(BaseModel):
    """Per-stage latency in milliseconds."""

    parse: float = 0.0
    vector: float = 0.0
    keyword: float = 0.0
    reranking: float = 0.0
    total: float = 0.0


class SearchResultItem(BaseModel):
    """Single ranked result."""

    entity: SearchableEntity
    score: float = 0.0
    search_method: SearchMethod
    rank: int = Field(ge=1)
    vector_score: float | None = None
    keyword_score: float | None = None
    original_score: float | None = None

    @property
    def entity_type(self) -> str:
        return self.entity.entity_type

    @property
    def entity_id(self) -> str:
        return self.entity.id


class SearchResponse(BaseModel):
    """Hybrid search response."""

    results: list[SearchResultItem] = Field(default_factory=list)
    total_count: int = 0
    timing: SearchTiming = Field(default_factory=SearchTiming)
    parsed_query: ParsedQuery = Field(default_factory=ParsedQuery.browse)
    mode: SearchMode = SearchMode.HYBRID
    sort: SortOrder = SortOrder.RELEVANCE
    page: int = 1
    limit: int = 24

    @model_validator(mode="after")
    def _total_covers_results(self) -> SearchResponse:
        if self.total_count < len(self.results):
            raise ValueError("total_count must be at least the number of results")
        return self


class ProjectSearchResponse(BaseModel):
    """Project search response."""

    results: list[SearchResultItem] = Field(default_factory=list)
    total_count: int = 0
    timing: SearchTiming = Field(default_factory=SearchTiming)
    mode: SearchMode = SearchMode.HYBRID
    page: int = 1
    limit: int = 24


class BrowseResponse(BaseModel):
    """Paginated browse listing."""

    results: list[SearchResultItem] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    limit: int = 24


# --- Pipeline internals ---


class FusedCandidate(BaseModel):
    """Candidate after fusion, before pagination."""

    entity_type: EntityType
    entity_id: str
    score: float
    search_method: SearchMethod
    vector_score: float | None = None
    keyword_score: float | None = None
    original_score: float | None = None

    @property
    def key(self) -> EntityKey:
        return (self.entity_type, self.entity_id)


class SearchConfig(BaseModel):
    """Tuning constants for the search pipeline."""

    embedding_model: str = "@cf/baai/bge-m3"
    vector_index_type: Literal["Flat", "HNSW"] = "Flat"
    vector_weight: float = 0.6
    keyword_weight: float = 0.4
    profile_threshold: float = 0.3
    project_threshold: float = 0.4
    featured_boost: float = 0.05
    availability_boost: float = 0.05
    rerank_window: int = 20
    rerank_skip_on_explicit_matches: bool = False
    parse_timeout: float = 8.0
    embedding_timeout: float = 15.0
    retrieval_timeout: float = 5.0
    rerank_timeout: float = 5.0
    embedding_failure_mode: Literal["keyword_only", "browse"] = "keyword_only"

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Settings) -> SearchConfig:
        """Build from application ``Settings``."""
        return cls(
            embedding_model=settings.embedding_model,
            vector_index_type=settings.vector_index_type,
            vector_weight=settings.vector_weight,
            keyword_weight=settings.keyword_weight,
            profile_threshold=settings.profile_similarity_threshold,
            project_threshold=settings.project_similarity_threshold,
            featured_boost=settings.featured_boost,
            availability_boost=settings.availability_boost,
            rerank_window=settings.rerank_window,
            rerank_skip_on_explicit_matches=settings.rerank_skip_on_explicit_matches,
            parse_timeout=settings.llm_timeout_seconds,
            embedding_timeout=settings.embedding_timeout_seconds,
            retrieval_timeout=settings.retrieval_timeout_seconds,
            rerank_timeout=settings.rerank_timeout_seconds,
            embedding_failure_mode=settings.embedding_failure_mode,
        )

    def threshold_for(self, entity_type: str) -> float:
        return self.project_threshold if entity_type == "project" else self.profile_threshold
