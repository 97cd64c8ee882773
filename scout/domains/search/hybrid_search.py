"""
Hybrid Search Engine - Query parsing, vector and keyword retrieval, fusion
and reranking composed into one pipeline.

Pipeline:
    Received -> Parsing -> Retrieving -> Fusing -> Reranking -> Paginating -> Completed

Any failure that leaves no usable retrieval source moves the request to
Fallback, which serves the browse listing instead. Callers always get a
valid SearchResponse; errors are logged, never raised.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import numpy as np

from scout.config import AggregateFailure, ScoutError, StorageError

from .fusion import WeightedFusionRanker
from .models import (
    EmbeddingStats,
    EntityKey,
    EntityType,
    FusedCandidate,
    ParsedQuery,
    Profile,
    Project,
    SearchConfig,
    SearchMode,
    SearchOptions,
    SearchResponse,
    SearchResultItem,
    SearchTiming,
    SortOrder,
)
from .query_parser import build_keyword_terms, heuristic_parse
from .reranker import entity_document, should_skip_for_explicit_matches

if TYPE_CHECKING:
    from scout.adapters.sqlite import SQLiteRepository

    from .contracts import Embedder, KeywordRetriever, QueryParser, Reranker, VectorRetriever

logger = logging.getLogger(__name__)

__all__ = ["HybridSearchEngine", "SearchStage", "StageResult"]

T = TypeVar("T")


class SearchStage(str, Enum):
    """Pipeline states, used in logs."""

    RECEIVED = "received"
    PARSING = "parsing"
    RETRIEVING = "retrieving"
    FUSING = "fusing"
    RERANKING = "reranking"
    PAGINATING = "paginating"
    COMPLETED = "completed"
    FALLBACK = "fallback"


@dataclass
class StageResult(Generic[T]):
    """Outcome of one pipeline stage."""

    value: T | None = None
    error: Exception | None = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


async def _run_stage(awaitable: Awaitable[T], timeout: float | None) -> StageResult[T]:
    """
    Await a stage with its own timeout, capturing failure instead of raising.

    Cancellation is not captured: it propagates to the caller.
    """
    start = time.perf_counter()
    try:
        value = await asyncio.wait_for(awaitable, timeout=timeout)
    except Exception as e:
        return StageResult(error=e, elapsed_ms=_elapsed_ms(start))
    return StageResult(value=value, elapsed_ms=_elapsed_ms(start))


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _describe(error: BaseException | None) -> str:
    if isinstance(error, ScoutError):
        return f"{error.code.value}: {error.message}"
    if isinstance(error, asyncio.TimeoutError):
        return "timed out"
    return repr(error)


def _recent_key(entity: Profile | Project) -> tuple[Any, ...]:
    return (-entity.created_at.timestamp(), entity.id, entity.entity_type)


def _name_key(entity: Profile | Project) -> tuple[Any, ...]:
    return (entity.sort_name, entity.id, entity.entity_type)


class HybridSearchEngine:
    """
    Hybrid search over profiles and projects.

    Example:
        >>> engine = HybridSearchEngine(repo, parser, embedder, vectors, keywords)
        >>> response = await engine.search("AI developers in Berlin")
        >>> response.parsed_query.locations
        ['Berlin']
        >>> response.results[0].search_method
        'hybrid'
    """

    def __init__(
        self,
        repository: SQLiteRepository,
        parser: QueryParser,
        embedder: Embedder,
        vector_retriever: VectorRetriever,
        keyword_retriever: KeywordRetriever,
        fusion: WeightedFusionRanker | None = None,
        reranker: Reranker | None = None,
        config: SearchConfig | None = None,
    ) -> None:
        """
        Initialize search engine.

        Args:
            repository: Entity and embedding storage (read only)
            parser: Query parser
            embedder: Query embedding provider
            vector_retriever: Similarity retrieval over stored embeddings
            keyword_retriever: Field-weighted keyword retrieval
            fusion: Score fusion (built from ``config`` when omitted)
            reranker: Optional cross-encoder reranker
            config: Pipeline tuning
        """
        self._config = config or SearchConfig()
        self._repo = repository
        self._parser = parser
        self._embedder = embedder
        self._vector = vector_retriever
        self._keyword = keyword_retriever
        self._reranker = reranker
        self._fusion = fusion or WeightedFusionRanker(
            vector_weight=self._config.vector_weight,
            keyword_weight=self._config.keyword_weight,
            featured_boost=self._config.featured_boost,
            availability_boost=self._config.availability_boost,
        )

    @property
    def config(self) -> SearchConfig:
        return self._config

    # --- Diagnostics ---

    async def get_embedding_stats(self) -> EmbeddingStats:
        """Stored embedding counts for the configured model."""
        counts = await self._repo.embedding_counts(self._config.embedding_model)
        return EmbeddingStats(
            total_embeddings=sum(counts.values()),
            per_entity_type=counts,
            model_id=self._config.embedding_model,
        )

    async def initialize_search(self) -> EmbeddingStats:
        """
        Warm up search: read embedding statistics and build vector indexes.

        Returns:
            Embedding statistics at warm-up time
        """
        stats = await self.get_embedding_stats()
        for entity_type, count in stats.per_entity_type.items():
            if count:
                size = await self._vector.warm(entity_type)
                logger.info("Vector index warmed: type=%s vectors=%d", entity_type, size)

        if stats.is_empty:
            logger.warning(
                "No embeddings for model %s; searches will use browse mode",
                self._config.embedding_model,
            )
        return stats

    # --- Search ---

    async def search(
        self,
        query: str,
        options: SearchOptions | None = None,
    ) -> SearchResponse:
        """
        Execute hybrid search.

        Args:
            query: Free-text query; empty means browse
            options: Pagination, sort, entity types, reranking, threshold

        Returns:
            SearchResponse. Never raises for provider or storage failures.
        """
        options = options or SearchOptions()
        text = (query or "").strip()

        if not text:
            return await self._browse_response(query or "", options, SearchMode.BROWSE)
        if options.sort == SortOrder.RANDOM:
            return await self._browse_response(text, options, SearchMode.BROWSE)

        try:
            return await self._hybrid(text, options)
        except AggregateFailure as e:
            logger.warning(
                "Search fell back to browse: query='%s' stage=%s errors=%s",
                text[:50],
                SearchStage.RETRIEVING.value,
                e.details.get("errors"),
            )
        except ScoutError as e:
            logger.warning(
                "Search fell back to browse: query='%s' error=%s", text[:50], _describe(e)
            )
        except Exception:
            logger.exception("Search failed unexpectedly, falling back to browse: '%s'", text[:50])
        return await self._browse_response(text, options, SearchMode.FALLBACK)

    async def _hybrid(self, text: str, options: SearchOptions) -> SearchResponse:
        config = self._config
        started = time.perf_counter()
        timing = SearchTiming()
        entity_types = options.entity_types

        stats = await self.get_embedding_stats()
        if stats.count_for(entity_types) == 0:
            logger.info(
                "No embeddings for %s, serving browse listing", ",".join(entity_types)
            )
            return await self._browse_response(text, options, SearchMode.FALLBACK)

        # Parsing: the parser owns its timeout and never raises
        logger.debug("Search stage=%s query='%s'", SearchStage.PARSING.value, text[:50])
        parse_stage, embed_stage = await asyncio.gather(
            _run_stage(self._parser.parse(text), None),
            _run_stage(
                self._embedder.embed1(text, config.embedding_model), config.embedding_timeout
            ),
        )
        parsed: ParsedQuery = parse_stage.value if parse_stage.ok else heuristic_parse(text)
        timing.parse = parse_stage.elapsed_ms

        query_vector: np.ndarray | None = embed_stage.value if embed_stage.ok else None
        if query_vector is None:
            logger.warning("Query embedding failed: %s", _describe(embed_stage.error))
            if config.embedding_failure_mode == "browse":
                raise AggregateFailure("Query embedding unavailable", [embed_stage.error])

        # Retrieving
        vector_hits, keyword_hits = await self._retrieve(
            text, parsed, query_vector, embed_stage, stats, options, timing
        )

        # Fusing
        entities = await self._hydrate({*vector_hits, *keyword_hits})
        strict = parsed.strict_filters
        if not strict.is_empty:
            before = len(entities)
            entities = {key: e for key, e in entities.items() if strict.matches(e)}
            logger.debug("Strict filters kept %d/%d candidates", len(entities), before)
        boosts = self._fusion.compute_boosts(entities, parsed)
        fused = self._fusion.fuse(vector_hits, keyword_hits, boosts, allowed=list(entities))
        fused = fused[: options.max_results]

        # Reranking
        if self._should_rerank(fused, entities, parsed, options):
            fused = await self._rerank(text, fused, entities, timing)

        # Paginating
        ordered = self._apply_sort(fused, entities, options.sort)
        results = self._page(ordered, entities, options.offset, options.limit)
        timing.total = _elapsed_ms(started)

        logger.info(
            "Hybrid search: query='%s' -> %d/%d results (vector=%d keyword=%d) in %.1fms",
            text[:50],
            len(results),
            len(ordered),
            len(vector_hits),
            len(keyword_hits),
            timing.total,
        )
        return SearchResponse(
            results=results,
            total_count=len(ordered),
            timing=timing,
            parsed_query=parsed,
            mode=SearchMode.HYBRID,
            sort=options.sort,
            page=options.page,
            limit=options.limit,
        )

    async def _retrieve(
        self,
        text: str,
        parsed: ParsedQuery,
        query_vector: np.ndarray | None,
        embed_stage: StageResult[Any],
        stats: EmbeddingStats,
        options: SearchOptions,
        timing: SearchTiming,
    ) -> tuple[dict[EntityKey, float], dict[EntityKey, float]]:
        """Run vector and keyword retrieval for every entity type concurrently."""
        config = self._config
        terms = build_keyword_terms(parsed, text)
        pool = options.max_results

        vector_types: list[EntityType] = []
        if query_vector is not None:
            vector_types = [t for t in options.entity_types if stats.per_entity_type.get(t)]

        stages = [
            _run_stage(
                self._vector.retrieve(
                    query_vector,
                    entity_type,
                    options.threshold
                    if options.threshold is not None
                    else config.threshold_for(entity_type),
                    pool,
                ),
                config.retrieval_timeout,
            )
            for entity_type in vector_types
        ]
        stages += [
            _run_stage(
                self._keyword.retrieve(terms, entity_type, pool), config.retrieval_timeout
            )
            for entity_type in options.entity_types
        ]
        outcomes = await asyncio.gather(*stages)
        vector_outcomes = list(zip(vector_types, outcomes[: len(vector_types)]))
        keyword_outcomes = list(zip(options.entity_types, outcomes[len(vector_types) :]))

        errors: list[Exception] = []
        vector_hits: dict[EntityKey, float] = {}
        for entity_type, outcome in vector_outcomes:
            if outcome.ok:
                vector_hits.update({(entity_type, i): s for i, s in outcome.value or []})
            else:
                logger.warning(
                    "Vector retrieval failed for %s: %s", entity_type, _describe(outcome.error)
                )
                errors.append(outcome.error)

        keyword_hits: dict[EntityKey, float] = {}
        for entity_type, outcome in keyword_outcomes:
            if outcome.ok:
                keyword_hits.update({(entity_type, i): s for i, s in outcome.value or []})
            else:
                logger.warning(
                    "Keyword retrieval failed for %s: %s", entity_type, _describe(outcome.error)
                )
                errors.append(outcome.error)

        vector_failed = query_vector is None or (
            bool(vector_outcomes) and all(not o.ok for _, o in vector_outcomes)
        )
        keyword_failed = all(not o.ok for _, o in keyword_outcomes)
        if vector_failed and keyword_failed:
            if query_vector is None:
                errors.insert(0, embed_stage.error)
            raise AggregateFailure("All retrieval sources failed", errors)

        timing.vector = embed_stage.elapsed_ms + max(
            (o.elapsed_ms for _, o in vector_outcomes), default=0.0
        )
        timing.keyword = max((o.elapsed_ms for _, o in keyword_outcomes), default=0.0)
        return vector_hits, keyword_hits

    async def _hydrate(self, keys: set[EntityKey]) -> dict[EntityKey, Profile | Project]:
        """Fetch active entities for candidate keys; inactive ones drop out."""
        by_type: dict[str, list[str]] = {}
        for entity_type, entity_id in keys:
            by_type.setdefault(entity_type, []).append(entity_id)

        entity_types = sorted(by_type)
        fetched = await asyncio.gather(
            *(self._repo.fetch_entities(t, by_type[t]) for t in entity_types)
        )
        entities: dict[EntityKey, Profile | Project] = {}
        for entity_type, found in zip(entity_types, fetched):
            for entity_id, entity in found.items():
                entities[(entity_type, entity_id)] = entity
        return entities

    def _should_rerank(
        self,
        fused: list[FusedCandidate],
        entities: dict[EntityKey, Profile | Project],
        parsed: ParsedQuery,
        options: SearchOptions,
    ) -> bool:
        if self._reranker is None or not options.enable_reranking or len(fused) <= 1:
            return False
        if options.sort != SortOrder.RELEVANCE:
            return False
        if self._config.rerank_skip_on_explicit_matches and should_skip_for_explicit_matches(
            fused, entities, parsed
        ):
            logger.debug("Skipping rerank: top results already match parsed entities")
            return False
        return True

    async def _rerank(
        self,
        text: str,
        fused: list[FusedCandidate],
        entities: dict[EntityKey, Profile | Project],
        timing: SearchTiming,
    ) -> list[FusedCandidate]:
        """Rerank the top window and keep the remainder in fused order."""
        assert self._reranker is not None
        window = fused[: self._config.rerank_window]
        documents = [entity_document(entities[c.key]) for c in window]

        stage = await _run_stage(
            self._reranker.rerank(text, window, top_k=len(window), documents=documents),
            None,
        )
        timing.reranking = stage.elapsed_ms
        if not stage.ok or not stage.value:
            if not stage.ok:
                logger.warning("Reranking failed, keeping fused order: %s", _describe(stage.error))
            return fused

        # The reranker may drop ids but never adds them
        allowed = {c.key for c in window}
        reranked = [c for c in stage.value if c.key in allowed]
        seen = {c.key for c in reranked}
        return reranked + [c for c in fused if c.key not in seen]

    @staticmethod
    def _apply_sort(
        fused: list[FusedCandidate],
        entities: dict[EntityKey, Profile | Project],
        sort: SortOrder,
    ) -> list[FusedCandidate]:
        if sort == SortOrder.RECENT:
            return sorted(fused, key=lambda c: _recent_key(entities[c.key]))
        if sort == SortOrder.NAME:
            return sorted(fused, key=lambda c: _name_key(entities[c.key]))
        if sort == SortOrder.FEATURED:
            # Stable: relevance order is kept within each group
            return sorted(fused, key=lambda c: not getattr(entities[c.key], "featured", False))
        return fused

    @staticmethod
    def _page(
        ordered: list[FusedCandidate],
        entities: dict[EntityKey, Profile | Project],
        offset: int,
        limit: int,
    ) -> list[SearchResultItem]:
        return [
            SearchResultItem(
                entity=entities[c.key],
                score=c.score,
                search_method=c.search_method,
                rank=offset + position,
                vector_score=c.vector_score,
                keyword_score=c.keyword_score,
                original_score=c.original_score,
            )
            for position, c in enumerate(ordered[offset : offset + limit], 1)
        ]

    # --- Browse ---

    async def browse(
        self,
        entity_types: tuple[EntityType, ...],
        sort: SortOrder,
        limit: int,
        offset: int = 0,
    ) -> tuple[list[SearchResultItem], int]:
        """
        Browse listing of active entities.

        Args:
            entity_types: Entity types to list (merged when more than one)
            sort: recent, name, featured or random; relevance behaves as recent
            limit: Page size
            offset: Items to skip

        Returns:
            (page items, total active count)

        Raises:
            StorageError: Repository failure
        """
        if sort == SortOrder.RELEVANCE:
            sort = SortOrder.RECENT

        counts = [await self._repo.count_active(t) for t in entity_types]
        total = sum(counts)

        if len(entity_types) == 1:
            entities = await self._repo.browse(entity_types[0], sort, limit, offset)
        else:
            merged: list[Profile | Project] = []
            for entity_type in entity_types:
                merged.extend(await self._repo.browse(entity_type, sort, offset + limit, 0))
            key = _name_key if sort == SortOrder.NAME else _recent_key
            merged.sort(key=key)
            entities = merged[offset : offset + limit]

        items = [
            SearchResultItem(entity=entity, score=0.0, search_method="browse", rank=offset + i)
            for i, entity in enumerate(entities, 1)
        ]
        return items, total

    async def _browse_response(
        self,
        original_query: str,
        options: SearchOptions,
        mode: SearchMode,
    ) -> SearchResponse:
        """Browse listing wrapped as a SearchResponse with zeroed timing."""
        sort = SortOrder.RECENT if options.sort == SortOrder.RELEVANCE else options.sort
        try:
            items, total = await self.browse(
                options.entity_types, sort, options.limit, options.offset
            )
        except StorageError as e:
            logger.error("Browse listing failed, returning empty results: %s", e.message)
            items, total = [], 0

        if mode == SearchMode.FALLBACK:
            logger.info(
                "Search stage=%s query='%s'", SearchStage.FALLBACK.value, original_query[:50]
            )

        return SearchResponse(
            results=items,
            total_count=max(total, len(items)),
            timing=SearchTiming(),
            parsed_query=ParsedQuery.browse(original_query),
            mode=mode,
            sort=sort,
            page=options.page,
            limit=options.limit,
        )
