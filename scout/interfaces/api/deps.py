"""
API Dependencies - Dependency injection for FastAPI routes.

Provides singleton instances of the repository, provider clients and the
search engines built on them.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from scout.adapters import EmbeddingClient, LLMService, RerankClient, SQLiteRepository
from scout.config import ScoutError, Settings, get_settings
from scout.domains.embeddings import EmbeddingToolkit
from scout.domains.search import (
    CrossEncoderReranker,
    EmbeddingVectorRetriever,
    FieldWeightedKeywordRetriever,
    HybridSearchEngine,
    LLMQueryParser,
    ProjectSearchEngine,
    SearchConfig,
)

logger = logging.getLogger(__name__)


def build_search_engine(
    repository: SQLiteRepository,
    embedder: EmbeddingClient,
    llm: LLMService | None,
    rerank_client: RerankClient | None,
    settings: Settings,
) -> HybridSearchEngine:
    """
    Wire the hybrid search pipeline.

    Args:
        repository: Entity and embedding storage
        embedder: Embedding provider client
        llm: Structured LLM for query parsing (heuristic parsing when None)
        rerank_client: Cross-encoder provider (reranking disabled when None)
        settings: Application settings

    Returns:
        Ready-to-use search engine
    """
    config = SearchConfig.from_settings(settings)
    reranker = None
    if rerank_client is not None:
        reranker = CrossEncoderReranker(rerank_client, timeout=config.rerank_timeout)

    return HybridSearchEngine(
        repository=repository,
        parser=LLMQueryParser(
            llm, timeout=config.parse_timeout, temperature=settings.llm_temperature
        ),
        embedder=embedder,
        vector_retriever=EmbeddingVectorRetriever(
            repository, config.embedding_model, config.vector_index_type
        ),
        keyword_retriever=FieldWeightedKeywordRetriever(repository),
        reranker=reranker,
        config=config,
    )


@lru_cache
def get_sqlite_repository() -> SQLiteRepository:
    """Get SQLite repository singleton."""
    settings = get_settings()
    return SQLiteRepository(settings.db_path)


@lru_cache
def get_embedding_client() -> EmbeddingClient:
    """Get embedding provider client singleton."""
    return EmbeddingClient.from_settings()


@lru_cache
def get_llm_service() -> LLMService:
    """Get structured LLM client singleton."""
    return LLMService.from_settings()


@lru_cache
def get_rerank_client() -> RerankClient | None:
    """Get rerank client singleton, or None when reranking is disabled."""
    settings = get_settings()
    if not settings.rerank_enabled:
        return None
    return RerankClient.from_settings(settings)


@lru_cache
def get_search_engine() -> HybridSearchEngine:
    """Get hybrid search engine singleton."""
    return build_search_engine(
        get_sqlite_repository(),
        get_embedding_client(),
        get_llm_service(),
        get_rerank_client(),
        get_settings(),
    )


@lru_cache
def get_project_search() -> ProjectSearchEngine:
    """Get project search singleton."""
    return ProjectSearchEngine(get_search_engine())


@lru_cache
def get_embedding_toolkit() -> EmbeddingToolkit:
    """Get diagnostic embedding toolkit singleton."""
    settings = get_settings()
    return EmbeddingToolkit(
        get_embedding_client(),
        get_rerank_client(),
        default_model=settings.embedding_model,
    )


async def init_services() -> None:
    """
    Initialize services on startup.

    This should be called from the FastAPI lifespan handler.
    """
    repo = get_sqlite_repository()
    await repo.initialize()

    try:
        stats = await get_search_engine().initialize_search()
    except ScoutError as e:
        logger.warning("Search warm-up failed, indexes will build on first query: %s", e)
    else:
        logger.info(
            "Search ready: %d embeddings (%s)", stats.total_embeddings, stats.model_id
        )


async def cleanup_services() -> None:
    """Cleanup services on shutdown."""
    await get_embedding_client().close()
    await get_llm_service().close()
    rerank = get_rerank_client()
    if rerank is not None:
        await rerank.close()
    await get_sqlite_repository().close()
