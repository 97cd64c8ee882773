"""
Search Domain - Hybrid search over profiles and projects.

This domain handles:
- Query understanding (structured LLM call with heuristic fallback)
- Vector similarity retrieval (FAISS over stored embeddings)
- Field-weighted keyword retrieval (SQLite FTS5 prefilter)
- Weighted score fusion and cross-encoder reranking
- Browse and fallback listings
"""

# models first: storage adapters import them while this package initializes
from .models import (
    BrowseOptions,
    BrowseResponse,
    EmbeddingStats,
    Intent,
    ParsedQuery,
    Profile,
    Project,
    ProjectSearchOptions,
    ProjectSearchResponse,
    SearchConfig,
    SearchMode,
    SearchOptions,
    SearchResponse,
    SearchResultItem,
    SortOrder,
    StrictFilters,
)
from .contracts import (
    Embedder,
    KeywordRetriever,
    QueryParser,
    Reranker,
    SearchEngine,
    VectorRetriever,
)
from .fusion import WeightedFusionRanker
from .hybrid_search import HybridSearchEngine, SearchStage
from .keyword_retriever import FieldWeightedKeywordRetriever
from .projects import ProjectSearchEngine
from .query_parser import LLMQueryParser, heuristic_parse
from .reranker import CrossEncoderReranker
from .vector_retriever import EmbeddingVectorRetriever

__all__ = [
    # Contracts
    "SearchEngine",
    "QueryParser",
    "Embedder",
    "VectorRetriever",
    "KeywordRetriever",
    "Reranker",
    # Models
    "Profile",
    "Project",
    "Intent",
    "ParsedQuery",
    "StrictFilters",
    "SortOrder",
    "SearchMode",
    "SearchOptions",
    "ProjectSearchOptions",
    "BrowseOptions",
    "SearchResultItem",
    "SearchResponse",
    "ProjectSearchResponse",
    "BrowseResponse",
    "EmbeddingStats",
    "SearchConfig",
    # Pipeline
    "LLMQueryParser",
    "heuristic_parse",
    "EmbeddingVectorRetriever",
    "FieldWeightedKeywordRetriever",
    "WeightedFusionRanker",
    "CrossEncoderReranker",
    "HybridSearchEngine",
    "ProjectSearchEngine",
    "SearchStage",
]
