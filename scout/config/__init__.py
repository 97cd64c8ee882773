"""
Configuration - Application settings and error taxonomy.
"""

from .errors import (
    AggregateFailure,
    ConfigurationError,
    EmbeddingProviderError,
    ErrorCode,
    KeywordRetrievalError,
    LLMError,
    QueryParseError,
    RerankError,
    ScoutError,
    SearchError,
    StorageError,
    VectorRetrievalError,
    ZeroVectorError,
)
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "ErrorCode",
    "ScoutError",
    "SearchError",
    "QueryParseError",
    "VectorRetrievalError",
    "KeywordRetrievalError",
    "RerankError",
    "AggregateFailure",
    "EmbeddingProviderError",
    "ZeroVectorError",
    "LLMError",
    "StorageError",
    "ConfigurationError",
]
