"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from scout.config.errors import ErrorCode, ScoutError

    raise ScoutError(ErrorCode.SEARCH_INVALID_QUERY, "Unknown sort order")

Search-stage errors (query parsing, embeddings, retrieval, reranking) are
raised by components and absorbed by the search orchestrators, which degrade
instead of failing. They only reach API clients from the diagnostic endpoints.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Search errors
    SEARCH_INVALID_QUERY = "SEARCH_INVALID_QUERY"
    SEARCH_QUERY_PARSE_FAILED = "SEARCH_QUERY_PARSE_FAILED"
    SEARCH_VECTOR_FAILED = "SEARCH_VECTOR_FAILED"
    SEARCH_KEYWORD_FAILED = "SEARCH_KEYWORD_FAILED"
    SEARCH_RERANK_FAILED = "SEARCH_RERANK_FAILED"
    SEARCH_ALL_RETRIEVERS_FAILED = "SEARCH_ALL_RETRIEVERS_FAILED"

    # Embedding provider errors
    EMBEDDING_PROVIDER_FAILED = "EMBEDDING_PROVIDER_FAILED"
    EMBEDDING_ZERO_VECTOR = "EMBEDDING_ZERO_VECTOR"
    EMBEDDING_INVALID_RESPONSE = "EMBEDDING_INVALID_RESPONSE"

    # LLM/Model errors
    LLM_UNAVAILABLE = "LLM_UNAVAILABLE"
    LLM_RATE_LIMITED = "LLM_RATE_LIMITED"
    LLM_INVALID_RESPONSE = "LLM_INVALID_RESPONSE"
    LLM_AUTH_FAILED = "LLM_AUTH_FAILED"
    LLM_UNKNOWN_SCHEMA = "LLM_UNKNOWN_SCHEMA"

    # Storage errors
    STORAGE_CONNECTION_FAILED = "STORAGE_CONNECTION_FAILED"
    STORAGE_READ_FAILED = "STORAGE_READ_FAILED"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"

    # Security errors
    SECURITY_UNAUTHORIZED = "SECURITY_UNAUTHORIZED"
    SECURITY_FORBIDDEN = "SECURITY_FORBIDDEN"
    SECURITY_RATE_LIMITED = "SECURITY_RATE_LIMITED"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    NOT_FOUND = "NOT_FOUND"


class ScoutError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


# Domain-specific exceptions for cleaner imports
class SearchError(ScoutError):
    """Search domain errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.SEARCH_INVALID_QUERY,
    ) -> None:
        super().__init__(code, message, details)


class QueryParseError(SearchError):
    """Structured query parsing failed; callers fall back to the heuristic parser."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details, ErrorCode.SEARCH_QUERY_PARSE_FAILED)


class VectorRetrievalError(SearchError):
    """Vector similarity retrieval failed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details, ErrorCode.SEARCH_VECTOR_FAILED)


class KeywordRetrievalError(SearchError):
    """Keyword retrieval failed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details, ErrorCode.SEARCH_KEYWORD_FAILED)


class RerankError(SearchError):
    """Rerank provider failed or returned an unusable response."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details, ErrorCode.SEARCH_RERANK_FAILED)


class AggregateFailure(SearchError):
    """No retrieval source produced usable results."""

    def __init__(
        self,
        message: str,
        errors: list[BaseException] | None = None,
    ) -> None:
        self.errors = list(errors or [])
        super().__init__(
            message,
            {"errors": [str(e) for e in self.errors]},
            ErrorCode.SEARCH_ALL_RETRIEVERS_FAILED,
        )


class EmbeddingProviderError(ScoutError):
    """Embedding provider errors. ``retryable`` marks transient failures."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
        code: ErrorCode = ErrorCode.EMBEDDING_PROVIDER_FAILED,
    ) -> None:
        self.retryable = retryable
        super().__init__(code, message, details)


class ZeroVectorError(EmbeddingProviderError):
    """Provider returned an all-zero vector, which is never a valid embedding."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details, retryable=True, code=ErrorCode.EMBEDDING_ZERO_VECTOR)


class LLMError(ScoutError):
    """LLM/model errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.LLM_UNAVAILABLE,
    ) -> None:
        super().__init__(code, message, details)


class StorageError(ScoutError):
    """Storage/database errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.STORAGE_CONNECTION_FAILED,
    ) -> None:
        super().__init__(code, message, details)


class ConfigurationError(ScoutError):
    """Invalid or missing configuration."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.CONFIGURATION_ERROR, message, details)
