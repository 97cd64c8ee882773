"""
Adapters - External service integrations.

All external API calls and storage access are wrapped here to isolate
domains from third-party changes.
"""

from .embeddings import EmbeddingClient
from .faiss import FAISSIndex
from .llm import LLMResponse, LLMService
from .rerank import RerankClient
from .sqlite import SQLiteRepository

__all__ = [
    "EmbeddingClient",
    "FAISSIndex",
    "LLMService",
    "LLMResponse",
    "RerankClient",
    "SQLiteRepository",
]
