"""
Embeddings Adapter - Text embedding provider client.
"""

from .client import EmbeddingClient

__all__ = ["EmbeddingClient"]
