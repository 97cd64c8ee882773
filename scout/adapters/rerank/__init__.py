"""
Rerank Adapter - Cross-encoder relevance scoring.
"""

from .client import RerankClient, RerankScore

__all__ = ["RerankClient", "RerankScore"]
