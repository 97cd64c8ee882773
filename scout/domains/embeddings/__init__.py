"""
Embeddings Domain - Diagnostic embedding, similarity and rerank operations.

This domain handles:
- Raw embedding generation for arbitrary texts
- Cosine similarity ranking of ad-hoc documents
- Cross-encoder scoring of ad-hoc documents
"""

from .contracts import DocumentReranker
from .models import EmbeddingResult, RerankedDocument, RerankResult, SimilarityMatch
from .toolkit import EmbeddingToolkit, cosine_similarities

__all__ = [
    "DocumentReranker",
    "EmbeddingResult",
    "SimilarityMatch",
    "RerankedDocument",
    "RerankResult",
    "EmbeddingToolkit",
    "cosine_similarities",
]
