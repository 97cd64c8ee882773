"""
Embedding Toolkit Models - Results of the diagnostic embedding operations.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class EmbeddingResult(BaseModel):
    """Raw embeddings for one or more inputs."""

    embeddings: list[list[float]] = Field(default_factory=list)
    model: str
    shape: tuple[int, int] = (0, 0)


class SimilarityMatch(BaseModel):
    """Document scored against a query by cosine similarity."""

    index: int = Field(ge=0)
    document: str
    similarity: float


class RerankedDocument(BaseModel):
    """Document scored by the cross-encoder."""

    index: int = Field(ge=0)
    document: str
    score: float


class RerankResult(BaseModel):
    """Cross-encoder results, best first."""

    results: list[RerankedDocument] = Field(default_factory=list)
    model: str = ""
