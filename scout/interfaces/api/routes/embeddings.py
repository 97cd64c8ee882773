"""
Embedding Routes - Diagnostic embedding, similarity and rerank endpoints.

All routes require the admin token when one is configured.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from scout.domains.embeddings import (
    EmbeddingResult,
    EmbeddingToolkit,
    RerankResult,
    SimilarityMatch,
)
from scout.interfaces.api.auth import require_admin_token
from scout.interfaces.api.deps import get_embedding_toolkit

router = APIRouter(dependencies=[Depends(require_admin_token)])


class EmbedRequest(BaseModel):
    """Texts to embed."""

    input: str | list[str] = Field(..., description="One text or a list of texts")
    model: str | None = None


class SimilarRequest(BaseModel):
    """Documents to rank against a query."""

    query: str = Field(..., min_length=1)
    documents: list[str] = Field(..., min_length=1, max_length=100)
    top_k: int = Field(default=5, ge=1, le=100)
    threshold: float = Field(default=0.0, ge=-1.0, le=1.0)


class SimilarResponse(BaseModel):
    """Ranked similarity matches."""

    results: list[SimilarityMatch]


class RerankRequest(BaseModel):
    """Documents to score with the cross-encoder."""

    query: str = Field(..., min_length=1)
    documents: list[str] = Field(..., min_length=1, max_length=100)
    top_k: int = Field(default=5, ge=1, le=100)


@router.post("", response_model=EmbeddingResult)
async def generate_embeddings(
    request: EmbedRequest,
    toolkit: EmbeddingToolkit = Depends(get_embedding_toolkit),
) -> EmbeddingResult:
    """Embed one or more texts."""
    return await toolkit.generate_embeddings(request.input, request.model)


@router.post("/similar", response_model=SimilarResponse)
async def find_similar(
    request: SimilarRequest,
    toolkit: EmbeddingToolkit = Depends(get_embedding_toolkit),
) -> SimilarResponse:
    """Rank documents by cosine similarity to a query."""
    matches = await toolkit.find_most_similar(
        request.query, request.documents, top_k=request.top_k, threshold=request.threshold
    )
    return SimilarResponse(results=matches)


@router.post("/rerank", response_model=RerankResult)
async def rerank(
    request: RerankRequest,
    toolkit: EmbeddingToolkit = Depends(get_embedding_toolkit),
) -> RerankResult:
    """Score documents with the cross-encoder."""
    return await toolkit.rerank_documents(request.query, request.documents, top_k=request.top_k)
