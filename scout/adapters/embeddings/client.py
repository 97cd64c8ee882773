"""
Embedding Client - HTTP client for an OpenAI-compatible embeddings endpoint.

Features:
- Batches many texts into one provider call
- Automatic retries with exponential backoff (tenacity)
- Response validation: count, dimension, finite values
- All-zero vectors are treated as a provider malfunction and retried
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx
import numpy as np
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from scout.config import (
    EmbeddingProviderError,
    ErrorCode,
    Settings,
    ZeroVectorError,
    get_settings,
)

logger = logging.getLogger(__name__)

__all__ = ["EmbeddingClient"]


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, EmbeddingProviderError) and error.retryable


class EmbeddingClient:
    """
    Embedding provider client.

    Example:
        >>> client = EmbeddingClient.from_settings()
        >>> vectors = await client.embed(["Python developer in Berlin", "ML engineer"])
        >>> vectors.shape
        (2, 1024)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        model: str = "@cf/baai/bge-m3",
        dimension: int | None = None,
        timeout: float = 15.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        batch_size: int = 64,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize embedding client.

        Args:
            base_url: Provider base URL (``/embeddings`` is appended)
            api_key: Bearer token
            model: Default model id
            dimension: Expected vector length, or None to accept any consistent length
            timeout: Per-request timeout in seconds
            max_attempts: Total attempts per batch, including the first
            backoff_seconds: Base of the exponential backoff between attempts
            batch_size: Maximum texts per provider call
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.dimension = dimension
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.batch_size = batch_size

        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> EmbeddingClient:
        settings = settings or get_settings()
        return cls(
            base_url=settings.embedding_url,
            api_key=settings.embedding_api_key,
            model=settings.embedding_model,
            dimension=settings.embedding_dimension,
            timeout=settings.embedding_timeout_seconds,
            max_attempts=settings.embedding_max_attempts,
            backoff_seconds=settings.embedding_backoff_seconds,
            batch_size=settings.embedding_batch_size,
        )

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def embed(self, texts: Sequence[str], model_id: str | None = None) -> np.ndarray:
        """
        Embed texts.

        Args:
            texts: Input texts (all share one model)
            model_id: Override default model

        Returns:
            float32 matrix of shape (len(texts), dimension)

        Raises:
            EmbeddingProviderError: Provider failed after all retries
        """
        model = model_id or self.model
        texts = list(texts)
        if not texts:
            return np.zeros((0, self.dimension or 0), dtype=np.float32)

        batches = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            batches.append(await self._embed_with_retry(batch, model))

        if len({b.shape[1] for b in batches}) != 1:
            raise EmbeddingProviderError(
                "Embedding batches returned different dimensions",
                {"model": model},
                code=ErrorCode.EMBEDDING_INVALID_RESPONSE,
            )
        return np.vstack(batches)

    async def embed1(self, text: str, model_id: str | None = None) -> np.ndarray:
        """Embed a single text into a (dimension,) vector."""
        matrix = await self.embed([text], model_id)
        return matrix[0]

    async def _embed_with_retry(self, texts: list[str], model: str) -> np.ndarray:
        """Call the provider, retrying transient failures with exponential backoff."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=10),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying embeddings: attempt=%d model=%s texts=%d",
                        attempt.retry_state.attempt_number,
                        model,
                        len(texts),
                    )
                return await self._request(texts, model)
        raise EmbeddingProviderError("Embedding retries exhausted", {"model": model})

    async def _request(self, texts: list[str], model: str) -> np.ndarray:
        """Single provider call."""
        client = self._get_client()
        try:
            response = await client.post("/embeddings", json={"model": model, "input": texts})
        except httpx.TimeoutException as e:
            raise EmbeddingProviderError(
                "Embedding provider timed out", {"model": model}, retryable=True
            ) from e
        except httpx.TransportError as e:
            raise EmbeddingProviderError(
                f"Embedding provider unreachable: {e}", {"model": model}, retryable=True
            ) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise EmbeddingProviderError(
                f"Embedding provider error: {response.status_code}",
                {"model": model, "status": response.status_code},
                retryable=True,
            )
        if response.status_code != 200:
            logger.error("Embedding provider error: %s %s", response.status_code, response.text)
            raise EmbeddingProviderError(
                f"Embedding provider rejected request: {response.status_code}",
                {"model": model, "status": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise EmbeddingProviderError(
                "Embedding provider returned a non-JSON body",
                {"model": model},
                retryable=True,
                code=ErrorCode.EMBEDDING_INVALID_RESPONSE,
            ) from e
        return self._parse_response(data, len(texts), model)

    def _parse_response(self, data: Any, expected: int, model: str) -> np.ndarray:
        """Validate provider payload and convert to a float32 matrix."""
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list) or len(items) != expected:
            raise EmbeddingProviderError(
                "Embedding provider returned wrong number of vectors",
                {"model": model, "expected": expected, "received": len(items or [])},
                code=ErrorCode.EMBEDDING_INVALID_RESPONSE,
            )

        if not all(isinstance(item, dict) for item in items):
            raise EmbeddingProviderError(
                "Embedding provider returned malformed items",
                {"model": model},
                code=ErrorCode.EMBEDDING_INVALID_RESPONSE,
            )
        try:
            items = sorted(items, key=lambda item: int(item.get("index", 0)))
            matrix = np.asarray([item["embedding"] for item in items], dtype=np.float32)
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingProviderError(
                "Embedding provider returned malformed vectors",
                {"model": model},
                code=ErrorCode.EMBEDDING_INVALID_RESPONSE,
            ) from e

        if matrix.ndim != 2 or matrix.shape[1] == 0:
            raise EmbeddingProviderError(
                "Embedding vectors have inconsistent lengths",
                {"model": model},
                code=ErrorCode.EMBEDDING_INVALID_RESPONSE,
            )
        if self.dimension and matrix.shape[1] != self.dimension:
            raise EmbeddingProviderError(
                "Embedding dimension mismatch",
                {"model": model, "expected": self.dimension, "received": matrix.shape[1]},
                code=ErrorCode.EMBEDDING_INVALID_RESPONSE,
            )
        if not np.isfinite(matrix).all():
            raise EmbeddingProviderError(
                "Embedding provider returned non-finite values",
                {"model": model},
                retryable=True,
                code=ErrorCode.EMBEDDING_INVALID_RESPONSE,
            )

        zero_rows = np.flatnonzero(~matrix.any(axis=1))
        if zero_rows.size:
            raise ZeroVectorError(
                "Embedding provider returned all-zero vectors",
                {"model": model, "rows": zero_rows.tolist()},
            )

        return matrix
