"""
Rerank Client - HTTP client for a cross-encoder rerank endpoint.

Request: ``{model, query, documents, top_n}``
Response: ``{results: [{index, relevance_score}]}``
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import httpx

from scout.config import RerankError, Settings, get_settings

logger = logging.getLogger(__name__)

__all__ = ["RerankClient", "RerankScore"]


@dataclass(frozen=True)
class RerankScore:
    """Relevance of one input document."""

    index: int
    score: float


class RerankClient:
    """
    Cross-encoder rerank provider client.

    Example:
        >>> client = RerankClient.from_settings()
        >>> scores = await client.rerank("rust developer", ["Go dev", "Rust dev"], top_n=1)
        >>> scores[0].index
        1
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        model: str = "@cf/baai/bge-reranker-base",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout

        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RerankClient:
        settings = settings or get_settings()
        return cls(
            base_url=settings.rerank_url,
            api_key=settings.rerank_api_key,
            model=settings.rerank_model,
            timeout=settings.rerank_timeout_seconds,
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

    async def rerank(
        self,
        query: str,
        documents: Sequence[str],
        top_n: int | None = None,
    ) -> list[RerankScore]:
        """
        Score documents against a query.

        Args:
            query: Search query
            documents: Candidate texts
            top_n: Maximum scores to return (defaults to all)

        Returns:
            Scores sorted by relevance descending. Indices refer to ``documents``
            and are unique and in range.

        Raises:
            RerankError: Provider failure or malformed response
        """
        documents = list(documents)
        if not documents:
            return []
        top_n = min(top_n or len(documents), len(documents))

        client = self._get_client()
        try:
            response = await client.post(
                "/rerank",
                json={
                    "model": self.model,
                    "query": query,
                    "documents": documents,
                    "top_n": top_n,
                },
            )
        except httpx.TimeoutException as e:
            raise RerankError("Rerank provider timed out", {"model": self.model}) from e
        except httpx.TransportError as e:
            raise RerankError(f"Rerank provider unreachable: {e}", {"model": self.model}) from e

        if response.status_code != 200:
            logger.error("Rerank error: %s %s", response.status_code, response.text)
            raise RerankError(
                f"Rerank API error: {response.status_code}",
                {"status": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RerankError(
                "Rerank provider returned a non-JSON body", {"model": self.model}
            ) from e
        results = body.get("results") if isinstance(body, dict) else None
        if not isinstance(results, list):
            raise RerankError("Rerank response missing results", {"model": self.model})

        scores: list[RerankScore] = []
        seen: set[int] = set()
        for item in results:
            if not isinstance(item, dict):
                raise RerankError("Rerank response has malformed results", {"model": self.model})
            index = item.get("index")
            score = item.get("relevance_score", item.get("score"))
            if not isinstance(index, int) or score is None:
                continue
            # Ignore out-of-range and duplicate indices
            if index < 0 or index >= len(documents) or index in seen:
                continue
            try:
                value = float(score)
            except (TypeError, ValueError) as e:
                raise RerankError(
                    "Rerank response has a non-numeric score", {"model": self.model, "index": index}
                ) from e
            seen.add(index)
            scores.append(RerankScore(index=index, score=value))

        scores.sort(key=lambda s: (-s.score, s.index))
        return scores[:top_n]
