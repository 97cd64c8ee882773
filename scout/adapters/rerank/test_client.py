"""Tests for the rerank provider client."""

from __future__ import annotations

import json

import httpx
import pytest

from scout.config import RerankError

from .client import RerankClient


def _client(handler) -> RerankClient:
    return RerankClient(base_url="http://rerank.test/v1", transport=httpx.MockTransport(handler))


async def test_rerank_sorts_by_score() -> None:
    """Test results come back ordered by relevance."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "results": [
                    {"index": 0, "relevance_score": 0.1},
                    {"index": 2, "relevance_score": 0.9},
                    {"index": 1, "relevance_score": 0.5},
                ]
            },
        )

    scores = await _client(handler).rerank("rust", ["a", "b", "c"])

    assert [s.index for s in scores] == [2, 1, 0]
    assert seen["body"]["top_n"] == 3
    assert seen["body"]["documents"] == ["a", "b", "c"]


async def test_rerank_drops_invalid_and_duplicate_indices() -> None:
    """Test provider indices outside the input or repeated are ignored."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "results": [
                    {"index": 5, "relevance_score": 0.99},
                    {"index": 1, "relevance_score": 0.8},
                    {"index": 1, "relevance_score": 0.7},
                    {"index": -1, "relevance_score": 0.6},
                ]
            },
        )

    scores = await _client(handler).rerank("q", ["a", "b"])
    assert [s.index for s in scores] == [1]


async def test_rerank_respects_top_n() -> None:
    """Test no more than top_n scores are returned."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"results": [{"index": i, "relevance_score": 1 - i / 10} for i in range(4)]},
        )

    scores = await _client(handler).rerank("q", ["a", "b", "c", "d"], top_n=2)
    assert len(scores) == 2


async def test_rerank_empty_documents() -> None:
    """Test empty input returns without calling the provider."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("provider should not be called")

    assert await _client(handler).rerank("q", []) == []


async def test_rerank_timeout_raises_rerank_error() -> None:
    """Test timeouts surface as RerankError."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(RerankError):
        await _client(handler).rerank("q", ["a", "b"])


async def test_rerank_http_error_raises_rerank_error() -> None:
    """Test non-200 responses surface as RerankError."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(RerankError):
        await _client(handler).rerank("q", ["a", "b"])


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(200, json=[{"index": 0, "relevance_score": 0.5}]),
        httpx.Response(200, json={"results": [[0, 0.5]]}),
        httpx.Response(200, json={"results": [{"index": 0, "relevance_score": "high"}]}),
    ],
    ids=["html", "list-body", "list-item", "text-score"],
)
async def test_rerank_malformed_body_raises_rerank_error(response: httpx.Response) -> None:
    """Test undecodable or misshapen payloads surface as RerankError."""

    def handler(request: httpx.Request) -> httpx.Response:
        return response

    with pytest.raises(RerankError):
        await _client(handler).rerank("q", ["a", "b"])
