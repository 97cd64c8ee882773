"""Tests for the structured-output LLM service."""

from __future__ import annotations

import json

import httpx
import pytest

from scout.config import ErrorCode, LLMError

from .schemas import RESPONSE_SCHEMAS, ParsedQueryPayload, get_response_schema
from .service import LLMService


def _completion(content) -> dict:
    return {
        "model": "test-model",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"total_tokens": 42},
    }


def _service(handler) -> LLMService:
    return LLMService(
        base_url="http://llm.test/v1",
        api_key="token",
        transport=httpx.MockTransport(handler),
    )


PARSED = {
    "intent": "profile_search",
    "companies": [],
    "locations": ["Berlin"],
    "skills": ["AI"],
    "interests": [],
    "availability": {"hire": None, "collab": None, "hiring": None},
    "freeform_query": "developers",
    "confidence": 0.9,
}


def test_registry_contains_versioned_parsed_query_schema() -> None:
    """Test schemas are looked up by versioned key."""
    assert RESPONSE_SCHEMAS["parsed_query.v1"] is ParsedQueryPayload
    assert get_response_schema("parsed_query.v1") is ParsedQueryPayload


def test_unknown_schema_is_rejected() -> None:
    """Test arbitrary schema names cannot be used."""
    with pytest.raises(LLMError) as exc_info:
        get_response_schema("lambda: __import__('os')")
    assert exc_info.value.code == ErrorCode.LLM_UNKNOWN_SCHEMA


async def test_generate_structured_sends_schema_and_validates() -> None:
    """Test request shape and validated payload."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json=_completion(json.dumps(PARSED)))

    response = await _service(handler).generate_structured(
        "parsed_query.v1", "system", "user"
    )

    assert isinstance(response.payload, ParsedQueryPayload)
    assert response.payload.locations == ["Berlin"]
    assert response.tokens_used == 42
    assert seen["auth"] == "Bearer token"
    assert seen["body"]["temperature"] == 0.1
    assert seen["body"]["response_format"]["type"] == "json_schema"
    assert seen["body"]["response_format"]["json_schema"]["name"] == "parsed_query_v1"


async def test_generate_structured_extracts_json_from_prose() -> None:
    """Test JSON wrapped in text is still recovered."""

    def handler(request: httpx.Request) -> httpx.Response:
        content = "Here you go:\n```json\n" + json.dumps(PARSED) + "\n```"
        return httpx.Response(200, json=_completion(content))

    response = await _service(handler).generate_structured("parsed_query.v1", "s", "u")
    assert response.payload.skills == ["AI"]


async def test_invalid_payload_raises() -> None:
    """Test schema violations raise LLM_INVALID_RESPONSE."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_completion('{"intent": "nonsense"}'))

    with pytest.raises(LLMError) as exc_info:
        await _service(handler).generate_structured("parsed_query.v1", "s", "u")
    assert exc_info.value.code == ErrorCode.LLM_INVALID_RESPONSE


async def test_rate_limit_maps_to_error_code() -> None:
    """Test 429 responses map to LLM_RATE_LIMITED."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429)

    with pytest.raises(LLMError) as exc_info:
        await _service(handler).generate_structured("parsed_query.v1", "s", "u")
    assert exc_info.value.code == ErrorCode.LLM_RATE_LIMITED


async def test_connection_error_raises_llm_error() -> None:
    """Test transport failures are wrapped."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(LLMError) as exc_info:
        await _service(handler).generate_structured("parsed_query.v1", "s", "u")
    assert exc_info.value.code == ErrorCode.LLM_UNAVAILABLE
