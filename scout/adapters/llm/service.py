"""
LLM Service - Structured-output language model client.

Talks to an OpenAI-compatible ``/chat/completions`` endpoint and requests
JSON that conforms to a schema picked from the static registry in
``schemas.py``. Responses are validated with pydantic before they are
returned.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from scout.config import ErrorCode, LLMError, Settings, get_settings

from .schemas import get_response_schema

logger = logging.getLogger(__name__)

__all__ = ["LLMResponse", "LLMService"]


@dataclass
class LLMResponse:
    """Validated structured response."""

    payload: BaseModel
    model: str
    schema_name: str
    tokens_used: int | None = None


class LLMService:
    """
    Structured-output LLM client.

    Example:
        >>> llm = LLMService.from_settings()
        >>> response = await llm.generate_structured(
        ...     "parsed_query.v1",
        ...     system_prompt="You parse directory search queries.",
        ...     user_prompt='Parse this search query: "rust devs in Berlin"',
        ... )
        >>> response.payload.locations
        ['Berlin']
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        model: str = "@cf/meta/llama-3.1-8b-instruct",
        temperature: float = 0.1,
        timeout: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize LLM service.

        Args:
            base_url: Provider base URL (``/chat/completions`` is appended)
            api_key: Bearer token
            model: Model id
            temperature: Default sampling temperature
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> LLMService:
        settings = settings or get_settings()
        return cls(
            base_url=settings.llm_url,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout_seconds,
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

    async def generate_structured(
        self,
        schema_name: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
    ) -> LLMResponse:
        """
        Generate a response that validates against a registered schema.

        Args:
            schema_name: Registry key, e.g. ``parsed_query.v1``
            system_prompt: System prompt
            user_prompt: User prompt
            temperature: Override default temperature

        Returns:
            LLMResponse with the validated payload

        Raises:
            LLMError: Unknown schema, provider failure, or invalid payload
        """
        schema = get_response_schema(schema_name)

        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature if temperature is None else temperature,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": schema_name.replace(".", "_"),
                    "schema": schema.model_json_schema(),
                },
            },
        }

        client = self._get_client()
        try:
            response = await client.post("/chat/completions", json=body)
        except httpx.TimeoutException as e:
            raise LLMError("LLM request timed out", {"model": self.model}) from e
        except httpx.TransportError as e:
            raise LLMError(f"LLM provider unreachable: {e}", {"model": self.model}) from e

        if response.status_code == 429:
            raise LLMError("LLM quota exceeded", code=ErrorCode.LLM_RATE_LIMITED)
        if response.status_code in (401, 403):
            raise LLMError("LLM authentication failed", code=ErrorCode.LLM_AUTH_FAILED)
        if response.status_code != 200:
            logger.error("LLM error: %s %s", response.status_code, response.text)
            raise LLMError(f"LLM API error: {response.status_code}")

        data = response.json()
        content = self._extract_content(data)
        try:
            payload = schema.model_validate(self._load_json(content))
        except (ValidationError, ValueError) as e:
            raise LLMError(
                "LLM response does not match schema",
                {"schema": schema_name, "error": str(e)[:500]},
                code=ErrorCode.LLM_INVALID_RESPONSE,
            ) from e

        usage = data.get("usage") or {}
        return LLMResponse(
            payload=payload,
            model=data.get("model", self.model),
            schema_name=schema_name,
            tokens_used=usage.get("total_tokens"),
        )

    @staticmethod
    def _extract_content(data: dict[str, Any]) -> str:
        """Pull the message text out of a chat completion."""
        choices = data.get("choices") or []
        if not choices:
            raise LLMError("LLM returned no choices", code=ErrorCode.LLM_INVALID_RESPONSE)
        content = (choices[0].get("message") or {}).get("content")
        if isinstance(content, dict):
            # Some providers return the parsed object directly
            return json.dumps(content)
        if not isinstance(content, str) or not content.strip():
            raise LLMError("LLM returned empty content", code=ErrorCode.LLM_INVALID_RESPONSE)
        return content

    @staticmethod
    def _load_json(text: str) -> Any:
        """Parse JSON, tolerating prose or code fences around the object."""
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            start = text.find("{")
            end = text.rfind("}") + 1
            if start >= 0 and end > start:
                return json.loads(text[start:end])
            raise
