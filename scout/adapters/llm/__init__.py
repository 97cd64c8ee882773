"""
LLM Adapter - Structured-output language model client and response schemas.
"""

from .schemas import RESPONSE_SCHEMAS, ParsedQueryPayload, get_response_schema
from .service import LLMResponse, LLMService

__all__ = [
    "LLMService",
    "LLMResponse",
    "ParsedQueryPayload",
    "RESPONSE_SCHEMAS",
    "get_response_schema",
]
