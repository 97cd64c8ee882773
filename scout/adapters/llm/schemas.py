"""
Response Schemas - Static, versioned registry of structured-output schemas.

Schemas are pydantic models selected by name. Callers can only pick one of the
registered keys; schema text is never built or evaluated at runtime.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from scout.config import ErrorCode, LLMError

__all__ = [
    "AvailabilityPayload",
    "ParsedQueryPayload",
    "RESPONSE_SCHEMAS",
    "StrictFiltersPayload",
    "get_response_schema",
]


class AvailabilityPayload(BaseModel):
    """Availability flags mentioned in the query."""

    hire: bool | None = Field(default=None, description="Looking for people available for hire")
    collab: bool | None = Field(
        default=None, description="Looking for people open to collaboration"
    )
    hiring: bool | None = Field(default=None, description="Looking for people who are hiring")


class StrictFiltersPayload(BaseModel):
    """Hard requirements from "only", "exclusively", "just" or "must be" phrases."""

    locations: list[str] = Field(
        default_factory=list, description="Locations that MUST match ('only in X')"
    )
    skills: list[str] = Field(
        default_factory=list, description="Skills that MUST match ('only Python developers')"
    )
    companies: list[str] = Field(
        default_factory=list, description="Companies that MUST match ('only at X')"
    )
    availability: AvailabilityPayload = Field(
        default_factory=AvailabilityPayload, description="Availability that MUST match"
    )


class ParsedQueryPayload(BaseModel):
    """LLM output for directory query parsing (v1)."""

    intent: Literal["profile_search", "project_search", "mixed"] = Field(
        description="Whether the user looks for people, projects, or both"
    )
    companies: list[str] = Field(
        default_factory=list, description="Company names mentioned in the query"
    )
    locations: list[str] = Field(
        default_factory=list, description="Cities, countries, regions, or 'remote'"
    )
    skills: list[str] = Field(
        default_factory=list,
        description="Technical skills, programming languages, frameworks, tools",
    )
    interests: list[str] = Field(
        default_factory=list, description="Personal interests, hobbies, activities"
    )
    availability: AvailabilityPayload = Field(default_factory=AvailabilityPayload)
    strict_filters: StrictFiltersPayload = Field(
        default_factory=StrictFiltersPayload,
        description="Strict filters that exclude non-matching results",
    )
    freeform_query: str = Field(
        default="", description="Remaining query text after entity extraction"
    )
    confidence: float = Field(description="Confidence in the parsing (0-1)")


RESPONSE_SCHEMAS: dict[str, type[BaseModel]] = {
    "parsed_query.v1": ParsedQueryPayload,
}


def get_response_schema(name: str) -> type[BaseModel]:
    """
    Look up a registered response schema.

    Raises:
        LLMError: Unknown schema name
    """
    try:
        return RESPONSE_SCHEMAS[name]
    except KeyError:
        raise LLMError(
            f"Unknown response schema: {name}",
            {"available": sorted(RESPONSE_SCHEMAS)},
            code=ErrorCode.LLM_UNKNOWN_SCHEMA,
        ) from None
