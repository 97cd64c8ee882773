"""
Query Parser - Natural language query understanding.

One structured-output LLM call extracts intent and entities. When the LLM
is unavailable, slow, or returns something unusable, a deterministic
vocabulary heuristic takes over. ``parse`` never raises.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING

from scout.config import QueryParseError

from .models import AvailabilityPreference, Intent, ParsedQuery, StrictFilters
from .vocabulary import (
    KNOWN_COMPANIES,
    KNOWN_INTERESTS,
    KNOWN_LOCATIONS,
    KNOWN_SKILLS,
    find_phrases,
    phrase_pattern,
    tokenize,
)

if TYPE_CHECKING:
    from scout.adapters.llm import LLMService

logger = logging.getLogger(__name__)

__all__ = [
    "LLMQueryParser",
    "heuristic_parse",
    "build_keyword_terms",
    "HEURISTIC_CONFIDENCE",
    "PARSED_QUERY_SCHEMA",
]

PARSED_QUERY_SCHEMA = "parsed_query.v1"
HEURISTIC_CONFIDENCE = 0.3

_HIRE_RE = re.compile(r"\b(for hire|available|freelanc\w*|contract(or|ing)?|open to work)\b")
_COLLAB_RE = re.compile(r"\b(collab\w*|co-?founder\w*|partner\w*|side project)\b")
_HIRING_RE = re.compile(r"\b(hiring|recruit\w*|job openings?)\b")
_STRICT_RE = re.compile(r"\b(only|exclusively|just|must(?:\s+be)?)\b")
# Words allowed between a strict marker and the requirement ("only in Berlin")
_STRICT_GAP_WORDS = 2

SYSTEM_PROMPT = f"""You are a search query parser for a directory of developers and their projects.
Extract structured information from natural language search queries.
Be precise and only extract entities that are clearly mentioned or strongly implied.

- companies: specific company names
- locations: cities, countries, regions, or "remote"
- skills: programming languages, frameworks, tools, technologies
- interests: hobbies, personal interests, activities
- availability: set hire/collab/hiring only when explicitly mentioned
- strict_filters: requirements introduced by "only", "exclusively", "just" or "must be".
  They exclude every non-matching result, so fill them only for such phrases.
- intent: "profile_search" for people, "project_search" for projects, "mixed" when unclear
- freeform_query: remaining semantic content after entity extraction
- confidence: your certainty in this parse, between 0 and 1

Examples:
- "AI developers in Berlin" -> locations ["Berlin"], skills ["AI"], intent "profile_search"
- "rust cli tools" -> skills ["Rust"], intent "project_search"
- "designers available for hire who like music" -> interests ["music"], availability.hire true
- "only in Amsterdam" -> locations ["Amsterdam"], strict_filters.locations ["Amsterdam"]
- "only Next.js experts who like music" -> skills ["Next.js"], interests ["music"],
  strict_filters.skills ["Next.js"]
- "must be available for hire" -> availability.hire true, strict_filters.availability.hire true

Common entities:
Companies: {", ".join(KNOWN_COMPANIES[:15])}
Skills: {", ".join(KNOWN_SKILLS[:15])}
Locations: {", ".join(KNOWN_LOCATIONS[:15])}
Interests: {", ".join(KNOWN_INTERESTS[:15])}"""


def _strictly_required(pattern: re.Pattern[str], lowered: str, marker_ends: list[int]) -> bool:
    """Whether a match of ``pattern`` closely follows a strict marker."""
    for match in pattern.finditer(lowered):
        for end in marker_ends:
            gap = lowered[end : match.start()]
            if end <= match.start() and len(gap.split()) <= _STRICT_GAP_WORDS:
                return True
    return False


def _heuristic_strict_filters(
    lowered: str,
    skills: list[str],
    locations: list[str],
    companies: list[str],
) -> StrictFilters:
    marker_ends = [m.end() for m in _STRICT_RE.finditer(lowered)]
    if not marker_ends:
        return StrictFilters()

    def strict(phrases: list[str]) -> list[str]:
        return [p for p in phrases if _strictly_required(phrase_pattern(p), lowered, marker_ends)]

    return StrictFilters(
        skills=strict(skills),
        locations=strict(locations),
        companies=strict(companies),
        availability=AvailabilityPreference(
            hire=True if _strictly_required(_HIRE_RE, lowered, marker_ends) else None,
            collab=True if _strictly_required(_COLLAB_RE, lowered, marker_ends) else None,
            hiring=True if _strictly_required(_HIRING_RE, lowered, marker_ends) else None,
        ),
    )


def heuristic_parse(query: str) -> ParsedQuery:
    """
    Deterministic fallback parse using the known vocabularies.

    Args:
        query: Non-empty query text

    Returns:
        ParsedQuery with intent "mixed" (or "browse" for blank input) and
        HEURISTIC_CONFIDENCE
    """
    text = query.strip()
    if not text:
        return ParsedQuery.browse()

    lowered = text.lower()
    availability = AvailabilityPreference(
        hire=True if _HIRE_RE.search(lowered) else None,
        collab=True if _COLLAB_RE.search(lowered) else None,
        hiring=True if _HIRING_RE.search(lowered) else None,
    )
    skills = find_phrases(text, KNOWN_SKILLS)
    locations = find_phrases(text, KNOWN_LOCATIONS)
    companies = find_phrases(text, KNOWN_COMPANIES)
    return ParsedQuery(
        intent=Intent.MIXED,
        skills=skills,
        locations=locations,
        companies=companies,
        interests=find_phrases(text, KNOWN_INTERESTS),
        availability=availability,
        strict_filters=_heuristic_strict_filters(lowered, skills, locations, companies),
        confidence=HEURISTIC_CONFIDENCE,
        freeform_query=text,
        original_query=query,
    )


def build_keyword_terms(parsed: ParsedQuery, query: str) -> list[str]:
    """Union of parsed entities and raw query tokens, lowercased, in order."""
    terms: list[str] = []
    for term in [e.lower() for e in parsed.entities] + tokenize(query):
        if term not in terms:
            terms.append(term)
    return terms


class LLMQueryParser:
    """
    Query parser backed by a structured-output LLM.

    Example:
        >>> parser = LLMQueryParser(LLMService.from_settings())
        >>> parsed = await parser.parse("AI developers in Berlin")
        >>> parsed.locations
        ['Berlin']
    """

    def __init__(
        self,
        llm: LLMService | None = None,
        timeout: float = 8.0,
        temperature: float = 0.1,
    ) -> None:
        """
        Initialize parser.

        Args:
            llm: Structured-output LLM; None means heuristic parsing only
            timeout: Seconds to wait for the LLM before falling back
            temperature: Sampling temperature for the LLM call
        """
        self._llm = llm
        self._timeout = timeout
        self._temperature = temperature

    async def parse(self, query: str) -> ParsedQuery:
        """
        Parse a free-text query.

        Args:
            query: Raw query text

        Returns:
            ParsedQuery. Blank input yields intent "browse" with confidence 0
            and no external call.
        """
        text = (query or "").strip()
        if not text:
            return ParsedQuery.browse(query or "")

        if self._llm is None:
            return heuristic_parse(text)

        try:
            return await asyncio.wait_for(self._parse_with_llm(text), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Query parse timed out after %.1fs, using heuristic", self._timeout)
        except Exception as e:
            logger.warning("Query parse failed, using heuristic: %s", e)
        return heuristic_parse(text)

    async def _parse_with_llm(self, text: str) -> ParsedQuery:
        assert self._llm is not None
        response = await self._llm.generate_structured(
            PARSED_QUERY_SCHEMA,
            system_prompt=SYSTEM_PROMPT,
            user_prompt=(
                f'Parse this search query: "{text}"\n\n'
                "Be conservative: only extract entities that are clearly present."
            ),
            temperature=self._temperature,
        )
        payload = response.payload
        try:
            parsed = ParsedQuery(
                intent=Intent(payload.intent),
                locations=payload.locations,
                skills=payload.skills,
                interests=payload.interests,
                companies=payload.companies,
                availability=AvailabilityPreference(**payload.availability.model_dump()),
                strict_filters=StrictFilters(
                    locations=payload.strict_filters.locations,
                    skills=payload.strict_filters.skills,
                    companies=payload.strict_filters.companies,
                    availability=AvailabilityPreference(
                        **payload.strict_filters.availability.model_dump()
                    ),
                ),
                confidence=min(max(float(payload.confidence), 0.0), 1.0),
                freeform_query=payload.freeform_query or text,
                original_query=text,
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise QueryParseError("LLM payload could not be converted", {"error": str(e)}) from e

        logger.debug(
            "Query parsed: '%s' -> intent=%s skills=%s locations=%s confidence=%.2f",
            text[:50],
            parsed.intent.value,
            parsed.skills,
            parsed.locations,
            parsed.confidence,
        )
        return parsed
