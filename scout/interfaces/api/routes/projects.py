"""
Project Routes - Project-scoped search and browse listings.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from scout.domains.search import (
    BrowseOptions,
    BrowseResponse,
    ProjectSearchEngine,
    ProjectSearchOptions,
    ProjectSearchResponse,
    SortOrder,
)
from scout.interfaces.api.deps import get_project_search

router = APIRouter()


class ProjectSearchRequest(ProjectSearchOptions):
    """Project search request body."""

    query: str = Field(default="", max_length=500)


@router.post("/search", response_model=ProjectSearchResponse)
async def search_projects(
    request: ProjectSearchRequest,
    projects: ProjectSearchEngine = Depends(get_project_search),
) -> ProjectSearchResponse:
    """
    Search projects.

    - **sort**: relevance, recent, featured, name or random
    - **threshold**: Minimum vector similarity (default 0.4)
    """
    options = ProjectSearchOptions(**request.model_dump(exclude={"query"}))
    return await projects.search_projects(request.query, options)


@router.get("", response_model=BrowseResponse)
async def browse_projects(
    page: int = Query(1, ge=1),
    limit: int = Query(24, ge=1, le=100),
    sort: SortOrder = Query(SortOrder.RECENT),
    projects: ProjectSearchEngine = Depends(get_project_search),
) -> BrowseResponse:
    """List active projects."""
    return await projects.browse_projects(BrowseOptions(page=page, limit=limit, sort=sort))
