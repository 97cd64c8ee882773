"""
Project Search - Project-scoped variant of the hybrid pipeline.

Uses a higher similarity threshold and the extended project sorts
(featured, random).
"""

from __future__ import annotations

import logging

from scout.config import StorageError

from .hybrid_search import HybridSearchEngine
from .models import (
    BrowseOptions,
    BrowseResponse,
    ProjectSearchOptions,
    ProjectSearchResponse,
    SearchOptions,
)

logger = logging.getLogger(__name__)

__all__ = ["ProjectSearchEngine"]


class ProjectSearchEngine:
    """
    Search and browse projects.

    Example:
        >>> projects = ProjectSearchEngine(engine)
        >>> response = await projects.search_projects("rust cli tools")
        >>> listing = await projects.browse_projects(BrowseOptions(sort="featured"))
    """

    def __init__(self, engine: HybridSearchEngine) -> None:
        self._engine = engine

    async def search_projects(
        self,
        query: str,
        options: ProjectSearchOptions | None = None,
    ) -> ProjectSearchResponse:
        """
        Search projects.

        Args:
            query: Free-text query; empty or sort "random" lists projects instead
            options: Pagination, sort, threshold and reranking

        Returns:
            Results, total count, timing and the mode that produced them
        """
        options = options or ProjectSearchOptions()
        response = await self._engine.search(
            query,
            SearchOptions(
                max_results=options.max_results,
                page=options.page,
                limit=options.limit,
                sort=options.sort,
                entity_types=("project",),
                enable_reranking=options.enable_reranking,
                threshold=options.threshold,
            ),
        )
        return ProjectSearchResponse(
            results=response.results,
            total_count=response.total_count,
            timing=response.timing,
            mode=response.mode,
            page=response.page,
            limit=response.limit,
        )

    async def browse_projects(self, options: BrowseOptions | None = None) -> BrowseResponse:
        """
        List active projects.

        Args:
            options: Pagination and sort (recent, name, featured, random)

        Returns:
            Page of projects and the total active count
        """
        options = options or BrowseOptions()
        try:
            items, total = await self._engine.browse(
                ("project",), options.sort, options.limit, options.offset
            )
        except StorageError as e:
            logger.error("Project listing failed: %s", e.message)
            items, total = [], 0

        return BrowseResponse(
            results=items,
            total_count=max(total, len(items)),
            page=options.page,
            limit=options.limit,
        )
