"""
Health Routes - System health and status endpoints.
"""

from typing import Any

from fastapi import APIRouter

from scout import __version__

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "scout"}


@router.get("/api")
async def api_info() -> dict[str, Any]:
    """API info endpoint."""
    return {
        "name": "Scout API",
        "version": __version__,
        "description": "Hybrid search over a directory of people and projects",
        "docs": "/docs",
    }
