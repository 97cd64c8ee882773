"""
API Routes.
"""

from . import embeddings, health, projects, search

__all__ = ["health", "search", "projects", "embeddings"]
