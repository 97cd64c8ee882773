"""
Indexing Domain - Out-of-band embedding recomputation.

This domain handles:
- Embedding text for profiles and projects
- Content-hash change detection
- Batched reindexing with orphan cleanup and audit logging
"""

from .content import build_profile_content, build_project_content, content_hash
from .contracts import EmbeddingStore, Indexer
from .indexer import EmbeddingIndexer
from .models import IndexedEntity, IndexingReport, IndexOutcome

__all__ = [
    # Contracts
    "EmbeddingStore",
    "Indexer",
    # Models
    "IndexOutcome",
    "IndexedEntity",
    "IndexingReport",
    # Implementation
    "EmbeddingIndexer",
    "build_profile_content",
    "build_project_content",
    "content_hash",
]
