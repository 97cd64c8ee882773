"""
Scout - Hybrid search for a directory of people and the projects they publish.

Example:
    >>> from scout.domains.search import HybridSearchEngine
    >>> engine = HybridSearchEngine(repository, parser, embedder)
    >>> response = await engine.search("AI developers in Berlin")
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
