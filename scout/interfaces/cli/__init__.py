"""
CLI Interface - Command-line tools for Scout.

Provides commands for:
- Search and browse queries
- Embedding diagnostics
- Data import and embedding reindexing
- System management
"""

from .main import app, main

__all__ = ["app", "main"]
