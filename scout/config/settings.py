"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Paths
    data_dir: Path = Path("data")
    db_path: Path = Path("data/scout.db")

    # Embedding provider (OpenAI-compatible /embeddings endpoint)
    embedding_url: str = "http://localhost:8787/v1"
    embedding_api_key: str = ""
    embedding_model: str = "@cf/baai/bge-m3"
    embedding_dimension: int = 1024
    embedding_batch_size: int = 64
    embedding_max_attempts: int = 3
    embedding_backoff_seconds: float = 0.5
    embedding_timeout_seconds: float = 15.0

    # Structured-output LLM (query parsing)
    llm_url: str = "http://localhost:8787/v1"
    llm_api_key: str = ""
    llm_model: str = "@cf/meta/llama-3.1-8b-instruct"
    llm_temperature: float = 0.1
    llm_timeout_seconds: float = 8.0

    # Reranker (cross-encoder)
    rerank_url: str = "http://localhost:8787/v1"
    rerank_api_key: str = ""
    rerank_model: str = "@cf/baai/bge-reranker-base"
    rerank_enabled: bool = True
    rerank_timeout_seconds: float = 5.0
    rerank_window: int = 20
    rerank_skip_on_explicit_matches: bool = False

    # Search tuning
    vector_index_type: Literal["Flat", "HNSW"] = "Flat"
    vector_weight: float = 0.6
    keyword_weight: float = 0.4
    profile_similarity_threshold: float = 0.3
    project_similarity_threshold: float = 0.4
    featured_boost: float = 0.05
    availability_boost: float = 0.05
    search_max_results: int = 48
    search_page_size: int = 24
    retrieval_timeout_seconds: float = 5.0
    # What to do when the query embedding cannot be produced
    embedding_failure_mode: Literal["keyword_only", "browse"] = "keyword_only"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    api_rate_limit_rpm: int = 60
    admin_token: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
