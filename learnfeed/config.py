"""
Configuration settings for the learnfeed pipeline.

Uses Pydantic Settings for environment variable management with .env file support.
Every service accepts explicit overrides and falls back to these values.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # AI Integration (proposition decomposition)
    # ========================================
    gemini_api_key: str | None = Field(
        default=None,
        description="Google Generative AI (Gemini) API key",
    )
    ai_model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model used to rewrite prose into propositions",
    )
    proposition_temperature: float = Field(
        default=0.1,
        description="Sampling temperature for decomposition (low for consistent output)",
    )
    proposition_max_content_length: int = Field(
        default=30000,
        description="Characters per decomposition request before sub-chunking",
    )

    # ========================================
    # Semantic Embeddings
    # ========================================
    embedding_provider: Literal["sentence-transformers", "gemini"] = Field(
        default="sentence-transformers",
        description="Embedding backend used for boundary detection",
    )
    embedding_model: str = Field(
        default="all-MiniLM-L6-v2",
        description="Sentence transformer model for local embeddings (384-dim)",
    )
    gemini_embedding_model: str = Field(
        default="models/text-embedding-004",
        description="Gemini embedding model identifier",
    )
    embedding_batch_size: int = Field(
        default=100,
        description="Texts per embedding request",
    )

    # ========================================
    # Boundary Detection Thresholds
    # ========================================
    boundary_std_dev_multiplier: float = Field(
        default=1.0,
        description="Boundary when similarity < mean - k * stddev",
    )
    boundary_min_similarity_drop: float = Field(
        default=0.1,
        description="Boundary when similarity < mean - drop (stricter of the two wins)",
    )

    # ========================================
    # Chunking & Segmentation
    # ========================================
    chunk_id_prefix: str = Field(
        default="chunk",
        description="Prefix for text chunk ids",
    )
    segment_id_prefix: str = Field(
        default="segment",
        description="Prefix for video segment ids",
    )
    video_target_duration_sec: float = Field(
        default=360,
        description="Target video segment length (6 minutes, informational)",
    )
    video_min_duration_sec: float = Field(
        default=240,
        description="Segments shorter than this are merged into a neighbour",
    )
    video_max_duration_sec: float = Field(
        default=900,
        description="Segments longer than this are split (15 minute hard ceiling)",
    )

    # ========================================
    # Feed Assembly
    # ========================================
    feed_default_performance: float = Field(
        default=85,
        description="Performance percentage used when the caller supplies none",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def has_ai_configured(self) -> bool:
        """Check if the Gemini provider is configured."""
        return bool(self.gemini_api_key and self.gemini_api_key.strip())

    def get_segmentation_config(self) -> dict[str, Any]:
        """Get video segmentation configuration as a dictionary."""
        return {
            "target_duration_sec": self.video_target_duration_sec,
            "min_duration_sec": self.video_min_duration_sec,
            "max_duration_sec": self.video_max_duration_sec,
            "segment_id_prefix": self.segment_id_prefix,
        }

    def get_semantic_config(self) -> dict[str, Any]:
        """Get semantic embedding configuration as a dictionary."""
        return {
            "provider": self.embedding_provider,
            "model": (
                self.gemini_embedding_model
                if self.embedding_provider == "gemini"
                else self.embedding_model
            ),
            "batch_size": self.embedding_batch_size,
            "std_dev_multiplier": self.boundary_std_dev_multiplier,
            "min_similarity_drop": self.boundary_min_similarity_drop,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
