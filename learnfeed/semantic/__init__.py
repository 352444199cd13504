"""
Semantic layer: embeddings and topic-boundary detection.
"""

from learnfeed.semantic.boundary_service import (
    BoundaryResult,
    SemanticBoundaryService,
    boundary_ranges,
    cosine_similarity,
)
from learnfeed.semantic.embedding_service import (
    EmbeddingResult,
    EmbeddingService,
    GeminiEmbeddingService,
    LocalEmbeddingService,
    create_embedding_service,
)

__all__ = [
    "BoundaryResult",
    "EmbeddingResult",
    "EmbeddingService",
    "GeminiEmbeddingService",
    "LocalEmbeddingService",
    "SemanticBoundaryService",
    "boundary_ranges",
    "cosine_similarity",
    "create_embedding_service",
]
