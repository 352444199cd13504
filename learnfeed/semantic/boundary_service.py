"""
Semantic Boundary Service - find topic shifts in an ordered list of text units.

Each unit is embedded, consecutive pairs are compared by cosine similarity, and a
pair whose similarity falls into a "valley" marks a boundary before the second unit.

A valley is a similarity below

    threshold = min(mean - k * stddev, mean - min_drop)

i.e. the stricter of a statistical outlier rule and an absolute drop rule, over the
population statistics of the similarity series.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

import numpy as np
from loguru import logger

from learnfeed.config import get_settings
from learnfeed.errors import ErrorCode, SemanticBoundaryError
from learnfeed.semantic.embedding_service import EmbeddingService, create_embedding_service


def cosine_similarity(a, b) -> float:
    """
    Calculate cosine similarity between two vectors.

    Args:
        a: First vector (sequence or np.ndarray)
        b: Second vector

    Returns:
        Similarity between -1 and 1; exactly 0.0 when either vector has zero magnitude.

    Raises:
        SemanticBoundaryError: VALIDATION_ERROR for mismatched lengths or empty vectors
    """
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    if vec_a.shape != vec_b.shape:
        raise SemanticBoundaryError(
            "Vectors must have the same length",
            ErrorCode.VALIDATION_ERROR,
            {"length_a": len(vec_a), "length_b": len(vec_b)},
        )
    if vec_a.size == 0:
        raise SemanticBoundaryError("Vectors cannot be empty", ErrorCode.VALIDATION_ERROR)

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / (norm_a * norm_b))


def detect_boundaries(
    similarities: list[float],
    std_dev_multiplier: float,
    min_similarity_drop: float,
) -> tuple[list[int], float, float, float]:
    """
    Classify similarity valleys as boundaries.

    Returns:
        (boundaries, mean, stddev, threshold); boundary ``i + 1`` for each pair ``i``
        below threshold, ascending.
    """
    if not similarities:
        return [], 0.0, 0.0, 0.0

    series = np.asarray(similarities, dtype=np.float64)
    mean = float(series.mean())
    std_dev = float(series.std())  # population (ddof=0)

    threshold = min(mean - std_dev_multiplier * std_dev, mean - min_similarity_drop)
    boundaries = [i + 1 for i, sim in enumerate(similarities) if sim < threshold]

    return boundaries, mean, std_dev, threshold


def boundary_ranges(boundaries: list[int], total: int) -> list[tuple[int, int]]:
    """
    Turn boundary indices into contiguous half-open ranges covering ``[0, total)``.

    Boundaries outside ``(0, total)`` are dropped, duplicates collapse, order is sorted.

    Example:
        >>> boundary_ranges([3, 1, 3, 0, 9], 5)
        [(0, 1), (1, 3), (3, 5)]
    """
    if total <= 0:
        return []

    cuts = sorted({b for b in boundaries if 0 < b < total})
    edges = [0, *cuts, total]
    return list(zip(edges, edges[1:]))


@dataclass
class BoundaryResult:
    """
    Boundary detection result with statistics.

    ``boundaries`` index into the valid (non-blank) units; ``unit_positions[j]`` is the
    input position of valid unit ``j``.
    """

    boundaries: list[int] = field(default_factory=list)
    similarities: list[float] = field(default_factory=list)
    mean_similarity: float = 0.0
    std_dev_similarity: float = 0.0
    threshold: float = 0.0
    unit_positions: list[int] = field(default_factory=list)

    @property
    def input_boundaries(self) -> list[int]:
        """Boundaries translated back to positions in the caller's input list."""
        return [self.unit_positions[b] for b in self.boundaries]

    def to_dict(self) -> dict:
        return {
            "boundaries": self.boundaries,
            "input_boundaries": self.input_boundaries,
            "similarities": self.similarities,
            "mean_similarity": self.mean_similarity,
            "std_dev_similarity": self.std_dev_similarity,
            "threshold": self.threshold,
        }


class SemanticBoundaryService:
    """
    Detect topic-shift boundaries with embedding similarity statistics.

    Example:
        >>> service = SemanticBoundaryService()
        >>> service.find_boundaries([
        ...     "The mitochondria produces ATP.",
        ...     "ATP powers cellular processes.",
        ...     "The French Revolution began in 1789.",
        ... ])
        [2]
    """

    def __init__(
        self,
        embedding_service: EmbeddingService | None = None,
        std_dev_multiplier: float | None = None,
        min_similarity_drop: float | None = None,
        batch_size: int | None = None,
    ):
        """
        Initialize the boundary service.

        Args:
            embedding_service: Provider to embed units (default: from settings)
            std_dev_multiplier: k in ``mean - k * stddev``
            min_similarity_drop: Absolute drop below the mean
            batch_size: Texts per embedding request

        Raises:
            SemanticBoundaryError: API_KEY_MISSING when the configured provider lacks
                credentials, VALIDATION_ERROR for a non-positive batch size
        """
        settings = get_settings()
        self.std_dev_multiplier = (
            std_dev_multiplier
            if std_dev_multiplier is not None
            else settings.boundary_std_dev_multiplier
        )
        self.min_similarity_drop = (
            min_similarity_drop
            if min_similarity_drop is not None
            else settings.boundary_min_similarity_drop
        )
        self.batch_size = batch_size if batch_size is not None else settings.embedding_batch_size

        if self.batch_size <= 0:
            raise SemanticBoundaryError(
                f"Batch size must be positive, got {self.batch_size}",
                ErrorCode.VALIDATION_ERROR,
            )

        self.embedding_service = embedding_service or create_embedding_service()

    def find_boundaries(self, units: list[str]) -> list[int]:
        """
        Find topic-shift boundaries.

        Args:
            units: Ordered text units (blank entries are ignored)

        Returns:
            Ascending input positions where a new topic starts
        """
        return self.find_boundaries_with_metadata(units).input_boundaries

    def find_boundaries_with_metadata(self, units: list[str]) -> BoundaryResult:
        """
        Find boundaries along with the similarity series and threshold used.

        Fewer than two non-blank units yields an empty, zeroed result without any
        provider call.
        """
        unit_positions = [i for i, unit in enumerate(units or []) if unit and unit.strip()]

        if len(unit_positions) < 2:
            if units:
                logger.debug(
                    f"Boundary detection skipped: {len(unit_positions)} non-blank unit(s)"
                )
            return BoundaryResult(unit_positions=unit_positions)

        valid_units = [units[i] for i in unit_positions]
        start = time.perf_counter()

        embeddings = self._embed_all(valid_units)
        similarities = [
            cosine_similarity(embeddings[i], embeddings[i + 1])
            for i in range(len(embeddings) - 1)
        ]
        boundaries, mean, std_dev, threshold = detect_boundaries(
            similarities, self.std_dev_multiplier, self.min_similarity_drop
        )

        elapsed = time.perf_counter() - start
        logger.info(
            f"Found {len(boundaries)} boundaries in {len(valid_units)} units "
            f"(mean={mean:.3f}, std={std_dev:.3f}, threshold={threshold:.3f}, {elapsed:.2f}s)"
        )

        return BoundaryResult(
            boundaries=boundaries,
            similarities=similarities,
            mean_similarity=mean,
            std_dev_similarity=std_dev,
            threshold=threshold,
            unit_positions=unit_positions,
        )

    def _embed_all(self, texts: list[str]) -> list[np.ndarray]:
        """Embed texts in sequential batches, preserving input order."""
        embeddings: list[np.ndarray] = []

        for offset in range(0, len(texts), self.batch_size):
            batch = texts[offset : offset + self.batch_size]
            logger.debug(f"Embedding batch {offset // self.batch_size + 1} ({len(batch)} texts)")

            try:
                results = self.embedding_service.generate_embeddings_batch(batch)
            except SemanticBoundaryError:
                raise
            except Exception as e:
                logger.error(f"Embedding provider failed: {e}")
                raise SemanticBoundaryError.wrap(
                    e, ErrorCode.EMBEDDING_FAILED, "Failed to generate embeddings"
                ) from e

            if len(results) != len(batch):
                raise SemanticBoundaryError(
                    f"Failed to generate embeddings: expected {len(batch)} vectors, got {len(results)}",
                    ErrorCode.EMBEDDING_FAILED,
                    {"expected": len(batch), "received": len(results)},
                )

            embeddings.extend(r.embedding for r in sorted(results, key=lambda r: r.index))

        return embeddings
