"""
Text Chunking Pipeline - article text to semantically coherent chunks.

Flow:
1. Decompose raw text into propositions (PropositionChunkingService)
2. Find topic shifts between consecutive propositions (SemanticBoundaryService)
3. Group the propositions between boundaries into TextChunk records

Chunks are contiguous and non-overlapping; concatenating their propositions in
order gives back the full proposition list exactly once.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

from loguru import logger

from learnfeed.config import get_settings
from learnfeed.errors import ErrorCode, TextChunkingPipelineError
from learnfeed.processing.proposition_service import (
    PropositionChunkingService,
    PropositionDecomposer,
)
from learnfeed.semantic.boundary_service import SemanticBoundaryService, boundary_ranges


class BoundaryFinder(Protocol):
    def find_boundaries(self, units: list[str]) -> list[int]:
        ...


@dataclass(frozen=True)
class TextChunk:
    """
    A run of propositions between two topic boundaries.

    Attributes:
        id: Chunk id (``chunk-0``, ``chunk-1``, ...)
        text: Propositions joined by a single space
        propositions: The propositions in this chunk
        start_index: First proposition index (inclusive)
        end_index: Last proposition index (exclusive)
    """

    id: str
    text: str
    propositions: list[str] = field(default_factory=list)
    start_index: int = 0
    end_index: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TextChunk:
        propositions = list(data.get("propositions") or [])
        return cls(
            id=data["id"],
            text=data.get("text") or " ".join(propositions),
            propositions=propositions,
            start_index=data.get("start_index", 0),
            end_index=data.get("end_index", len(propositions)),
        )


def group_propositions(
    propositions: list[str],
    boundaries: list[int],
    chunk_id_prefix: str = "chunk",
) -> list[TextChunk]:
    """
    Materialize one TextChunk per range between boundaries.

    Invalid boundaries (<= 0 or >= len) are dropped, duplicates collapse and
    unsorted input is sorted.
    """
    chunks: list[TextChunk] = []
    for start, end in boundary_ranges(boundaries, len(propositions)):
        chunk_props = propositions[start:end]
        chunks.append(
            TextChunk(
                id=f"{chunk_id_prefix}-{len(chunks)}",
                text=" ".join(chunk_props),
                propositions=chunk_props,
                start_index=start,
                end_index=end,
            )
        )
    return chunks


class TextChunkingPipeline:
    """
    Turn raw article text into TextChunks.

    Collaborators are injectable for tests; by default both are built from settings,
    and a construction failure (typically a missing API key) surfaces as
    API_KEY_MISSING.

    Example:
        >>> pipeline = TextChunkingPipeline()
        >>> chunks = pipeline.chunk_text(article_text)
        >>> [c.id for c in chunks]
        ['chunk-0', 'chunk-1', 'chunk-2']
    """

    def __init__(
        self,
        proposition_service: PropositionDecomposer | None = None,
        boundary_service: BoundaryFinder | None = None,
        chunk_id_prefix: str | None = None,
    ):
        self.chunk_id_prefix = chunk_id_prefix or get_settings().chunk_id_prefix

        try:
            self.proposition_service = proposition_service or PropositionChunkingService()
        except Exception as e:
            raise TextChunkingPipelineError.wrap(
                e, ErrorCode.API_KEY_MISSING, "Failed to initialize proposition service"
            ) from e

        try:
            self.boundary_service = boundary_service or SemanticBoundaryService()
        except Exception as e:
            raise TextChunkingPipelineError.wrap(
                e, ErrorCode.API_KEY_MISSING, "Failed to initialize boundary service"
            ) from e

    def chunk_text(self, text: str) -> list[TextChunk]:
        """
        Process raw text into semantically coherent chunks.

        Args:
            text: Raw text to process

        Returns:
            Chunks in source order; empty for blank input, and a single chunk when
            fewer than two propositions come back

        Raises:
            TextChunkingPipelineError: DECOMPOSITION_FAILED or BOUNDARY_DETECTION_FAILED,
                with the lower-level error in ``details["cause"]``
        """
        if not text or not text.strip():
            return []

        start = time.perf_counter()

        try:
            propositions = self.proposition_service.decompose_into_propositions(text)
        except Exception as e:
            logger.error(f"Proposition decomposition failed: {e}")
            raise TextChunkingPipelineError.wrap(
                e, ErrorCode.DECOMPOSITION_FAILED, "Proposition decomposition failed"
            ) from e

        if len(propositions) <= 1:
            if not propositions:
                logger.warning("No propositions extracted; emitting one empty chunk")
            return [self._single_chunk(propositions)]

        try:
            boundaries = self.boundary_service.find_boundaries(propositions)
        except Exception as e:
            logger.error(f"Boundary detection failed: {e}")
            raise TextChunkingPipelineError.wrap(
                e, ErrorCode.BOUNDARY_DETECTION_FAILED, "Boundary detection failed"
            ) from e

        chunks = group_propositions(propositions, boundaries, self.chunk_id_prefix)

        elapsed = time.perf_counter() - start
        logger.info(
            f"Chunked {len(propositions)} propositions into {len(chunks)} chunks ({elapsed:.2f}s)"
        )
        return chunks

    def _single_chunk(self, propositions: list[str]) -> TextChunk:
        """One chunk spanning the whole (zero- or one-element) sequence."""
        return TextChunk(
            id=f"{self.chunk_id_prefix}-0",
            text=" ".join(propositions),
            propositions=list(propositions),
            start_index=0,
            end_index=len(propositions),
        )
