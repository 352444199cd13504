"""
Processing layer: propositions, text chunks and video segments.
"""

from learnfeed.processing.proposition_service import (
    PropositionChunkingService,
    chunk_content,
    validate_propositions,
)
from learnfeed.processing.text_chunking_pipeline import TextChunk, TextChunkingPipeline
from learnfeed.processing.video_segmentation import (
    TranscriptSegment,
    VideoSegment,
    VideoSegmentationService,
)

__all__ = [
    "PropositionChunkingService",
    "TextChunk",
    "TextChunkingPipeline",
    "TranscriptSegment",
    "VideoSegment",
    "VideoSegmentationService",
    "chunk_content",
    "validate_propositions",
]
