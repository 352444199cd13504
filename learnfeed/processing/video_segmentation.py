"""
Video Segmentation Service - cut a transcript into topic-aligned video segments.

Flow:
1. Run semantic boundary detection over the transcript units
2. Map each boundary range onto video time (first unit start -> last unit end)
3. Merge segments shorter than the minimum duration
4. Split segments longer than the maximum duration
5. Renumber segment ids

Split sub-segments get their time bounds by sentence-count share of the parent
duration rather than true per-sentence timestamps.
"""

from __future__ import annotations

import math
import time
from dataclasses import asdict, dataclass, field, replace
from typing import Any

from loguru import logger

from learnfeed.config import get_settings
from learnfeed.errors import ErrorCode, PipelineError, VideoSegmentationError
from learnfeed.processing.text_chunking_pipeline import BoundaryFinder
from learnfeed.semantic.boundary_service import SemanticBoundaryService, boundary_ranges


@dataclass(frozen=True)
class TranscriptSegment:
    """One timed transcript unit (a caption line or sentence)."""

    text: str
    start: float
    end: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TranscriptSegment:
        start = float(data["start"])
        if "end" in data:
            end = float(data["end"])
        else:
            end = start + float(data.get("duration", 0))
        return cls(text=str(data.get("text", "")), start=start, end=end)


@dataclass(frozen=True)
class VideoSegment:
    """
    A contiguous, time-coded run of transcript units.

    ``start_index``/``end_index`` are the half-open range of transcript units covered.
    """

    id: str
    start_sec: float
    end_sec: float
    duration_sec: float
    text: str
    sentences: list[str] = field(default_factory=list)
    start_index: int = 0
    end_index: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _build_segment(
    segment_id: str,
    units: list[TranscriptSegment],
    start_index: int,
) -> VideoSegment:
    start_sec = units[0].start
    end_sec = units[-1].end
    sentences = [u.text for u in units]
    return VideoSegment(
        id=segment_id,
        start_sec=start_sec,
        end_sec=end_sec,
        duration_sec=end_sec - start_sec,
        text=" ".join(sentences),
        sentences=sentences,
        start_index=start_index,
        end_index=start_index + len(units),
    )


def _join(first: VideoSegment, second: VideoSegment) -> VideoSegment:
    """Concatenate two adjacent segments; keeps the first id."""
    sentences = first.sentences + second.sentences
    return replace(
        first,
        end_sec=second.end_sec,
        duration_sec=second.end_sec - first.start_sec,
        text=" ".join(sentences),
        sentences=sentences,
        end_index=second.end_index,
    )


def merge_short_segments(
    segments: list[VideoSegment],
    min_duration_sec: float,
) -> list[VideoSegment]:
    """
    Merge segments shorter than ``min_duration_sec`` into a neighbour.

    A short segment joins the previous accepted segment. With nothing accepted yet
    (a short leading segment) it is carried forward into the next one instead.
    """
    merged: list[VideoSegment] = []
    carry: VideoSegment | None = None

    for segment in segments:
        if carry is not None:
            segment = _join(carry, segment)
            carry = None

        if segment.duration_sec >= min_duration_sec:
            merged.append(segment)
        elif merged:
            merged[-1] = _join(merged[-1], segment)
        else:
            carry = segment

    if carry is not None:
        merged.append(carry)

    return merged


def split_long_segments(
    segments: list[VideoSegment],
    max_duration_sec: float,
) -> list[VideoSegment]:
    """
    Split segments longer than ``max_duration_sec`` into roughly equal parts.

    A segment becomes ``ceil(duration / max)`` sentence slices of
    ``ceil(sentences / parts)`` sentences each. Cut times are the parent
    start plus the sentence-count share of its duration, rounded to whole seconds,
    outer bounds included. Single-sentence segments are kept.
    """
    result: list[VideoSegment] = []

    for segment in segments:
        sentence_count = len(segment.sentences)
        if segment.duration_sec <= max_duration_sec or sentence_count <= 1:
            result.append(segment)
            continue

        num_splits = math.ceil(segment.duration_sec / max_duration_sec)
        per_split = math.ceil(sentence_count / num_splits)

        def cut_time(offset: int) -> float:
            return round(segment.start_sec + segment.duration_sec * offset / sentence_count)

        for offset in range(0, sentence_count, per_split):
            end_offset = min(offset + per_split, sentence_count)
            sentences = segment.sentences[offset:end_offset]
            start_sec = cut_time(offset)
            end_sec = cut_time(end_offset)
            result.append(
                VideoSegment(
                    id=segment.id,
                    start_sec=start_sec,
                    end_sec=end_sec,
                    duration_sec=end_sec - start_sec,
                    text=" ".join(sentences),
                    sentences=sentences,
                    start_index=segment.start_index + offset,
                    end_index=segment.start_index + end_offset,
                )
            )

        logger.debug(
            f"Split {segment.duration_sec:.0f}s segment into {math.ceil(sentence_count / per_split)} parts"
        )

    return result


class VideoSegmentationService:
    """
    Segment transcripts into semantically coherent, duration-bounded video chunks.

    Example:
        >>> service = VideoSegmentationService(min_duration_sec=180)
        >>> segments = service.segment_transcript(transcript, video_duration=1800)
        >>> [(s.start_sec, s.end_sec) for s in segments]
        [(0.0, 412.0), (412.0, 1033.0), (1033.0, 1800.0)]
    """

    def __init__(
        self,
        boundary_service: BoundaryFinder | None = None,
        target_duration_sec: float | None = None,
        min_duration_sec: float | None = None,
        max_duration_sec: float | None = None,
        segment_id_prefix: str | None = None,
    ):
        """
        Initialize the segmenter.

        Args:
            boundary_service: Boundary detector (default: built from settings)
            target_duration_sec: Desired segment length (informational)
            min_duration_sec: Shorter segments are merged
            max_duration_sec: Longer segments are split
            segment_id_prefix: Id prefix (``segment-0``, ...)

        Raises:
            VideoSegmentationError: VALIDATION_ERROR for inconsistent durations,
                API_KEY_MISSING when the default boundary service cannot be built
        """
        config = get_settings().get_segmentation_config()
        self.target_duration_sec = (
            target_duration_sec if target_duration_sec is not None
            else config["target_duration_sec"]
        )
        self.min_duration_sec = (
            min_duration_sec if min_duration_sec is not None else config["min_duration_sec"]
        )
        self.max_duration_sec = (
            max_duration_sec if max_duration_sec is not None else config["max_duration_sec"]
        )
        self.segment_id_prefix = segment_id_prefix or config["segment_id_prefix"]

        if self.min_duration_sec <= 0:
            raise VideoSegmentationError(
                f"min_duration_sec must be positive, got {self.min_duration_sec}",
                ErrorCode.VALIDATION_ERROR,
            )
        if self.max_duration_sec < self.min_duration_sec:
            raise VideoSegmentationError(
                f"max_duration_sec ({self.max_duration_sec}) must be >= "
                f"min_duration_sec ({self.min_duration_sec})",
                ErrorCode.VALIDATION_ERROR,
            )

        try:
            self.boundary_service = boundary_service or SemanticBoundaryService()
        except Exception as e:
            raise VideoSegmentationError.wrap(
                e, ErrorCode.API_KEY_MISSING, "Failed to initialize boundary service"
            ) from e

    def segment_transcript(
        self,
        segments: list[TranscriptSegment],
        video_duration: float | None = None,
    ) -> list[VideoSegment]:
        """
        Segment a transcript into video chunks.

        Args:
            segments: Timed transcript units in playback order
            video_duration: Total video length; defaults to the last unit's end

        Returns:
            Contiguous segments partitioning the transcript

        Raises:
            VideoSegmentationError: BOUNDARY_DETECTION_FAILED for typed detector errors,
                SEGMENTATION_FAILED for anything else the detector raises,
                VALIDATION_ERROR for a unit that ends before it starts
        """
        if not segments:
            return []

        for i, unit in enumerate(segments):
            if unit.end < unit.start:
                raise VideoSegmentationError(
                    f"Transcript unit {i} ends before it starts ({unit.start} > {unit.end})",
                    ErrorCode.VALIDATION_ERROR,
                    {"index": i},
                )

        total_duration = video_duration or segments[-1].end

        if total_duration <= self.min_duration_sec or len(segments) == 1:
            logger.debug(
                f"Transcript too short to segment ({total_duration:.0f}s, {len(segments)} units)"
            )
            return [_build_segment(f"{self.segment_id_prefix}-0", list(segments), 0)]

        start = time.perf_counter()
        boundaries = self._find_boundaries([s.text for s in segments])

        raw = [
            _build_segment(f"{self.segment_id_prefix}-{i}", list(segments[lo:hi]), lo)
            for i, (lo, hi) in enumerate(boundary_ranges(boundaries, len(segments)))
        ]
        merged = merge_short_segments(raw, self.min_duration_sec)
        split = split_long_segments(merged, self.max_duration_sec)
        result = [
            replace(segment, id=f"{self.segment_id_prefix}-{i}")
            for i, segment in enumerate(split)
        ]

        elapsed = time.perf_counter() - start
        logger.info(
            f"Segmented {len(segments)} transcript units: {len(raw)} raw -> "
            f"{len(merged)} merged -> {len(result)} final ({elapsed:.2f}s)"
        )
        return result

    def _find_boundaries(self, texts: list[str]) -> list[int]:
        try:
            return self.boundary_service.find_boundaries(texts)
        except PipelineError as e:
            logger.error(f"Boundary detection failed: {e}")
            raise VideoSegmentationError.wrap(
                e, ErrorCode.BOUNDARY_DETECTION_FAILED, "Boundary detection failed"
            ) from e
        except Exception as e:
            logger.error(f"Segmentation failed: {e}")
            raise VideoSegmentationError.wrap(
                e, ErrorCode.SEGMENTATION_FAILED, "Segmentation failed"
            ) from e
