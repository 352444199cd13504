"""
Unit tests for the Video Segmentation Service.

Transcripts are synthetic: fixed-length units with scripted boundaries, so merge
and split behavior can be checked against exact times.
"""
import pytest

from learnfeed.errors import ErrorCode, SemanticBoundaryError, VideoSegmentationError
from learnfeed.processing.video_segmentation import (
    TranscriptSegment,
    VideoSegment,
    VideoSegmentationService,
    merge_short_segments,
    split_long_segments,
)


def transcript(count: int, unit_sec: float = 60.0) -> list[TranscriptSegment]:
    return [
        TranscriptSegment(text=f"Sentence {i}.", start=i * unit_sec, end=(i + 1) * unit_sec)
        for i in range(count)
    ]


def segment(start: float, end: float, sentences: int, start_index: int = 0) -> VideoSegment:
    texts = [f"S{start_index + i}." for i in range(sentences)]
    return VideoSegment(
        id="segment-x",
        start_sec=start,
        end_sec=end,
        duration_sec=end - start,
        text=" ".join(texts),
        sentences=texts,
        start_index=start_index,
        end_index=start_index + sentences,
    )


def assert_partition(segments, unit_count):
    assert segments[0].start_index == 0
    assert segments[-1].end_index == unit_count
    for prev, nxt in zip(segments, segments[1:]):
        assert prev.end_index == nxt.start_index


class TestTranscriptSegment:
    def test_from_dict_with_end(self):
        unit = TranscriptSegment.from_dict({"text": "Hi.", "start": 1, "end": 2.5})

        assert unit == TranscriptSegment(text="Hi.", start=1.0, end=2.5)

    def test_from_dict_with_duration(self):
        unit = TranscriptSegment.from_dict({"text": "Hi.", "start": 10, "duration": 4})

        assert unit.end == 14.0


class TestMergeShortSegments:
    """Tests for merge_short_segments."""

    def test_short_leading_segment_carried_forward(self):
        merged = merge_short_segments(
            [segment(0, 100, 1), segment(100, 400, 3, 1)], min_duration_sec=240
        )

        assert len(merged) == 1
        assert (merged[0].start_sec, merged[0].end_sec) == (0, 400)
        assert merged[0].sentences == ["S0.", "S1.", "S2.", "S3."]
        assert merged[0].end_index == 4

    def test_short_trailing_segment_joins_previous(self):
        merged = merge_short_segments(
            [segment(0, 300, 3), segment(300, 350, 1, 3)], min_duration_sec=240
        )

        assert len(merged) == 1
        assert merged[0].duration_sec == 350

    def test_all_short_collapse_into_one(self):
        merged = merge_short_segments(
            [segment(0, 50, 1), segment(50, 100, 1, 1), segment(100, 150, 1, 2)],
            min_duration_sec=240,
        )

        assert len(merged) == 1
        assert merged[0].end_sec == 150
        assert merged[0].end_index == 3

    def test_long_segments_untouched(self):
        segments = [segment(0, 300, 2), segment(300, 600, 2, 2)]

        assert merge_short_segments(segments, 240) == segments


class TestSplitLongSegments:
    """Tests for split_long_segments."""

    def test_even_split(self):
        parts = split_long_segments([segment(0, 1200, 20)], max_duration_sec=900)

        assert [(p.start_sec, p.end_sec) for p in parts] == [(0, 600), (600, 1200)]
        assert [len(p.sentences) for p in parts] == [10, 10]

    def test_uneven_split_rounds_interior_cuts(self):
        parts = split_long_segments([segment(0, 700, 7)], max_duration_sec=300)

        assert [(p.start_sec, p.end_sec) for p in parts] == [(0, 300), (300, 600), (600, 700)]
        assert [(p.start_index, p.end_index) for p in parts] == [(0, 3), (3, 6), (6, 7)]

    def test_outer_bounds_rounded(self):
        parts = split_long_segments([segment(10.4, 1810.4, 2)], max_duration_sec=900)

        assert [(p.start_sec, p.end_sec) for p in parts] == [(10, 910), (910, 1810)]
        assert [p.duration_sec for p in parts] == [900, 900]

    def test_single_sentence_segment_kept(self):
        long_one = segment(0, 2000, 1)

        assert split_long_segments([long_one], max_duration_sec=900) == [long_one]


class TestVideoSegmentationService:
    """Tests for VideoSegmentationService.segment_transcript."""

    def test_short_leading_range_merged(self, make_finder):
        service = VideoSegmentationService(boundary_service=make_finder(boundaries=[2, 6]))

        segments = service.segment_transcript(transcript(10))

        assert [s.id for s in segments] == ["segment-0", "segment-1"]
        assert [(s.start_sec, s.end_sec) for s in segments] == [(0, 360), (360, 600)]
        assert_partition(segments, 10)

    def test_short_trailing_range_merged(self, make_finder):
        service = VideoSegmentationService(boundary_service=make_finder(boundaries=[4, 8]))

        segments = service.segment_transcript(transcript(10))

        assert [(s.start_index, s.end_index) for s in segments] == [(0, 4), (4, 10)]

    def test_short_middle_segment_collapses(self, make_finder):
        service = VideoSegmentationService(
            boundary_service=make_finder(boundaries=[2, 3]), min_duration_sec=180
        )

        segments = service.segment_transcript(transcript(5))

        assert len(segments) <= 2
        assert all(s.duration_sec >= 180 for s in segments)
        assert_partition(segments, 5)

    def test_long_range_split_and_renumbered(self, make_finder):
        service = VideoSegmentationService(boundary_service=make_finder(boundaries=[]))

        segments = service.segment_transcript(transcript(20))

        assert [s.id for s in segments] == ["segment-0", "segment-1"]
        assert [s.duration_sec for s in segments] == [600, 600]
        assert_partition(segments, 20)

    def test_durations_within_bounds(self, make_finder):
        service = VideoSegmentationService(boundary_service=make_finder(boundaries=[3, 5, 25]))

        segments = service.segment_transcript(transcript(40))

        assert all(240 <= s.duration_sec <= 900 for s in segments)
        assert_partition(segments, 40)

    def test_detector_receives_unit_texts(self, make_finder):
        finder = make_finder()
        service = VideoSegmentationService(boundary_service=finder)

        service.segment_transcript(transcript(5))

        assert finder.calls == [[f"Sentence {i}." for i in range(5)]]

    def test_short_video_is_single_segment(self, make_finder):
        finder = make_finder(boundaries=[1, 2])
        service = VideoSegmentationService(boundary_service=finder)

        segments = service.segment_transcript(transcript(3))

        assert len(segments) == 1
        assert (segments[0].start_sec, segments[0].end_sec) == (0, 180)
        assert finder.calls == []

    def test_video_duration_overrides_transcript_end(self, make_finder):
        finder = make_finder()
        service = VideoSegmentationService(boundary_service=finder)

        segments = service.segment_transcript(transcript(3), video_duration=1800)

        assert len(segments) == 1
        assert len(finder.calls) == 1

    def test_single_unit_is_single_segment(self, make_finder):
        service = VideoSegmentationService(boundary_service=make_finder())

        segments = service.segment_transcript(transcript(1, unit_sec=2000))

        assert len(segments) == 1
        assert segments[0].duration_sec == 2000

    def test_empty_transcript(self, make_finder):
        service = VideoSegmentationService(boundary_service=make_finder())

        assert service.segment_transcript([]) == []

    def test_unit_ending_before_start_rejected(self, make_finder):
        service = VideoSegmentationService(boundary_service=make_finder())

        with pytest.raises(VideoSegmentationError) as exc:
            service.segment_transcript([TranscriptSegment("Bad.", start=10, end=5)])

        assert exc.value.code is ErrorCode.VALIDATION_ERROR

    def test_typed_detector_error(self, make_finder):
        error = SemanticBoundaryError("provider down", ErrorCode.EMBEDDING_FAILED)
        service = VideoSegmentationService(boundary_service=make_finder(error=error))

        with pytest.raises(VideoSegmentationError) as exc:
            service.segment_transcript(transcript(10))

        assert exc.value.code is ErrorCode.BOUNDARY_DETECTION_FAILED
        assert exc.value.original_code is ErrorCode.EMBEDDING_FAILED

    def test_untyped_detector_error(self, make_finder):
        service = VideoSegmentationService(
            boundary_service=make_finder(error=RuntimeError("crash"))
        )

        with pytest.raises(VideoSegmentationError) as exc:
            service.segment_transcript(transcript(10))

        assert exc.value.code is ErrorCode.SEGMENTATION_FAILED

    @pytest.mark.parametrize(
        "min_sec,max_sec",
        [(0, 900), (-10, 900), (300, 200)],
    )
    def test_inconsistent_durations_rejected(self, make_finder, min_sec, max_sec):
        with pytest.raises(VideoSegmentationError) as exc:
            VideoSegmentationService(
                boundary_service=make_finder(),
                min_duration_sec=min_sec,
                max_duration_sec=max_sec,
            )

        assert exc.value.code is ErrorCode.VALIDATION_ERROR

    def test_default_detector_missing_key(self, monkeypatch):
        monkeypatch.setenv("EMBEDDING_PROVIDER", "gemini")

        with pytest.raises(VideoSegmentationError) as exc:
            VideoSegmentationService()

        assert exc.value.code is ErrorCode.API_KEY_MISSING

    def test_custom_prefix(self, make_finder):
        service = VideoSegmentationService(
            boundary_service=make_finder(), segment_id_prefix="clip"
        )

        assert service.segment_transcript(transcript(5))[0].id == "clip-0"

    def test_segment_to_dict(self, make_finder):
        service = VideoSegmentationService(boundary_service=make_finder())

        data = service.segment_transcript(transcript(5))[0].to_dict()

        assert data["sentences"][0] == "Sentence 0."
        assert data["end_index"] == 5
