"""
Unit tests for the Semantic Boundary Service.

Uses a keyword-based fake provider, so similarities are exactly 1.0 (same topic)
or 0.0 (topic change) and thresholds can be checked by hand.
"""
from unittest.mock import Mock

import numpy as np
import pytest

from learnfeed.errors import ErrorCode, SemanticBoundaryError
from learnfeed.semantic.boundary_service import (
    BoundaryResult,
    SemanticBoundaryService,
    boundary_ranges,
    cosine_similarity,
    detect_boundaries,
)
from learnfeed.semantic.embedding_service import (
    EmbeddingResult,
    GeminiEmbeddingService,
    LocalEmbeddingService,
    create_embedding_service,
)


class TestCosineSimilarity:
    """Tests for cosine_similarity."""

    def test_identical_vectors(self):
        assert cosine_similarity([1, 2, 3], [1, 2, 3]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)

    def test_zero_vector_returns_zero(self):
        assert cosine_similarity([0, 0, 0], [1, 2, 3]) == 0.0

    def test_accepts_numpy_arrays(self):
        assert cosine_similarity(np.array([3.0, 4.0]), np.array([3.0, 4.0])) == pytest.approx(1.0)

    def test_length_mismatch_rejected(self):
        with pytest.raises(SemanticBoundaryError) as exc:
            cosine_similarity([1, 2], [1, 2, 3])

        assert exc.value.code is ErrorCode.VALIDATION_ERROR
        assert exc.value.details == {"length_a": 2, "length_b": 3}

    def test_empty_vectors_rejected(self):
        with pytest.raises(SemanticBoundaryError) as exc:
            cosine_similarity([], [])

        assert exc.value.code is ErrorCode.VALIDATION_ERROR


class TestDetectBoundaries:
    """Tests for the valley threshold."""

    def test_single_valley(self):
        boundaries, mean, std, threshold = detect_boundaries([1.0, 1.0, 0.0, 1.0, 1.0], 1.0, 0.1)

        assert boundaries == [3]
        assert mean == pytest.approx(0.8)
        assert std == pytest.approx(0.4)
        assert threshold == pytest.approx(0.4)

    def test_uniform_series_has_no_boundaries(self):
        boundaries, _, std, threshold = detect_boundaries([0.9, 0.9, 0.9], 1.0, 0.1)

        assert boundaries == []
        assert std == 0.0
        assert threshold == pytest.approx(0.8)

    def test_stricter_rule_wins(self):
        # mean 0.5, std 0.5: k-rule gives 0.0, drop-rule gives 0.4
        _, _, _, threshold = detect_boundaries([1.0, 0.0], 1.0, 0.1)

        assert threshold == pytest.approx(0.0)

    def test_empty_series(self):
        assert detect_boundaries([], 1.0, 0.1) == ([], 0.0, 0.0, 0.0)


class TestBoundaryRanges:
    def test_filters_dedupes_and_sorts(self):
        assert boundary_ranges([3, 1, 3, 0, 9], 5) == [(0, 1), (1, 3), (3, 5)]

    def test_no_boundaries_is_one_range(self):
        assert boundary_ranges([], 4) == [(0, 4)]

    def test_empty_total(self):
        assert boundary_ranges([1, 2], 0) == []


class TestSemanticBoundaryService:
    """Tests for SemanticBoundaryService."""

    @pytest.fixture
    def service(self, topic_embedder):
        return SemanticBoundaryService(embedding_service=topic_embedder)

    def test_detects_topic_shift(self, service):
        units = [
            "The cell membrane is selective.",
            "A cell wall adds rigidity.",
            "Each cell has a nucleus.",
            "The war began in 1914.",
            "The war ended in 1918.",
            "The war reshaped Europe.",
        ]

        assert service.find_boundaries(units) == [3]

    def test_boundaries_are_reported_in_input_positions(self, service, topic_embedder):
        units = [
            "cell one",
            "   ",
            "cell two",
            "cell three",
            "war four",
            "war five",
        ]

        result = service.find_boundaries_with_metadata(units)

        assert result.boundaries == [3]
        assert result.input_boundaries == [4]
        assert result.unit_positions == [0, 2, 3, 4, 5]
        assert "   " not in topic_embedder.batches[0]

    def test_single_topic_has_no_boundaries(self, service):
        assert service.find_boundaries(["cell a", "cell b", "cell c"]) == []

    @pytest.mark.parametrize("units", [[], ["cell only"], ["cell only", "", "  "]])
    def test_fewer_than_two_units_skips_provider(self, service, topic_embedder, units):
        result = service.find_boundaries_with_metadata(units)

        assert result.boundaries == []
        assert result.similarities == []
        assert result.mean_similarity == 0.0
        assert topic_embedder.batches == []

    def test_metadata_statistics(self, service):
        result = service.find_boundaries_with_metadata(
            ["cell a", "cell b", "cell c", "war d", "war e", "war f"]
        )

        assert result.similarities == pytest.approx([1.0, 1.0, 0.0, 1.0, 1.0])
        assert result.mean_similarity == pytest.approx(0.8)
        assert result.std_dev_similarity == pytest.approx(0.4)
        assert result.threshold == pytest.approx(0.4)
        assert result.to_dict()["input_boundaries"] == [3]

    def test_batches_preserve_order(self, topic_embedder):
        service = SemanticBoundaryService(embedding_service=topic_embedder, batch_size=2)
        units = ["cell a", "cell b", "cell c", "war d", "war e"]

        boundaries = service.find_boundaries(units)

        assert [len(b) for b in topic_embedder.batches] == [2, 2, 1]
        assert boundaries == [3]

    def test_provider_failure_wrapped(self):
        provider = Mock(model_name="broken")
        provider.generate_embeddings_batch.side_effect = RuntimeError("connection reset")
        service = SemanticBoundaryService(embedding_service=provider)

        with pytest.raises(SemanticBoundaryError) as exc:
            service.find_boundaries(["cell a", "war b"])

        assert exc.value.code is ErrorCode.EMBEDDING_FAILED
        assert "Failed to generate embeddings" in exc.value.message
        assert isinstance(exc.value.cause, RuntimeError)

    def test_typed_provider_error_propagates_unchanged(self):
        original = SemanticBoundaryError("no key", ErrorCode.API_KEY_MISSING)
        provider = Mock(model_name="broken")
        provider.generate_embeddings_batch.side_effect = original
        service = SemanticBoundaryService(embedding_service=provider)

        with pytest.raises(SemanticBoundaryError) as exc:
            service.find_boundaries(["cell a", "war b"])

        assert exc.value is original

    def test_short_provider_response_rejected(self):
        provider = Mock(model_name="short")
        provider.generate_embeddings_batch.return_value = [
            EmbeddingResult(index=0, text="cell a", embedding=np.ones(3), model_name="short")
        ]
        service = SemanticBoundaryService(embedding_service=provider)

        with pytest.raises(SemanticBoundaryError) as exc:
            service.find_boundaries(["cell a", "war b"])

        assert exc.value.code is ErrorCode.EMBEDDING_FAILED
        assert exc.value.details == {"expected": 2, "received": 1}

    @pytest.mark.parametrize("batch_size", [0, -5])
    def test_non_positive_batch_size_rejected(self, topic_embedder, batch_size):
        with pytest.raises(SemanticBoundaryError) as exc:
            SemanticBoundaryService(embedding_service=topic_embedder, batch_size=batch_size)

        assert exc.value.code is ErrorCode.VALIDATION_ERROR

    def test_empty_result_helpers(self):
        result = BoundaryResult()

        assert result.input_boundaries == []
        assert result.to_dict()["threshold"] == 0.0


class TestEmbeddingProviders:
    """Tests for provider construction (no model download, no network)."""

    def test_default_provider_is_local(self):
        service = create_embedding_service()

        assert isinstance(service, LocalEmbeddingService)
        assert service.model_name == "all-MiniLM-L6-v2"
        assert service._model is None

    def test_gemini_requires_key(self):
        with pytest.raises(SemanticBoundaryError) as exc:
            create_embedding_service("gemini")

        assert exc.value.code is ErrorCode.API_KEY_MISSING

    def test_unknown_provider_rejected(self):
        with pytest.raises(SemanticBoundaryError) as exc:
            create_embedding_service("word2vec")

        assert exc.value.code is ErrorCode.VALIDATION_ERROR

    def test_gemini_batch_uses_embed_content(self):
        service = GeminiEmbeddingService(api_key="test-key")
        service._client = Mock()
        service._client.embed_content.return_value = {"embedding": [[1.0, 0.0], [0.0, 1.0]]}

        results = service.generate_embeddings_batch(["first", "second"])

        service._client.embed_content.assert_called_once_with(
            model="models/text-embedding-004",
            content=["first", "second"],
            task_type="semantic_similarity",
        )
        assert [r.index for r in results] == [0, 1]
        assert results[1].to_list() == [0.0, 1.0]
        assert results[0].dimension == 2

    def test_gemini_count_mismatch_raises(self):
        service = GeminiEmbeddingService(api_key="test-key")
        service._client = Mock()
        service._client.embed_content.return_value = {"embedding": [[1.0, 0.0]]}

        with pytest.raises(ValueError):
            service.generate_embeddings_batch(["first", "second"])

    def test_local_batch_uses_encode(self):
        service = LocalEmbeddingService(model_name="tiny")
        service._model = Mock()
        service._model.encode.return_value = np.array([[0.5, 0.5], [1.0, 0.0]])

        results = service.generate_embeddings_batch(["a", "b"])

        assert service._model.encode.call_args.kwargs["batch_size"] == 2
        assert [r.text for r in results] == ["a", "b"]
        assert results[0].model_name == "tiny"
        assert service.generate_embeddings_batch([]) == []
