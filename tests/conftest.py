"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
No test talks to Gemini or downloads a sentence-transformers model: providers
are replaced by the deterministic fakes below.
"""
import random
import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from learnfeed.config import get_settings  # noqa: E402
from learnfeed.feed.models import Concept, SampleQuestion  # noqa: E402
from learnfeed.processing.text_chunking_pipeline import TextChunk  # noqa: E402
from learnfeed.semantic.embedding_service import EmbeddingResult  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch, tmp_path):
    """Isolate every test from the developer's environment and .env file."""
    for var in (
        "GEMINI_API_KEY",
        "EMBEDDING_PROVIDER",
        "CHUNK_ID_PREFIX",
        "SEGMENT_ID_PREFIX",
        "LOG_FILE",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ========================================
# Fake providers
# ========================================

TOPIC_VECTORS = {
    "cell": [1.0, 0.0, 0.0],
    "war": [0.0, 1.0, 0.0],
    "star": [0.0, 0.0, 1.0],
}


class TopicEmbeddingService:
    """
    Embeds a text as the unit vector of the first topic keyword it contains.

    Same-topic pairs have similarity 1.0, cross-topic pairs 0.0. Results come back
    in reverse order to exercise index re-sorting.
    """

    model_name = "fake-topics"

    def __init__(self):
        self.batches: list[list[str]] = []

    def generate_embeddings_batch(self, texts):
        self.batches.append(list(texts))
        results = []
        for i, text in enumerate(texts):
            vector = next(
                (v for key, v in TOPIC_VECTORS.items() if key in text.lower()),
                [1.0, 1.0, 1.0],
            )
            results.append(
                EmbeddingResult(
                    index=i,
                    text=text,
                    embedding=np.asarray(vector),
                    model_name=self.model_name,
                )
            )
        return list(reversed(results))


class FakeDecomposer:
    """Splits on periods; records every call."""

    def __init__(self, propositions=None, error=None):
        self.propositions = propositions
        self.error = error
        self.calls: list[str] = []

    def decompose_into_propositions(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        if self.propositions is not None:
            return list(self.propositions)
        return [f"{s.strip()}." for s in text.split(".") if s.strip()]


class FakeBoundaryFinder:
    def __init__(self, boundaries=None, error=None):
        self.boundaries = boundaries or []
        self.error = error
        self.calls: list[list[str]] = []

    def find_boundaries(self, units):
        self.calls.append(list(units))
        if self.error is not None:
            raise self.error
        return list(self.boundaries)


@pytest.fixture
def topic_embedder():
    return TopicEmbeddingService()


@pytest.fixture
def rng():
    return random.Random(42)


# ========================================
# Sample content
# ========================================


def make_concept(i: int, with_questions: bool = True, **overrides) -> Concept:
    questions = (
        [
            SampleQuestion(
                question_type="mcq",
                question_text=f"What is concept {i}?",
                correct_answer=f"Answer {i}",
                distractors=["A", "B", "C"],
            )
        ]
        if with_questions
        else []
    )
    fields = dict(
        id=f"concept-{i}",
        name=f"Concept {i}",
        definition=f"Definition of concept {i}",
        chapter_sequence=i,
        sample_questions=questions,
        start_sec=i * 300.0,
        end_sec=(i + 1) * 300.0,
    )
    fields.update(overrides)
    return Concept(**fields)


def make_chunk(i: int) -> TextChunk:
    props = [f"Idea {i} first.", f"Idea {i} second."]
    return TextChunk(
        id=f"chunk-{i}",
        text=" ".join(props),
        propositions=props,
        start_index=i * 2,
        end_index=i * 2 + 2,
    )


@pytest.fixture
def concepts():
    """Six chapter concepts, each with one sample question."""
    return [make_concept(i) for i in range(6)]


@pytest.fixture
def text_chunks():
    return [make_chunk(i) for i in range(6)]


@pytest.fixture
def concept_factory():
    return make_concept


@pytest.fixture
def chunk_factory():
    return make_chunk


@pytest.fixture
def make_decomposer():
    return FakeDecomposer


@pytest.fixture
def make_finder():
    return FakeBoundaryFinder
