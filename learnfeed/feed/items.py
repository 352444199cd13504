"""
Feed item factories.

Pure functions that turn one content unit (a chapter Concept or a TextChunk) plus a
position into a feed item. Every id follows ``{prefix}-{source_id}-{index}``.
"""

from __future__ import annotations

import random

from learnfeed.feed.models import (
    Concept,
    ConceptType,
    FactItem,
    MiniLessonData,
    MiniLessonItem,
    PretestData,
    PretestItem,
    PretestQuestion,
    PretestResultsItem,
    Prerequisite,
    QuizItem,
    SynthesisConcept,
    SynthesisItem,
    TextChunkItem,
    VideoChunkItem,
)
from learnfeed.processing.text_chunking_pipeline import TextChunk

DEFAULT_WHY_IT_MATTERS = "Understanding this concept is key to mastering the topic."
TEXT_WHY_IT_MATTERS = "This idea is central to understanding the content."

TEXT_PREVIEW_CHARS = 200
FACT_PREVIEW_CHARS = 150
SYNTHESIS_LABEL_CHARS = 50
DESCRIPTION_CHARS = 100
MAX_SYNTHESIS_CONCEPTS = 5


def feed_item_id(prefix: str, source_id: str, index: int) -> str:
    return f"{prefix}-{source_id}-{index}"


# =============================================================================
# Content
# =============================================================================


def create_video_chunk_item(concept: Concept, source_id: str, index: int) -> VideoChunkItem:
    """Video chapter item; question falls back from segment question to first sample."""
    question = concept.segment_question
    if question is None and concept.sample_questions:
        question = concept.sample_questions[0]

    return VideoChunkItem(
        id=feed_item_id("video", source_id, index),
        concept_id=concept.id,
        start_sec=concept.start_sec or 0,
        end_sec=concept.end_sec or 0,
        title=concept.name,
        open_loop_teaser=concept.open_loop_teaser,
        question=question,
    )


def create_text_chunk_item(
    chunk: TextChunk,
    source_id: str,
    index: int,
    total_chunks: int,
) -> TextChunkItem:
    """Text chunk item with a 200-character preview."""
    return TextChunkItem(
        id=feed_item_id("text", source_id, index),
        text=chunk.text[:TEXT_PREVIEW_CHARS],
        propositions=list(chunk.propositions),
        chunk_index=chunk.start_index,
        total_chunks=total_chunks,
    )


# =============================================================================
# Quiz / Fact
# =============================================================================


def create_quiz_item(
    concept: Concept,
    source_id: str,
    index: int,
    rng: random.Random | None = None,
) -> QuizItem | None:
    """Quiz on a uniformly chosen sample question; None when the concept has none."""
    if not concept.sample_questions:
        return None

    question = (rng or random).choice(concept.sample_questions)
    return QuizItem(
        id=feed_item_id("quiz", source_id, index),
        concept_id=concept.id,
        question=question,
    )


def create_fact_item(concept: Concept, source_id: str, index: int) -> FactItem:
    return FactItem(
        id=feed_item_id("fact", source_id, index),
        concept_id=concept.id,
        fact_text=(
            concept.one_sentence_summary
            or concept.definition[:FACT_PREVIEW_CHARS]
            or concept.name
        ),
        why_it_matters=concept.why_it_matters or DEFAULT_WHY_IT_MATTERS,
    )


def create_text_fact_item(chunk: TextChunk, source_id: str, index: int) -> FactItem:
    """Fact from the chunk's first proposition, else its truncated text."""
    fact_text = (chunk.propositions[0] if chunk.propositions else "") or chunk.text[
        :FACT_PREVIEW_CHARS
    ]
    return FactItem(
        id=feed_item_id("fact", source_id, index),
        concept_id=chunk.id,
        fact_text=fact_text,
        why_it_matters=TEXT_WHY_IT_MATTERS,
    )


# =============================================================================
# Synthesis
# =============================================================================


def synthesis_prompt(names: list[str]) -> str:
    if not names:
        return "Reflect on what you have learned so far."
    if len(names) == 1:
        return "Review this key concept before continuing."
    if len(names) == 2:
        return f"How do {names[0]} and {names[1]} work together?"
    return f"How do {', '.join(names[:-1])} and {names[-1]} combine to create a complete picture?"


def text_synthesis_prompt(samples: list[str]) -> str:
    if not samples:
        return "Reflect on what you have read so far."
    if len(samples) == 1:
        return "Review the key ideas from this section before continuing."
    if len(samples) == 2:
        return "How do these two ideas connect and build on each other?"
    return (
        "How do the concepts from these sections work together to form a "
        "complete understanding?"
    )


def create_synthesis_item(
    concepts: list[Concept],
    source_id: str,
    index: int,
    chapters_completed: int,
    total_chapters: int,
) -> SynthesisItem:
    names = [c.name for c in concepts]
    return SynthesisItem(
        id=feed_item_id("synthesis", source_id, index),
        concepts_to_connect=names,
        synthesis_prompt=synthesis_prompt(names),
        chapters_completed=chapters_completed,
        total_chapters=total_chapters,
    )


def create_text_synthesis_item(
    chunks: list[TextChunk],
    source_id: str,
    index: int,
    chunks_completed: int,
    total_chunks: int,
) -> SynthesisItem:
    """Synthesis over recent chunks, labelled by each chunk's first proposition."""
    labels = [
        (chunk.propositions[0] if chunk.propositions else "") or chunk.text[:SYNTHESIS_LABEL_CHARS]
        for chunk in chunks
    ][:MAX_SYNTHESIS_CONCEPTS]

    return SynthesisItem(
        id=feed_item_id("synthesis", source_id, index),
        concepts_to_connect=labels,
        synthesis_prompt=text_synthesis_prompt(labels),
        chapters_completed=chunks_completed,
        total_chapters=total_chunks,
    )


def map_concept_type(cognitive_type: str | None) -> ConceptType:
    """Map a concept's cognitive type onto the synthesis classification."""
    try:
        return ConceptType(cognitive_type or "")
    except ValueError:
        return ConceptType.CONCEPTUAL


def concept_to_synthesis_concept(concept: Concept) -> SynthesisConcept:
    return SynthesisConcept(
        id=concept.id,
        name=concept.name,
        type=map_concept_type(concept.cognitive_type),
        description=concept.definition or None,
    )


def chunk_to_synthesis_concept(chunk: TextChunk, position: int) -> SynthesisConcept:
    """Text chunks synthesize as conceptual units named by their first proposition."""
    return SynthesisConcept(
        id=chunk.id,
        name=(chunk.propositions[0] if chunk.propositions else "") or f"Section {position + 1}",
        type=ConceptType.CONCEPTUAL,
        description=chunk.text[:DESCRIPTION_CHARS],
    )


# =============================================================================
# Pretest / Remediation
# =============================================================================


def create_pretest_item(
    prerequisite: Prerequisite,
    question: PretestQuestion,
    source_id: str,
    question_index: int,
    total_questions: int,
) -> PretestItem:
    return PretestItem(
        id=feed_item_id("pretest", source_id, question_index),
        prerequisite_id=prerequisite.id,
        prerequisite_name=prerequisite.name,
        question_text=question.question_text,
        options=list(question.options),
        correct_index=question.correct_index,
        explanation=question.explanation,
        question_number=question_index + 1,
        total_questions=total_questions,
    )


def create_pretest_results_item(
    pretest_data: PretestData,
    source_id: str,
    index: int = 0,
) -> PretestResultsItem:
    """Results placeholder: every prerequisite starts as a gap until answered."""
    return PretestResultsItem(
        id=feed_item_id("pretest-results", source_id, index),
        total_prerequisites=len(pretest_data.prerequisites),
        correct_count=0,
        percentage=0,
        recommendation="review_required",
        gap_prerequisite_ids=[p.id for p in pretest_data.prerequisites],
    )


def create_mini_lesson_item(data: MiniLessonData, source_id: str, index: int) -> MiniLessonItem:
    return MiniLessonItem(
        id=feed_item_id("mini-lesson", source_id, index),
        prerequisite_id=data.prerequisite_id,
        title=data.title,
        content_markdown=data.content_markdown,
        key_points=list(data.key_points),
        estimated_minutes=data.estimated_minutes,
    )
