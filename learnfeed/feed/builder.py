"""
Feed Builder Service - interleave content with quizzes, facts and synthesis.

Content units (video chapters or text chunks) are laid out along a repeating pattern:

    content -> quiz -> content -> content -> fact -> content -> (repeat)

Quiz and fact slots are interstitial: they reuse the most recent content unit and do
not advance the content cursor. After every 5 content units a synthesis checkpoint
is inserted without consuming a pattern slot. At the end, a final checkpoint covers
any 2+ content units not yet synthesized.

The generator is a fold over an immutable ``FeedCursor``: ``step`` takes a cursor and
returns ``(next_cursor, emitted_items)``, and the cursor's ``phase`` decides which
transition applies next.
"""

from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Sequence, Union

from loguru import logger

from learnfeed.config import get_settings
from learnfeed.errors import ErrorCode, FeedBuilderError
from learnfeed.feed import items as factory
from learnfeed.feed.models import (
    Concept,
    FeedItem,
    MiniLessonData,
    PretestData,
    ScaffoldLevel,
    SandboxItem,
    SynthesisConcept,
    SynthesisPhaseItem,
)
from learnfeed.feed.sandbox import create_sandbox_item
from learnfeed.feed.synthesis_phase import SynthesisPhaseGenerator, SynthesisPhaseService
from learnfeed.processing.text_chunking_pipeline import TextChunk

ContentUnit = Union[Concept, TextChunk]


class PatternSlot(str, Enum):
    CONTENT = "content"
    QUIZ = "quiz"
    FACT = "fact"


FEED_PATTERN: tuple[PatternSlot, ...] = (
    PatternSlot.CONTENT,
    PatternSlot.QUIZ,
    PatternSlot.CONTENT,
    PatternSlot.CONTENT,
    PatternSlot.FACT,
    PatternSlot.CONTENT,
)

# Content units consumed between synthesis checkpoints
SYNTHESIS_INTERVAL = 5

# Minimum uncovered content units for the closing checkpoint
FINAL_SYNTHESIS_MIN = 2

# Rough feed items per content unit, for adaptive progress totals
ITEMS_PER_UNIT_ESTIMATE = 1.5


class FeedPhase(str, Enum):
    EMITTING = "emitting"
    SYNTHESIS_PENDING = "synthesis_pending"
    DONE = "done"


@dataclass(frozen=True)
class FeedCursor:
    """
    Generator state for one assembly call.

    Attributes:
        content_index: Next content unit to emit
        pattern_index: Position in FEED_PATTERN (taken modulo its length)
        item_index: Next feed item id suffix; also the count of items emitted
        cycle_count: Content units emitted since the last synthesis
        buffer: Content units emitted since the last synthesis, oldest first
        quiz_concept_index: Rotation position in the related-concept quiz pool
    """

    content_index: int = 0
    pattern_index: int = 0
    item_index: int = 0
    cycle_count: int = 0
    buffer: tuple[ContentUnit, ...] = ()
    quiz_concept_index: int = 0

    @property
    def slot(self) -> PatternSlot:
        return FEED_PATTERN[self.pattern_index % len(FEED_PATTERN)]

    @property
    def last_unit(self) -> ContentUnit | None:
        return self.buffer[-1] if self.buffer else None

    def phase(self, total_units: int) -> FeedPhase:
        if self.cycle_count >= SYNTHESIS_INTERVAL:
            return FeedPhase.SYNTHESIS_PENDING
        if self.content_index >= total_units:
            return FeedPhase.DONE
        return FeedPhase.EMITTING


# (plan, covered units, cursor, is_final) -> synthesis-style feed item
SynthesisFactory = Callable[["FeedPlan", Sequence[ContentUnit], FeedCursor, bool], FeedItem]


@dataclass(frozen=True)
class FeedPlan:
    """Everything ``step`` needs that does not change during one assembly call."""

    source_id: str
    units: tuple[ContentUnit, ...]
    quiz_pool: tuple[Concept, ...]
    synthesize: SynthesisFactory
    rng: random.Random

    @property
    def total(self) -> int:
        return len(self.units)


def _is_text(unit: ContentUnit) -> bool:
    return isinstance(unit, TextChunk)


def _content_item(plan: FeedPlan, unit: ContentUnit, index: int) -> FeedItem:
    if _is_text(unit):
        return factory.create_text_chunk_item(unit, plan.source_id, index, plan.total)
    return factory.create_video_chunk_item(unit, plan.source_id, index)


def _fact_item(plan: FeedPlan, unit: ContentUnit, index: int) -> FeedItem:
    if _is_text(unit):
        return factory.create_text_fact_item(unit, plan.source_id, index)
    return factory.create_fact_item(unit, plan.source_id, index)


def _quiz_concept(plan: FeedPlan, cursor: FeedCursor) -> tuple[Concept | None, int]:
    """
    Concept to quiz on, and the next rotation position.

    The latest content unit (or the upcoming one right after a checkpoint) wins when
    it is a concept with questions; otherwise the related pool is used in rotation.
    """
    unit = cursor.last_unit or plan.units[cursor.content_index]
    if isinstance(unit, Concept) and unit.has_questions:
        return unit, cursor.quiz_concept_index
    if plan.quiz_pool:
        concept = plan.quiz_pool[cursor.quiz_concept_index % len(plan.quiz_pool)]
        return concept, cursor.quiz_concept_index + 1
    return None, cursor.quiz_concept_index


def step(plan: FeedPlan, cursor: FeedCursor) -> tuple[FeedCursor, list[FeedItem]]:
    """
    Advance the generator by one transition.

    SYNTHESIS_PENDING emits a checkpoint over the last SYNTHESIS_INTERVAL units and
    clears the cycle without touching the pattern cursor. EMITTING consumes one
    pattern slot. DONE is terminal and emits nothing.
    """
    phase = cursor.phase(plan.total)

    if phase is FeedPhase.DONE:
        return cursor, []

    if phase is FeedPhase.SYNTHESIS_PENDING:
        item = plan.synthesize(plan, cursor.buffer[-SYNTHESIS_INTERVAL:], cursor, False)
        return (
            replace(cursor, item_index=cursor.item_index + 1, cycle_count=0, buffer=()),
            [item],
        )

    slot = cursor.slot
    advanced = replace(cursor, pattern_index=cursor.pattern_index + 1)

    if slot is PatternSlot.CONTENT:
        unit = plan.units[cursor.content_index]
        item = _content_item(plan, unit, cursor.item_index)
        return (
            replace(
                advanced,
                content_index=cursor.content_index + 1,
                item_index=cursor.item_index + 1,
                cycle_count=cursor.cycle_count + 1,
                buffer=cursor.buffer + (unit,),
            ),
            [item],
        )

    if slot is PatternSlot.QUIZ:
        concept, next_quiz_index = _quiz_concept(plan, cursor)
        quiz = (
            factory.create_quiz_item(concept, plan.source_id, cursor.item_index, plan.rng)
            if concept is not None
            else None
        )
        if quiz is None:
            return replace(advanced, item_index=cursor.item_index + 1), []
        return (
            replace(
                advanced,
                item_index=cursor.item_index + 1,
                quiz_concept_index=next_quiz_index,
            ),
            [quiz],
        )

    # Fact: the most recent unit, or the upcoming one before anything is buffered
    unit = cursor.last_unit or plan.units[cursor.content_index]
    item = _fact_item(plan, unit, cursor.item_index)
    return replace(advanced, item_index=cursor.item_index + 1), [item]


def run(plan: FeedPlan) -> list[FeedItem]:
    """Fold ``step`` to completion, then close with a final checkpoint if due."""
    cursor = FeedCursor()
    feed: list[FeedItem] = []

    while cursor.phase(plan.total) is not FeedPhase.DONE:
        cursor, emitted = step(plan, cursor)
        feed.extend(emitted)

    if len(cursor.buffer) >= FINAL_SYNTHESIS_MIN:
        feed.append(plan.synthesize(plan, cursor.buffer, cursor, True))

    return feed


def static_synthesis(
    plan: FeedPlan,
    units: Sequence[ContentUnit],
    cursor: FeedCursor,
    final: bool,
) -> FeedItem:
    """Prompt-only checkpoint over the covered units."""
    if units and _is_text(units[0]):
        return factory.create_text_synthesis_item(
            list(units), plan.source_id, cursor.item_index, cursor.content_index, plan.total
        )
    return factory.create_synthesis_item(
        list(units), plan.source_id, cursor.item_index, cursor.content_index, plan.total
    )


def get_chapter_concepts(concepts: list[Concept]) -> list[Concept]:
    """
    Order chapter concepts for a video feed.

    Concepts with a ``chapter_sequence`` are used in sequence order; if none has one,
    all concepts are used oldest ``created_at`` first.
    """
    with_sequence = [c for c in concepts if c.chapter_sequence is not None]
    if with_sequence:
        return sorted(with_sequence, key=lambda c: c.chapter_sequence)
    return sorted(concepts, key=lambda c: c.created_at or "")


def pad_concepts(concepts: list[SynthesisConcept], minimum: int = 3) -> list[SynthesisConcept]:
    """Repeat concepts cyclically until there are at least ``minimum``."""
    if not concepts or len(concepts) >= minimum:
        return list(concepts)
    return [concepts[i % len(concepts)] for i in range(minimum)]


def clamp_performance(performance: float) -> float:
    return max(0.0, min(100.0, float(performance)))


class FeedBuilderService:
    """
    Build learning feeds from video chapters or text chunks.

    Example:
        >>> builder = FeedBuilderService()
        >>> feed = builder.build_feed("src-1", concepts)
        >>> [item.type.value for item in feed[:3]]
        ['video_chunk', 'quiz', 'video_chunk']
    """

    def __init__(
        self,
        synthesis_service: SynthesisPhaseGenerator | None = None,
        rng: random.Random | None = None,
        default_performance: float | None = None,
    ):
        """
        Initialize the builder.

        Args:
            synthesis_service: Synthesis phase generator for adaptive feeds
            rng: Random source for quiz question choice and sandbox layout
            default_performance: Performance used when a caller passes none
        """
        self.rng = rng or random.Random()
        self.synthesis_service = synthesis_service or SynthesisPhaseService(rng=self.rng)
        self.default_performance = (
            default_performance
            if default_performance is not None
            else get_settings().feed_default_performance
        )

    # =========================================================================
    # Video feeds
    # =========================================================================

    def build_feed(
        self,
        source_id: str,
        concepts: list[Concept],
        allow_empty: bool = True,
    ) -> list[FeedItem]:
        """Video feed with static synthesis prompts."""
        chapters = self._chapters(concepts, allow_empty)
        return self._build(source_id, chapters, [], performance=None)

    def build_feed_with_synthesis(
        self,
        source_id: str,
        concepts: list[Concept],
        performance: float | None = None,
        allow_empty: bool = True,
    ) -> list[FeedItem]:
        """Video feed with performance-adaptive synthesis phases."""
        chapters = self._chapters(concepts, allow_empty)
        return self._build(source_id, chapters, [], performance=self._performance(performance))

    def build_feed_with_pretests(
        self,
        source_id: str,
        concepts: list[Concept],
        pretest_data: PretestData,
        performance: float | None = None,
    ) -> list[FeedItem]:
        """
        Adaptive video feed prefixed by a pretest phase.

        Order: one pretest item per question (numbered across all prerequisites),
        one pretest-results item, then the adaptive feed. With no prerequisites this
        is exactly ``build_feed_with_synthesis``.
        """
        feed = self.build_feed_with_synthesis(source_id, concepts, performance)
        if not pretest_data.prerequisites:
            return feed
        return self.build_pretest_phase(source_id, pretest_data) + feed

    # =========================================================================
    # Text feeds
    # =========================================================================

    def build_text_feed(
        self,
        source_id: str,
        text_chunks: list[TextChunk],
        related_concepts: list[Concept] | None = None,
        allow_empty: bool = True,
    ) -> list[FeedItem]:
        """Text feed with static synthesis prompts; quizzes rotate through related concepts."""
        self._require_chunks(text_chunks, allow_empty)
        return self._build(source_id, text_chunks, related_concepts or [], performance=None)

    def build_text_feed_with_synthesis(
        self,
        source_id: str,
        text_chunks: list[TextChunk],
        related_concepts: list[Concept] | None = None,
        performance: float | None = None,
        allow_empty: bool = True,
    ) -> list[FeedItem]:
        """Text feed with performance-adaptive synthesis phases."""
        self._require_chunks(text_chunks, allow_empty)
        return self._build(
            source_id,
            text_chunks,
            related_concepts or [],
            performance=self._performance(performance),
        )

    # =========================================================================
    # Generic assembly
    # =========================================================================

    def assemble(
        self,
        source_id: str,
        content_units: Sequence[ContentUnit],
        related_concepts: list[Concept] | None = None,
        performance: float | None = None,
        pretest_data: PretestData | None = None,
    ) -> list[FeedItem]:
        """
        Assemble a feed from already-segmented content units.

        Units are used in the given order and must all be Concepts or all TextChunks.
        Passing ``performance`` or ``pretest_data`` selects adaptive synthesis phases.
        """
        units = list(content_units)
        kinds = {_is_text(u) for u in units}
        if len(kinds) > 1:
            raise FeedBuilderError(
                "Content units must be all concepts or all text chunks",
                ErrorCode.INVALID_CONCEPTS,
            )

        adaptive = performance is not None or pretest_data is not None
        feed = self._build(
            source_id,
            units,
            related_concepts or [],
            performance=self._performance(performance) if adaptive else None,
        )

        if pretest_data is not None and pretest_data.prerequisites:
            return self.build_pretest_phase(source_id, pretest_data) + feed
        return feed

    # =========================================================================
    # Pretest / remediation / sandbox
    # =========================================================================

    def build_pretest_phase(self, source_id: str, pretest_data: PretestData) -> list[FeedItem]:
        """Pretest items followed by the zeroed results item."""
        total = pretest_data.total_questions
        phase: list[FeedItem] = []

        for prerequisite in pretest_data.prerequisites:
            for question in prerequisite.questions:
                if not 0 <= question.correct_index < len(question.options):
                    raise FeedBuilderError(
                        f"Pretest question for {prerequisite.id} has correct_index "
                        f"{question.correct_index} outside {len(question.options)} options",
                        ErrorCode.INVALID_CONCEPTS,
                        {"prerequisite_id": prerequisite.id},
                    )
                phase.append(
                    factory.create_pretest_item(
                        prerequisite, question, source_id, len(phase), total
                    )
                )

        phase.append(factory.create_pretest_results_item(pretest_data, source_id, 0))
        logger.debug(
            f"Pretest phase: {total} questions over {len(pretest_data.prerequisites)} prerequisites"
        )
        return phase

    def insert_mini_lessons(
        self,
        feed: list[FeedItem],
        lessons: list[MiniLessonData],
        insert_after_index: int,
        source_id: str = "mini-lesson",
    ) -> list[FeedItem]:
        """
        Splice mini-lesson items into a feed right after ``insert_after_index``.

        Returns ``feed`` itself when there are no lessons; otherwise a new list.
        """
        if not lessons:
            return feed

        lesson_items = [
            factory.create_mini_lesson_item(lesson, source_id, i)
            for i, lesson in enumerate(lessons)
        ]
        cut = max(0, min(insert_after_index + 1, len(feed)))
        return feed[:cut] + lesson_items + feed[cut:]

    def create_sandbox_item(
        self,
        concept: Concept,
        source_id: str,
        index: int,
        scaffold_level: ScaffoldLevel = ScaffoldLevel.SCAFFOLD,
    ) -> SandboxItem:
        return create_sandbox_item(concept, source_id, index, scaffold_level, rng=self.rng)

    # =========================================================================
    # Internals
    # =========================================================================

    def _performance(self, performance: float | None) -> float:
        return clamp_performance(
            self.default_performance if performance is None else performance
        )

    def _chapters(self, concepts: list[Concept], allow_empty: bool) -> list[Concept]:
        chapters = get_chapter_concepts(concepts)
        if not chapters and not allow_empty:
            raise FeedBuilderError("No chapters to build a feed from", ErrorCode.NO_CHAPTERS)
        return chapters

    def _require_chunks(self, text_chunks: list[TextChunk], allow_empty: bool) -> None:
        if not text_chunks and not allow_empty:
            raise FeedBuilderError("No text chunks to build a feed from", ErrorCode.NO_TEXT_CHUNKS)

    def _build(
        self,
        source_id: str,
        units: Sequence[ContentUnit],
        related_concepts: list[Concept],
        performance: float | None,
    ) -> list[FeedItem]:
        if not units:
            return []

        start = time.perf_counter()
        plan = FeedPlan(
            source_id=source_id,
            units=tuple(units),
            quiz_pool=tuple(c for c in related_concepts if c.has_questions),
            synthesize=(
                static_synthesis if performance is None else self._adaptive_synthesis(performance)
            ),
            rng=self.rng,
        )
        feed = run(plan)

        elapsed = time.perf_counter() - start
        logger.info(
            f"Built feed for {source_id}: {len(units)} units -> {len(feed)} items "
            f"({'static' if performance is None else 'adaptive'}, {elapsed:.3f}s)"
        )
        return feed

    def _adaptive_synthesis(self, performance: float) -> SynthesisFactory:
        def synthesize(
            plan: FeedPlan,
            units: Sequence[ContentUnit],
            cursor: FeedCursor,
            final: bool,
        ) -> FeedItem:
            concepts = [
                factory.chunk_to_synthesis_concept(u, i)
                if _is_text(u)
                else factory.concept_to_synthesis_concept(u)
                for i, u in enumerate(units)
            ]
            try:
                interactions = self.synthesis_service.generate_synthesis_phase(
                    pad_concepts(concepts), performance
                )
            except Exception as e:
                logger.error(f"Synthesis phase generation failed: {e}")
                raise FeedBuilderError.wrap(
                    e, ErrorCode.BUILD_FAILED, "Synthesis phase generation failed"
                ) from e

            if final:
                total_items = cursor.item_index + 1
            else:
                total_items = math.ceil(plan.total * ITEMS_PER_UNIT_ESTIMATE)

            return SynthesisPhaseItem(
                id=factory.feed_item_id("synthesis-phase", plan.source_id, cursor.item_index),
                concept_ids=[u.id for u in units],
                interactions=interactions,
                performance=performance,
                items_completed=cursor.item_index,
                total_items=total_items,
            )

        return synthesize
