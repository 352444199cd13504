"""
Feed data models.

Input records (concepts with their assessment data, pretest questions, mini-lesson
payloads) and the feed item types the builder emits. Feed items are frozen value
objects; ``to_dict`` gives the JSON shape used by the CLI.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar


# =============================================================================
# Enums
# =============================================================================


class FeedItemType(str, Enum):
    """Discriminator for the feed item union."""

    VIDEO_CHUNK = "video_chunk"
    TEXT_CHUNK = "text_chunk"
    QUIZ = "quiz"
    FACT = "fact"
    SYNTHESIS = "synthesis"
    SYNTHESIS_PHASE = "synthesis_phase"
    PRETEST = "pretest"
    PRETEST_RESULTS = "pretest_results"
    MINI_LESSON = "mini_lesson"
    SANDBOX = "sandbox"


class ConceptType(str, Enum):
    """Concept classification used by the synthesis phase."""

    FACTUAL = "factual"
    PROCEDURAL = "procedural"
    CONCEPTUAL = "conceptual"
    APPLIED = "applied"


class InteractionType(str, Enum):
    """Synthesis phase interaction formats."""

    FREE_RECALL = "free_recall"
    FILL_IN_BLANK = "fill_in_blank"
    SEQUENCE = "sequence"
    CONNECT_DOTS = "connect_dots"
    MCQ = "mcq"


class SandboxInteractionType(str, Enum):
    MATCHING = "matching"
    SEQUENCING = "sequencing"
    FILL_IN_BLANK = "fill_in_blank"
    BRANCHING = "branching"


class ScaffoldLevel(str, Enum):
    """How much of a sandbox solution is shown up front."""

    WORKED = "worked"
    SCAFFOLD = "scaffold"
    FADED = "faded"


# =============================================================================
# Input Records
# =============================================================================


@dataclass
class SampleQuestion:
    """An authored assessment question, consumed verbatim by quiz items."""

    question_type: str
    question_text: str
    correct_answer: str
    distractors: list[str] = field(default_factory=list)
    explanation: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SampleQuestion:
        return cls(
            question_type=data.get("question_type", "mcq"),
            question_text=data["question_text"],
            correct_answer=data.get("correct_answer", ""),
            distractors=list(data.get("distractors") or []),
            explanation=data.get("explanation"),
        )


@dataclass
class Concept:
    """
    A learning concept, optionally tied to a video chapter.

    Only the fields the feed reads are modelled; unknown keys in ``from_dict`` input
    are ignored.
    """

    id: str
    name: str
    definition: str = ""
    cognitive_type: str | None = None
    bloom_level: str | None = None
    one_sentence_summary: str | None = None
    why_it_matters: str | None = None
    open_loop_teaser: str | None = None
    chapter_sequence: int | None = None
    created_at: str | None = None
    sample_questions: list[SampleQuestion] = field(default_factory=list)
    segment_question: SampleQuestion | None = None
    start_sec: float | None = None
    end_sec: float | None = None

    @property
    def has_questions(self) -> bool:
        return bool(self.sample_questions)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Concept:
        """Build from the nested record shape (assessment_spec / source_mapping)."""
        assessment = data.get("assessment_spec") or {}
        mapping = data.get("source_mapping") or {}
        primary = mapping.get("primary_segment") or {}
        segment_question = mapping.get("segment_question")

        return cls(
            id=str(data["id"]),
            name=data["name"],
            definition=data.get("definition") or "",
            cognitive_type=data.get("cognitive_type"),
            bloom_level=data.get("bloom_level"),
            one_sentence_summary=data.get("one_sentence_summary"),
            why_it_matters=data.get("why_it_matters"),
            open_loop_teaser=data.get("open_loop_teaser"),
            chapter_sequence=data.get("chapter_sequence"),
            created_at=data.get("created_at"),
            sample_questions=[
                SampleQuestion.from_dict(q) for q in assessment.get("sample_questions") or []
            ],
            segment_question=(
                SampleQuestion.from_dict(segment_question) if segment_question else None
            ),
            start_sec=primary.get("start_sec"),
            end_sec=primary.get("end_sec"),
        )


@dataclass
class PretestQuestion:
    question_text: str
    options: list[str]
    correct_index: int
    explanation: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PretestQuestion:
        return cls(
            question_text=data["question_text"],
            options=list(data.get("options") or []),
            correct_index=int(data["correct_index"]),
            explanation=data.get("explanation"),
        )


@dataclass
class Prerequisite:
    """A prerequisite concept with its diagnostic questions."""

    id: str
    name: str
    questions: list[PretestQuestion] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Prerequisite:
        return cls(
            id=str(data["id"]),
            name=data["name"],
            questions=[PretestQuestion.from_dict(q) for q in data.get("questions") or []],
        )


@dataclass
class PretestData:
    prerequisites: list[Prerequisite] = field(default_factory=list)

    @property
    def total_questions(self) -> int:
        return sum(len(p.questions) for p in self.prerequisites)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PretestData:
        return cls(
            prerequisites=[Prerequisite.from_dict(p) for p in data.get("prerequisites") or []]
        )


@dataclass
class MiniLessonData:
    """Authored remediation content for one prerequisite gap."""

    prerequisite_id: str
    title: str
    content_markdown: str
    key_points: list[str] = field(default_factory=list)
    estimated_minutes: int = 2


# =============================================================================
# Synthesis Phase Records
# =============================================================================


@dataclass(frozen=True)
class SynthesisConcept:
    id: str
    name: str
    type: ConceptType = ConceptType.CONCEPTUAL
    description: str | None = None


@dataclass(frozen=True)
class SynthesisInteraction:
    """One assessment interaction inside a synthesis phase."""

    id: str
    concept_id: str
    concept_name: str
    type: InteractionType
    prompt: str
    expected_answer: str | None = None
    attempt_count: int = 0
    feedback_on_incorrect: str | None = None


# =============================================================================
# Sandbox Records
# =============================================================================


@dataclass(frozen=True)
class SandboxElement:
    id: str
    type: str  # draggable | dropzone
    x: float
    y: float
    width: float
    height: float
    content: str
    background_color: str
    draggable: bool
    snap_targets: list[str] = field(default_factory=list)
    capacity: int | None = None


@dataclass(frozen=True)
class SandboxInteraction:
    interaction_id: str
    concept_id: str
    cognitive_type: str
    bloom_level: str
    interaction_type: SandboxInteractionType
    elements: list[SandboxElement]
    zone_contents: dict[str, list[str]]
    scaffold_level: ScaffoldLevel
    hints: list[str]
    instructions: str
    canvas_width: int = 400
    canvas_height: int = 300
    canvas_background: str = "#FFFFFF"
    min_correct_percentage: float = 0.8
    evaluation_mode: str = "deterministic"
    estimated_time_seconds: int = 60
    difficulty_modifier: float = 1.0


# =============================================================================
# Feed Items
# =============================================================================


@dataclass(frozen=True)
class FeedItem:
    """Base for every feed entry; ``type`` is fixed per subclass."""

    id: str

    type: ClassVar[FeedItemType]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, **asdict(self)}


@dataclass(frozen=True)
class VideoChunkItem(FeedItem):
    concept_id: str
    start_sec: float
    end_sec: float
    title: str
    open_loop_teaser: str | None = None
    question: SampleQuestion | None = None

    type: ClassVar[FeedItemType] = FeedItemType.VIDEO_CHUNK


@dataclass(frozen=True)
class TextChunkItem(FeedItem):
    text: str
    propositions: list[str]
    chunk_index: int
    total_chunks: int

    type: ClassVar[FeedItemType] = FeedItemType.TEXT_CHUNK


@dataclass(frozen=True)
class QuizItem(FeedItem):
    concept_id: str
    question: SampleQuestion

    type: ClassVar[FeedItemType] = FeedItemType.QUIZ


@dataclass(frozen=True)
class FactItem(FeedItem):
    concept_id: str
    fact_text: str
    why_it_matters: str

    type: ClassVar[FeedItemType] = FeedItemType.FACT


@dataclass(frozen=True)
class SynthesisItem(FeedItem):
    concepts_to_connect: list[str]
    synthesis_prompt: str
    chapters_completed: int
    total_chapters: int

    type: ClassVar[FeedItemType] = FeedItemType.SYNTHESIS


@dataclass(frozen=True)
class SynthesisPhaseItem(FeedItem):
    concept_ids: list[str]
    interactions: list[SynthesisInteraction]
    performance: float
    items_completed: int
    total_items: int

    type: ClassVar[FeedItemType] = FeedItemType.SYNTHESIS_PHASE

    @property
    def interaction_count(self) -> int:
        return len(self.interactions)


@dataclass(frozen=True)
class PretestItem(FeedItem):
    prerequisite_id: str
    prerequisite_name: str
    question_text: str
    options: list[str]
    correct_index: int
    explanation: str | None
    question_number: int
    total_questions: int

    type: ClassVar[FeedItemType] = FeedItemType.PRETEST


@dataclass(frozen=True)
class PretestResultsItem(FeedItem):
    total_prerequisites: int
    correct_count: int
    percentage: float
    recommendation: str
    gap_prerequisite_ids: list[str]

    type: ClassVar[FeedItemType] = FeedItemType.PRETEST_RESULTS


@dataclass(frozen=True)
class MiniLessonItem(FeedItem):
    prerequisite_id: str
    title: str
    content_markdown: str
    key_points: list[str]
    estimated_minutes: int

    type: ClassVar[FeedItemType] = FeedItemType.MINI_LESSON


@dataclass(frozen=True)
class SandboxItem(FeedItem):
    concept_id: str
    concept_name: str
    status: str
    interaction: SandboxInteraction
    scaffold_level: ScaffoldLevel
    estimated_time_seconds: int

    type: ClassVar[FeedItemType] = FeedItemType.SANDBOX
