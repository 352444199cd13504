"""
Synthesis Phase Service - performance-banded review interactions.

After a run of content units the learner gets a short burst of assessment
interactions over the concepts just covered. The burst length depends on how well
they have been doing:

    performance == 100   ->  3-4 interactions
    70 <= performance    ->  5-6 interactions
    performance < 70     ->  8-10 interactions

Concepts are interleaved so the same concept never appears twice in a row (when
there is more than one), and each concept type leans toward the interaction format
that suits it, falling back to multiple choice.
"""

from __future__ import annotations

import random
from typing import Protocol

from learnfeed.errors import ErrorCode, SynthesisPhaseError
from learnfeed.feed.models import (
    ConceptType,
    InteractionType,
    SynthesisConcept,
    SynthesisInteraction,
)

MIN_CONCEPTS = 3

# (performance floor, (min, max) interactions), checked top-down
PERFORMANCE_BANDS: list[tuple[float, tuple[int, int]]] = [
    (100, (3, 4)),
    (70, (5, 6)),
    (0, (8, 10)),
]

CONCEPT_TYPE_PREFERENCES: dict[ConceptType, tuple[list[InteractionType], float]] = {
    ConceptType.FACTUAL: ([InteractionType.FILL_IN_BLANK, InteractionType.FREE_RECALL], 0.7),
    ConceptType.PROCEDURAL: ([InteractionType.SEQUENCE], 0.6),
    ConceptType.CONCEPTUAL: ([InteractionType.CONNECT_DOTS], 0.6),
    ConceptType.APPLIED: ([InteractionType.FREE_RECALL], 0.7),
}

PROMPT_TEMPLATES: dict[ConceptType, dict[InteractionType, str]] = {
    ConceptType.FACTUAL: {
        InteractionType.FREE_RECALL: "Explain what {name} is and why it matters.",
        InteractionType.FILL_IN_BLANK: "Complete the definition: {name} is _______.",
        InteractionType.SEQUENCE: "Arrange the key aspects of {name} in logical order.",
        InteractionType.CONNECT_DOTS: "How does {name} relate to what you learned earlier?",
        InteractionType.MCQ: "Which of the following best describes {name}?",
    },
    ConceptType.PROCEDURAL: {
        InteractionType.FREE_RECALL: "Describe the steps involved in {name}.",
        InteractionType.FILL_IN_BLANK: "The first step in {name} is to _______.",
        InteractionType.SEQUENCE: "Put the steps of {name} in the correct order.",
        InteractionType.CONNECT_DOTS: "How does {name} build on previous concepts?",
        InteractionType.MCQ: "What is the correct order for {name}?",
    },
    ConceptType.CONCEPTUAL: {
        InteractionType.FREE_RECALL: "Explain the underlying principle behind {name}.",
        InteractionType.FILL_IN_BLANK: "The key principle of {name} is _______.",
        InteractionType.SEQUENCE: "Order the concepts that build up to understanding {name}.",
        InteractionType.CONNECT_DOTS: "Explain how {name} connects to other concepts you learned.",
        InteractionType.MCQ: "Which principle best explains {name}?",
    },
    ConceptType.APPLIED: {
        InteractionType.FREE_RECALL: "Give an example of how you would apply {name} in practice.",
        InteractionType.FILL_IN_BLANK: "When applying {name}, you would first _______.",
        InteractionType.SEQUENCE: "Order the steps to apply {name} in a real scenario.",
        InteractionType.CONNECT_DOTS: "How would you combine {name} with other techniques?",
        InteractionType.MCQ: "In which scenario would {name} be most useful?",
    },
}

FEEDBACK_TEMPLATES: dict[InteractionType, str] = {
    InteractionType.FREE_RECALL: (
        "Take a moment to recall what you learned about {name}. "
        "Think about its definition and key characteristics."
    ),
    InteractionType.FILL_IN_BLANK: (
        "Review the definition of {name}. What are its essential components?"
    ),
    InteractionType.SEQUENCE: (
        "Consider the logical flow of {name}. What needs to happen first? "
        "What depends on what?"
    ),
    InteractionType.CONNECT_DOTS: (
        "Think about how {name} relates to other concepts. "
        "What similarities or dependencies exist?"
    ),
    InteractionType.MCQ: (
        "Review the key points about {name}. What distinguishes it from similar concepts?"
    ),
}


class SynthesisPhaseGenerator(Protocol):
    """Anything that turns covered concepts plus performance into interactions."""

    def generate_synthesis_phase(
        self,
        concepts: list[SynthesisConcept],
        performance: float,
    ) -> list[SynthesisInteraction]:
        ...


class SynthesisPhaseService:
    """
    Default synthesis phase generator.

    Example:
        >>> service = SynthesisPhaseService(rng=random.Random(7))
        >>> interactions = service.generate_synthesis_phase(concepts, 85)
        >>> len(interactions)
        5
    """

    def __init__(
        self,
        min_interactions: int = 3,
        max_interactions: int = 10,
        rng: random.Random | None = None,
    ):
        self.min_interactions = min_interactions
        self.max_interactions = max_interactions
        self.rng = rng or random.Random()

    def interaction_count(self, performance: float) -> int:
        """Pick a count inside the performance band, clipped to the configured bounds."""
        low, high = next(band for floor, band in PERFORMANCE_BANDS if performance >= floor)

        low = max(low, self.min_interactions)
        high = min(high, self.max_interactions)
        if low > high:
            return high
        return self.rng.randint(low, high)

    def select_interaction_type(self, concept_type: ConceptType) -> InteractionType:
        preferred, probability = CONCEPT_TYPE_PREFERENCES[concept_type]
        if self.rng.random() < probability:
            return self.rng.choice(preferred)
        return InteractionType.MCQ

    def interleave(self, concepts: list[SynthesisConcept], count: int) -> list[SynthesisConcept]:
        """
        Draw ``count`` concepts, avoiding the same id twice in a row.

        Draws without replacement from a shuffled pool that refills every
        ``len(concepts)`` picks.
        """
        pool = self._shuffled(concepts)
        result: list[SynthesisConcept] = []
        last_id: str | None = None

        for _ in range(count):
            candidates = [c for c in pool if c.id != last_id] or pool
            selected = self.rng.choice(candidates)
            result.append(selected)
            pool.remove(selected)
            last_id = selected.id

            if len(result) % len(concepts) == 0 or not pool:
                pool = self._shuffled(concepts)

        return result

    def generate_synthesis_phase(
        self,
        concepts: list[SynthesisConcept],
        performance: float,
    ) -> list[SynthesisInteraction]:
        """
        Generate the interactions for one synthesis phase.

        Raises:
            SynthesisPhaseError: INSUFFICIENT_CONCEPTS for fewer than 3 concepts,
                INVALID_PERFORMANCE outside 0-100
        """
        if len(concepts) < MIN_CONCEPTS:
            raise SynthesisPhaseError(
                f"Synthesis phase requires at least {MIN_CONCEPTS} concepts, got {len(concepts)}",
                ErrorCode.INSUFFICIENT_CONCEPTS,
            )
        if not 0 <= performance <= 100:
            raise SynthesisPhaseError(
                f"Performance must be between 0 and 100, got {performance}",
                ErrorCode.INVALID_PERFORMANCE,
            )

        count = self.interaction_count(performance)
        interactions = []
        for i, concept in enumerate(self.interleave(concepts, count)):
            interaction_type = self.select_interaction_type(concept.type)
            interactions.append(
                SynthesisInteraction(
                    id=f"synthesis-interaction-{i}",
                    concept_id=concept.id,
                    concept_name=concept.name,
                    type=interaction_type,
                    prompt=PROMPT_TEMPLATES[concept.type][interaction_type].format(
                        name=concept.name
                    ),
                    feedback_on_incorrect=FEEDBACK_TEMPLATES[interaction_type].format(
                        name=concept.name
                    ),
                )
            )
        return interactions

    def _shuffled(self, concepts: list[SynthesisConcept]) -> list[SynthesisConcept]:
        pool = list(concepts)
        self.rng.shuffle(pool)
        return pool
