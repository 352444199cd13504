"""
Sandbox item construction.

Builds a basic drag-and-drop interaction for a concept. The interaction format is
picked from the concept's cognitive type; matching and sequencing get starter
elements, the other formats start with an empty canvas.
"""

from __future__ import annotations

import random

from loguru import logger

from learnfeed.feed.items import feed_item_id
from learnfeed.feed.models import (
    Concept,
    SandboxElement,
    SandboxInteraction,
    SandboxInteractionType,
    SandboxItem,
    ScaffoldLevel,
)

COGNITIVE_INTERACTIONS: dict[str, SandboxInteractionType] = {
    "declarative": SandboxInteractionType.MATCHING,
    "procedural": SandboxInteractionType.SEQUENCING,
    "conceptual": SandboxInteractionType.FILL_IN_BLANK,
    "conditional": SandboxInteractionType.BRANCHING,
    "metacognitive": SandboxInteractionType.FILL_IN_BLANK,
}

SEQUENCE_STEPS = ["Step 1", "Step 2", "Step 3"]


def interaction_type_for(cognitive_type: str | None) -> SandboxInteractionType:
    return COGNITIVE_INTERACTIONS.get(cognitive_type or "", SandboxInteractionType.MATCHING)


def _matching_elements(concept: Concept) -> tuple[list[SandboxElement], dict[str, list[str]]]:
    term_id = f"term-{concept.id}"
    zone_id = f"zone-{concept.id}"
    term = SandboxElement(
        id=term_id,
        type="draggable",
        x=50,
        y=100,
        width=150,
        height=50,
        content=concept.name,
        background_color="#E3F2FD",
        draggable=True,
        snap_targets=[zone_id],
    )
    zone = SandboxElement(
        id=zone_id,
        type="dropzone",
        x=250,
        y=100,
        width=200,
        height=60,
        content=concept.definition[:50] or "Definition",
        background_color="#F5F5F5",
        draggable=False,
        capacity=1,
    )
    return [term, zone], {zone_id: [term_id]}


def _sequencing_elements(rng: random.Random) -> list[SandboxElement]:
    return [
        SandboxElement(
            id=f"step-{i}",
            type="draggable",
            x=50 + rng.random() * 200,
            y=50 + i * 70,
            width=200,
            height=50,
            content=step,
            background_color="#E8F5E9",
            draggable=True,
        )
        for i, step in enumerate(SEQUENCE_STEPS)
    ]


def build_sandbox_interaction(
    concept: Concept,
    scaffold_level: ScaffoldLevel,
    interaction_id: str,
    rng: random.Random | None = None,
) -> SandboxInteraction:
    interaction_type = interaction_type_for(concept.cognitive_type)
    elements: list[SandboxElement] = []
    zone_contents: dict[str, list[str]] = {}

    if interaction_type is SandboxInteractionType.MATCHING:
        elements, zone_contents = _matching_elements(concept)
    elif interaction_type is SandboxInteractionType.SEQUENCING:
        elements = _sequencing_elements(rng or random.Random())

    return SandboxInteraction(
        interaction_id=interaction_id,
        concept_id=concept.id,
        cognitive_type=concept.cognitive_type or "declarative",
        bloom_level=concept.bloom_level or "remember",
        interaction_type=interaction_type,
        elements=elements,
        zone_contents=zone_contents,
        scaffold_level=scaffold_level,
        hints=[f"Think about what {concept.name} means.", "Try matching related items."],
        instructions=f"Match the term with its definition for {concept.name}.",
    )


def create_sandbox_item(
    concept: Concept,
    source_id: str,
    index: int,
    scaffold_level: ScaffoldLevel = ScaffoldLevel.SCAFFOLD,
    rng: random.Random | None = None,
) -> SandboxItem:
    """
    Create a ready-to-play sandbox item for a concept.

    Args:
        concept: Concept to practise
        source_id: Source id for the item id
        index: Position for the item id
        scaffold_level: worked, scaffold or faded
        rng: Random source for element placement

    Returns:
        SandboxItem with status "ready"
    """
    logger.debug(f"Creating sandbox item for concept: {concept.name}")
    scaffold_level = ScaffoldLevel(scaffold_level)
    interaction = build_sandbox_interaction(
        concept,
        scaffold_level,
        interaction_id=f"sandbox-{concept.id}-{index}",
        rng=rng,
    )

    return SandboxItem(
        id=feed_item_id("sandbox", source_id, index),
        concept_id=concept.id,
        concept_name=concept.name,
        status="ready",
        interaction=interaction,
        scaffold_level=scaffold_level,
        estimated_time_seconds=interaction.estimated_time_seconds,
    )
