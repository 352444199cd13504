"""
Feed assembly: item models, factories, synthesis phases and the feed builder.
"""

from learnfeed.feed.builder import FeedBuilderService, FeedCursor, FeedPhase
from learnfeed.feed.models import (
    Concept,
    FeedItem,
    FeedItemType,
    MiniLessonData,
    PretestData,
    Prerequisite,
    PretestQuestion,
    SampleQuestion,
)
from learnfeed.feed.synthesis_phase import SynthesisPhaseService

__all__ = [
    "Concept",
    "FeedBuilderService",
    "FeedCursor",
    "FeedItem",
    "FeedItemType",
    "FeedPhase",
    "MiniLessonData",
    "Prerequisite",
    "PretestData",
    "PretestQuestion",
    "SampleQuestion",
    "SynthesisPhaseService",
]
