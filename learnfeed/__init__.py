"""
learnfeed - content segmentation and adaptive feed assembly.

Turns long-form learning content (video transcripts or article text) into a paced
feed of content snippets, quizzes, facts and synthesis checkpoints.

Pipeline stages:
- SemanticBoundaryService: topic-shift detection from embedding similarity
- PropositionChunkingService: prose -> atomic statements via Gemini
- TextChunkingPipeline: propositions grouped between boundaries
- VideoSegmentationService: boundaries mapped onto video time, duration-optimized
- FeedBuilderService: interleaved content/quiz/fact feed with synthesis checkpoints
"""

__version__ = "1.0.0"
